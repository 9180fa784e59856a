from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from .models import User


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "name", "email", "role", "banned", "must_change_password", "date_joined"]
        read_only_fields = fields


class StudentSignupSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, max_length=128, write_only=True)
    date_of_birth = serializers.DateField(required=False, allow_null=True, default=None)


class LegacySignupSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, max_length=128, write_only=True)
    role = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_role(self, value):
        # Public signup can never grant ADMIN; anything unknown falls back to STUDENT.
        role = (value or "").strip().upper()
        if role in {User.Role.STUDENT, User.Role.INSTITUTION}:
            return role
        return User.Role.STUDENT


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(max_length=128, write_only=True)


class ProfileUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    email = serializers.EmailField(required=False, allow_blank=True)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(max_length=128)
    new_password = serializers.CharField(min_length=6, max_length=128)

    def validate_new_password(self, value: str):
        validate_password(value, user=self.context.get("user"))
        return value


class RoleUpdateSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=User.Role.choices)
