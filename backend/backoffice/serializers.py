from rest_framework import serializers

from certificates.models import Certificate
from institutions.models import Institution
from users.models import StudentProfile, User


class OwnerSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "name", "email", "role"]
        read_only_fields = fields


class AdminUserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "name", "email", "role", "banned", "is_active", "must_change_password", "date_joined"]
        read_only_fields = fields


class AdminInstitutionSerializer(serializers.ModelSerializer):
    user = OwnerSerializer(read_only=True)
    certificates_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Institution
        fields = [
            "id",
            "name",
            "logo",
            "address",
            "contact_number",
            "location_url",
            "created_at",
            "user",
            "certificates_count",
        ]
        read_only_fields = fields


class AdminStudentSerializer(serializers.ModelSerializer):
    user = OwnerSerializer(read_only=True)

    class Meta:
        model = StudentProfile
        fields = ["id", "date_of_birth", "course_name", "created_at", "user"]
        read_only_fields = fields


class AdminCertificateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Certificate
        fields = [
            "id",
            "institution",
            "institution_name_snapshot",
            "recipient_name_snapshot",
            "recipient_email_snapshot",
            "subject",
            "issued_at",
            "attestation_id",
        ]
        read_only_fields = fields
