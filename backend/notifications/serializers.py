from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    certificate_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Notification
        fields = [
            "id",
            "type",
            "title",
            "message",
            "certificate_id",
            "created_at",
            "read_at",
            "is_read",
        ]
        read_only_fields = fields
