from __future__ import annotations

from rest_framework import serializers

from .models import Certificate


class IssueCertificateSerializer(serializers.Serializer):
    recipient_name = serializers.CharField(max_length=255)
    recipient_email = serializers.EmailField(required=False, allow_blank=True, default="")
    subject = serializers.CharField(max_length=255)
    time_period = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    extra_content = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    template = serializers.CharField(max_length=30, required=False, allow_blank=True, default=Certificate.Template.CLASSIC)

    def validate_template(self, value):
        # Unknown templates fall back to the default design.
        value = (value or "").strip()
        if value in Certificate.Template.values:
            return value
        return Certificate.Template.CLASSIC


class CertificateSerializer(serializers.ModelSerializer):
    is_attested = serializers.BooleanField(read_only=True)

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
            "time_period",
            "extra_content",
            "template",
            "attestation_id",
            "attested_at",
            "is_attested",
        ]
        read_only_fields = fields


class PublicCertificateSerializer(serializers.ModelSerializer):
    """Public verification view. The recipient email is not exposed."""

    is_attested = serializers.BooleanField(read_only=True)

    class Meta:
        model = Certificate
        fields = [
            "id",
            "institution",
            "institution_name_snapshot",
            "recipient_name_snapshot",
            "subject",
            "issued_at",
            "time_period",
            "extra_content",
            "template",
            "attestation_id",
            "is_attested",
        ]
        read_only_fields = fields
