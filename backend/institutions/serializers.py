from __future__ import annotations

import os

from rest_framework import serializers

from .models import Institution, InstitutionRequest


DOCUMENT_MAX_BYTES = 10 * 1024 * 1024
LOGO_MAX_BYTES = 2 * 1024 * 1024

DOCUMENT_CONTENT_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
DOCUMENT_EXTENSIONS = {".pdf", ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".doc", ".docx"}


def validate_document_upload(upload):
    if upload is None:
        return upload
    if upload.size > DOCUMENT_MAX_BYTES:
        raise serializers.ValidationError("File too large (max 10MB).")
    content_type = (getattr(upload, "content_type", "") or "").lower()
    ext = os.path.splitext(upload.name or "")[1].lower()
    if content_type not in DOCUMENT_CONTENT_TYPES and ext not in DOCUMENT_EXTENSIONS:
        raise serializers.ValidationError("Invalid file type. Use PDF, image, or document.")
    return upload


def validate_logo_upload(upload):
    if upload is None:
        return upload
    if upload.size > LOGO_MAX_BYTES:
        raise serializers.ValidationError("Logo too large (max 2MB).")
    content_type = (getattr(upload, "content_type", "") or "").lower()
    if content_type and not content_type.startswith("image/"):
        raise serializers.ValidationError("Only image files allowed")
    return upload


class InstitutionSignupSerializer(serializers.Serializer):
    institution_name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    address = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    document = serializers.FileField(required=False, allow_null=True, default=None, validators=[validate_document_upload])


class InstitutionRequestSerializer(serializers.ModelSerializer):
    decided_by_email = serializers.CharField(source="decided_by.email", read_only=True, default=None)

    class Meta:
        model = InstitutionRequest
        fields = [
            "id",
            "institution_name",
            "email",
            "phone",
            "address",
            "document",
            "document_original_name",
            "status",
            "decided_by",
            "decided_by_email",
            "decided_at",
            "created_user",
            "created_at",
        ]
        read_only_fields = fields


class InstitutionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Institution
        fields = [
            "id",
            "name",
            "contact_number",
            "address",
            "location_url",
            "logo",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]


class InstitutionWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    contact_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    address = serializers.CharField(max_length=255, required=False, allow_blank=True)
    location_url = serializers.CharField(max_length=500, required=False, allow_blank=True)
    logo = serializers.ImageField(required=False, allow_null=True, validators=[validate_logo_upload])
