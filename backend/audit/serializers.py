from __future__ import annotations

from rest_framework import serializers

from .models import AuditLog


class AuditLogSerializer(serializers.ModelSerializer):
	class Meta:
		model = AuditLog
		fields = [
			"id",
			"created_at",
			"actor",
			"actor_email",
			"event_type",
			"object_type",
			"object_id",
			"path",
			"method",
			"ip_address",
			"metadata",
		]
		read_only_fields = fields
