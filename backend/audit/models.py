from __future__ import annotations

from django.conf import settings
from django.db import models


class AuditLog(models.Model):
	"""Trail of admin decisions over accounts and onboarding requests.

	The actor's email is copied at write time so entries stay readable after
	the acting account is deleted.
	"""

	class EventType(models.TextChoices):
		INSTITUTION_REQUEST_APPROVED = "INSTITUTION_REQUEST_APPROVED", "Institution request approved"
		INSTITUTION_REQUEST_REJECTED = "INSTITUTION_REQUEST_REJECTED", "Institution request rejected"
		USER_ROLE_CHANGED = "USER_ROLE_CHANGED", "User role changed"
		USER_BANNED = "USER_BANNED", "User banned"
		USER_UNBANNED = "USER_UNBANNED", "User unbanned"
		USER_DELETED = "USER_DELETED", "User deleted"

	actor = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		on_delete=models.SET_NULL,
		null=True,
		blank=True,
		related_name="audit_logs",
	)
	actor_email = models.CharField(max_length=254, blank=True, default="")

	event_type = models.CharField(max_length=80, choices=EventType.choices)
	object_type = models.CharField(max_length=80, blank=True, default="")
	object_id = models.CharField(max_length=80, blank=True, default="")

	path = models.CharField(max_length=300, blank=True, default="")
	method = models.CharField(max_length=10, blank=True, default="")
	ip_address = models.CharField(max_length=64, blank=True, default="")

	metadata = models.JSONField(default=dict, blank=True)

	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		ordering = ["-created_at", "-id"]
		indexes = [
			models.Index(fields=["event_type", "created_at"], name="audit_event_created_idx"),
			models.Index(fields=["object_type", "object_id", "created_at"], name="audit_object_created_idx"),
		]

	def __str__(self) -> str:
		return f"{self.created_at:%Y-%m-%d %H:%M:%S} {self.event_type} {self.object_type}:{self.object_id}"
