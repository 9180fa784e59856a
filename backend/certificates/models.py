from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone

from institutions.models import Institution


class Certificate(models.Model):
    class Template(models.TextChoices):
        CLASSIC = "classic", "Classic"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Never repointed after creation.
    institution = models.ForeignKey(
        Institution,
        on_delete=models.PROTECT,
        related_name="certificates",
    )

    # Snapshots taken at issuance time, decoupled from later profile edits.
    institution_name_snapshot = models.CharField(max_length=255)
    recipient_name_snapshot = models.CharField(max_length=255)
    recipient_email_snapshot = models.CharField(max_length=254, blank=True, default="", db_index=True)

    subject = models.CharField(max_length=255)
    issued_at = models.DateTimeField(default=timezone.now, db_index=True)
    time_period = models.CharField(max_length=255, blank=True, default="")
    extra_content = models.CharField(max_length=500, blank=True, default="")
    template = models.CharField(max_length=30, choices=Template.choices, default=Template.CLASSIC)

    # Opaque reference returned by the attestation service. Null until attested;
    # written at most once.
    attestation_id = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    attested_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-issued_at"]
        indexes = [
            models.Index(fields=["institution", "issued_at"], name="cert_institution_issued_idx"),
            models.Index(fields=["recipient_email_snapshot", "issued_at"], name="cert_recipient_issued_idx"),
        ]

    @property
    def is_attested(self) -> bool:
        return bool(self.attestation_id)

    def __str__(self) -> str:
        return f"{self.subject} - {self.recipient_name_snapshot} ({self.institution_name_snapshot})"
