from django.db import models

from certificates.models import Certificate


class Notification(models.Model):
    class Type(models.TextChoices):
        CERTIFICATE_ISSUED = "CERTIFICATE_ISSUED", "Certificate issued"

    # Addressed by email so recipients without an account still accumulate
    # notifications they can read after signing up.
    recipient_email = models.EmailField(db_index=True)

    type = models.CharField(max_length=50, choices=Type.choices, default=Type.CERTIFICATE_ISSUED)
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True, default="")
    certificate = models.ForeignKey(
        Certificate,
        on_delete=models.PROTECT,
        related_name="notifications",
    )

    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["recipient_email", "is_read", "created_at"], name="notif_recipient_read_idx"),
            models.Index(fields=["recipient_email", "created_at"], name="notif_recipient_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.recipient_email}: {self.title}"
