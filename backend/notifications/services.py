from __future__ import annotations

import logging

from django.conf import settings
from django.utils import timezone

from core.exceptions import NotFound, ValidationFailed
from core.text import clamp_int, normalize_email

from .models import Notification


logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


def _max_list_limit() -> int:
    try:
        return max(1, int(getattr(settings, "NOTIFICATIONS_MAX_LIMIT", 200)))
    except (TypeError, ValueError):
        return 200


def create_certificate_notification(*, certificate, recipient_email: str) -> Notification:
    recipient_email = normalize_email(recipient_email)
    if not recipient_email:
        raise ValidationFailed("Recipient email is required")

    notification = Notification.objects.create(
        recipient_email=recipient_email,
        type=Notification.Type.CERTIFICATE_ISSUED,
        title="New certificate issued",
        message=(
            f"Your certificate for {certificate.subject} has been issued by "
            f"{certificate.institution_name_snapshot}."
        ),
        certificate=certificate,
    )
    logger.info("Notification %s created for certificate %s", notification.pk, certificate.pk)
    return notification


def list_notifications(recipient_email: str, limit=None):
    recipient_email = normalize_email(recipient_email)
    if not recipient_email:
        return Notification.objects.none()

    limit = clamp_int(limit, default=DEFAULT_LIST_LIMIT, minimum=1, maximum=_max_list_limit())
    qs = Notification.objects.filter(recipient_email=recipient_email).select_related("certificate")
    return qs.order_by("-created_at", "-id")[:limit]


def unread_count(recipient_email: str) -> int:
    recipient_email = normalize_email(recipient_email)
    if not recipient_email:
        return 0
    return Notification.objects.filter(recipient_email=recipient_email, is_read=False).count()


def mark_read(notification_id, recipient_email: str) -> Notification:
    """Mark one notification as read.

    Missing and foreign notifications are indistinguishable to the caller.
    """

    recipient_email = normalize_email(recipient_email)
    notification = None
    if recipient_email:
        try:
            notification = Notification.objects.filter(pk=int(notification_id), recipient_email=recipient_email).first()
        except (TypeError, ValueError):
            notification = None
    if notification is None:
        raise NotFound("Notification not found")

    # Conditional so a concurrent mark keeps the first read_at.
    Notification.objects.filter(pk=notification.pk, is_read=False).update(is_read=True, read_at=timezone.now())
    notification.refresh_from_db(fields=["is_read", "read_at"])
    return notification


def mark_all_read(recipient_email: str) -> int:
    recipient_email = normalize_email(recipient_email)
    if not recipient_email:
        return 0
    return Notification.objects.filter(recipient_email=recipient_email, is_read=False).update(
        is_read=True,
        read_at=timezone.now(),
    )
