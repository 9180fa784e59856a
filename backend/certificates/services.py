from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from core.exceptions import (
    ATTESTATION_FAILED,
    NOTIFICATION_FAILED,
    REMOTE_ERROR,
    TIMEOUT,
    NoIssuerProfile,
    NotFound,
    ValidationFailed,
)
from core.text import clean_text, normalize_email
from institutions.models import Institution
from notifications.models import Notification

from .attestation import (
    AttestationError,
    AttestationPayload,
    AttestationTimeout,
    attest_with_timeout,
    get_attestation_backend,
)
from .models import Certificate


logger = logging.getLogger(__name__)


@dataclass
class PartialFailure:
    code: str
    reason: str
    detail: str = ""

    def as_dict(self) -> dict:
        return {"code": self.code, "reason": self.reason, "detail": self.detail}


@dataclass
class IssuanceResult:
    """Outcome of an issuance once the certificate has been persisted.

    `failures` lists the secondary steps (attestation, notification) that did
    not complete. The certificate exists either way.
    """

    certificate: Certificate
    notification: Optional[Notification] = None
    failures: list[PartialFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def degraded(self) -> bool:
        return bool(self.failures)

    @property
    def status(self) -> str:
        return "ok" if self.ok else "degraded"

    def has_failure(self, code: str) -> bool:
        return any(f.code == code for f in self.failures)


def _attestation_timeout_seconds() -> float:
    try:
        return max(0.1, float(getattr(settings, "ATTESTATION_TIMEOUT_SECONDS", 10)))
    except (TypeError, ValueError):
        return 10.0


def resolve_issuer(issuer) -> Institution:
    institution = None
    if issuer is not None and getattr(issuer, "pk", None):
        institution = Institution.objects.filter(user_id=issuer.pk).first()
    if institution is None:
        raise NoIssuerProfile()
    return institution


def _persist_certificate(
    *,
    institution: Institution,
    recipient_name: str,
    recipient_email: str,
    subject: str,
    time_period: str,
    extra_content: str,
    template: str,
) -> Certificate:
    # Committed on its own so the record survives whatever happens next.
    with transaction.atomic():
        return Certificate.objects.create(
            institution=institution,
            institution_name_snapshot=institution.name,
            recipient_name_snapshot=recipient_name,
            recipient_email_snapshot=recipient_email,
            subject=subject,
            time_period=time_period,
            extra_content=extra_content,
            template=template,
        )


def _attest(certificate: Certificate, backend) -> Optional[PartialFailure]:
    payload = AttestationPayload(
        certificate_id=str(certificate.pk),
        subject=certificate.subject,
        recipient_name=certificate.recipient_name_snapshot,
        recipient_email=certificate.recipient_email_snapshot,
    )

    try:
        reference = attest_with_timeout(backend, payload, timeout_seconds=_attestation_timeout_seconds())
    except AttestationTimeout as exc:
        failure = PartialFailure(code=ATTESTATION_FAILED, reason=TIMEOUT, detail=str(exc))
    except AttestationError as exc:
        failure = PartialFailure(code=ATTESTATION_FAILED, reason=REMOTE_ERROR, detail=str(exc))
    except Exception as exc:
        logger.exception("Unexpected error attesting certificate %s", certificate.pk)
        failure = PartialFailure(code=ATTESTATION_FAILED, reason=REMOTE_ERROR, detail=str(exc))
    else:
        if record_attestation(certificate.pk, reference):
            certificate.refresh_from_db(fields=["attestation_id", "attested_at"])
        return None

    logger.warning(
        "Attestation failed for certificate %s (%s): %s",
        certificate.pk,
        failure.reason,
        failure.detail,
    )
    return failure


def record_attestation(certificate_id, reference: str) -> bool:
    """Store the attestation reference if none is stored yet.

    Conditional update: a certificate's reference is written at most once.
    """

    updated = Certificate.objects.filter(pk=certificate_id, attestation_id__isnull=True).update(
        attestation_id=reference,
        attested_at=timezone.now(),
    )
    return updated == 1


def _notify(certificate: Certificate, recipient_email: str) -> tuple[Optional[Notification], Optional[PartialFailure]]:
    from notifications.services import create_certificate_notification  # noqa: PLC0415

    try:
        notification = create_certificate_notification(certificate=certificate, recipient_email=recipient_email)
    except Exception as exc:
        logger.exception("Could not create notification for certificate %s", certificate.pk)
        return None, PartialFailure(code=NOTIFICATION_FAILED, reason=exc.__class__.__name__, detail=str(exc))
    return notification, None


def issue_certificate(
    *,
    issuer,
    recipient_name: str,
    subject: str,
    recipient_email: str = "",
    time_period: str = "",
    extra_content: str = "",
    template: str = Certificate.Template.CLASSIC,
    attestation_backend=None,
) -> IssuanceResult:
    """Issue a certificate: persist, attest, notify.

    Authorization and validation errors are raised before anything is written.
    Once the certificate is stored, attestation and notification problems are
    reported in the returned result instead of raised.
    """

    institution = resolve_issuer(issuer)

    recipient_name = clean_text(recipient_name)
    subject = clean_text(subject)
    recipient_email = normalize_email(recipient_email)
    if not recipient_name or not subject:
        raise ValidationFailed("Recipient name and subject are required")
    if template not in Certificate.Template.values:
        template = Certificate.Template.CLASSIC

    certificate = _persist_certificate(
        institution=institution,
        recipient_name=recipient_name,
        recipient_email=recipient_email,
        subject=subject,
        time_period=clean_text(time_period),
        extra_content=clean_text(extra_content),
        template=template,
    )
    logger.info("Certificate %s persisted for institution %s", certificate.pk, institution.pk)

    result = IssuanceResult(certificate=certificate)

    backend = attestation_backend
    if backend is None:
        try:
            backend = get_attestation_backend()
        except Exception as exc:
            logger.exception("Could not load attestation backend")
            result.failures.append(PartialFailure(code=ATTESTATION_FAILED, reason=REMOTE_ERROR, detail=str(exc)))

    if backend is not None:
        failure = _attest(certificate, backend)
        if failure is not None:
            result.failures.append(failure)

    if recipient_email:
        notification, failure = _notify(certificate, recipient_email)
        result.notification = notification
        if failure is not None:
            result.failures.append(failure)

    return result


def get_certificate(certificate_id) -> Certificate:
    try:
        certificate = Certificate.objects.select_related("institution").filter(pk=certificate_id).first()
    except (ValueError, DjangoValidationError):
        certificate = None
    if certificate is None:
        raise NotFound("Certificate not found")
    return certificate


def list_by_issuer(issuer):
    institution = resolve_issuer(issuer)
    return Certificate.objects.filter(institution=institution).order_by("-issued_at")


def list_by_recipient_email(email: str):
    email = normalize_email(email)
    if not email:
        return Certificate.objects.none()
    return Certificate.objects.filter(recipient_email_snapshot__iexact=email).order_by("-issued_at")


def list_unattested():
    return Certificate.objects.filter(attestation_id__isnull=True).order_by("issued_at")
