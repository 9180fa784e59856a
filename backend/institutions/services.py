from __future__ import annotations

import logging
from typing import Optional

from django.conf import settings
from django.core.files.uploadedfile import UploadedFile
from django.db import IntegrityError, transaction
from django.utils import timezone

from core.exceptions import (
    AlreadyDecided,
    DuplicateEmail,
    DuplicatePending,
    DuplicateProfile,
    NotFound,
    ValidationFailed,
)
from core.text import clean_text, normalize_email
from users.models import User
from users.services import email_in_use

from .models import Institution, InstitutionRequest


logger = logging.getLogger(__name__)


def submit_request(
    *,
    institution_name: str,
    email: str,
    phone: str = "",
    address: str = "",
    document: Optional[UploadedFile] = None,
) -> InstitutionRequest:
    institution_name = clean_text(institution_name)
    email = normalize_email(email)
    if not institution_name or not email:
        raise ValidationFailed("Institution name and email are required")

    if email_in_use(email):
        raise DuplicateEmail()
    if InstitutionRequest.objects.filter(email=email, status=InstitutionRequest.Status.PENDING).exists():
        raise DuplicatePending()

    try:
        with transaction.atomic():
            request_obj = InstitutionRequest(
                institution_name=institution_name,
                email=email,
                phone=clean_text(phone),
                address=clean_text(address),
                status=InstitutionRequest.Status.PENDING,
            )
            if document is not None:
                request_obj.document = document
                request_obj.document_original_name = (getattr(document, "name", "") or "")[:255]
            request_obj.save()
    except IntegrityError as exc:
        # uniq_pending_request_email caught a concurrent submission.
        raise DuplicatePending() from exc

    logger.info("Institution request submitted id=%s email=%s", request_obj.pk, email)
    return request_obj


def list_pending_requests():
    return InstitutionRequest.objects.filter(status=InstitutionRequest.Status.PENDING).order_by("-created_at", "-id")


def _get_request(request_id) -> InstitutionRequest:
    try:
        request_id = int(request_id)
    except (TypeError, ValueError) as exc:
        raise ValidationFailed("Invalid request id") from exc

    request_obj = InstitutionRequest.objects.filter(pk=request_id).first()
    if request_obj is None:
        raise NotFound("Request not found")
    return request_obj


def _claim_decision(request_id, *, to_status: str, actor, now) -> None:
    """Compare-and-set PENDING -> to_status. Only one caller can win."""

    updated = InstitutionRequest.objects.filter(
        pk=request_id,
        status=InstitutionRequest.Status.PENDING,
    ).update(
        status=to_status,
        decided_by=actor if getattr(actor, "pk", None) else None,
        decided_at=now,
    )
    if updated != 1:
        raise AlreadyDecided()


def approve_request(request_id, actor) -> InstitutionRequest:
    """Approve a PENDING request and create the issuing account.

    The initial password of the new account is its email address. Operators
    are expected to treat first login as a password-reset trigger; setting
    ONBOARDING_FORCE_PASSWORD_CHANGE makes the API enforce it.
    """

    request_obj = _get_request(request_id)
    if not request_obj.is_pending:
        raise AlreadyDecided()

    email = normalize_email(request_obj.email)
    force_change = bool(getattr(settings, "ONBOARDING_FORCE_PASSWORD_CHANGE", False))

    try:
        with transaction.atomic():
            now = timezone.now()
            _claim_decision(request_obj.pk, to_status=InstitutionRequest.Status.APPROVED, actor=actor, now=now)

            if email_in_use(email):
                raise DuplicateEmail("An account with this email was created after the request was submitted")

            user = User.objects.create_user(
                username=email,
                email=email,
                password=email,
                name=request_obj.institution_name,
                role=User.Role.INSTITUTION,
                must_change_password=force_change,
            )
            Institution.objects.create(
                user=user,
                name=request_obj.institution_name,
                contact_number=request_obj.phone,
                address=request_obj.address,
            )
            InstitutionRequest.objects.filter(pk=request_obj.pk).update(created_user=user)
    except IntegrityError as exc:
        raise DuplicateEmail() from exc

    request_obj.refresh_from_db()
    logger.info("Institution request approved id=%s user=%s", request_obj.pk, request_obj.created_user_id)
    return request_obj


def reject_request(request_id, actor) -> InstitutionRequest:
    request_obj = _get_request(request_id)
    if not request_obj.is_pending:
        raise AlreadyDecided()

    _claim_decision(request_obj.pk, to_status=InstitutionRequest.Status.REJECTED, actor=actor, now=timezone.now())

    request_obj.refresh_from_db()
    logger.info("Institution request rejected id=%s", request_obj.pk)
    return request_obj


def get_issuer_profile(user) -> Optional[Institution]:
    if user is None or not getattr(user, "pk", None):
        return None
    return Institution.objects.filter(user_id=user.pk).first()


def create_issuer_profile(
    user,
    *,
    name: str,
    contact_number: str = "",
    address: str = "",
    location_url: str = "",
    logo=None,
) -> Institution:
    name = clean_text(name) or clean_text(getattr(user, "name", ""))
    if not name:
        raise ValidationFailed("Institution name is required")
    if get_issuer_profile(user) is not None:
        raise DuplicateProfile()

    try:
        with transaction.atomic():
            institution = Institution(
                user=user,
                name=name,
                contact_number=clean_text(contact_number),
                address=clean_text(address),
                location_url=clean_text(location_url),
            )
            if logo is not None:
                institution.logo = logo
            institution.save()
    except IntegrityError as exc:
        raise DuplicateProfile() from exc
    return institution


def update_issuer_profile(user, **fields) -> Institution:
    institution = get_issuer_profile(user)
    if institution is None:
        raise NotFound("Institution not found")

    update_fields: list[str] = []
    for field in ("name", "contact_number", "address", "location_url"):
        if field in fields and fields[field] is not None:
            value = clean_text(fields[field])
            if field == "name" and not value:
                continue
            setattr(institution, field, value)
            update_fields.append(field)

    if fields.get("logo") is not None:
        institution.logo = fields["logo"]
        update_fields.append("logo")

    if update_fields:
        institution.save(update_fields=[*update_fields, "updated_at"])
    return institution
