from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from django.conf import settings
from django.contrib.auth.hashers import make_password
from django.db import IntegrityError, transaction

from core.exceptions import (
    Banned,
    DuplicateEmail,
    HasIssuedCertificates,
    InvalidCredentials,
    NotFound,
    ValidationFailed,
)
from core.text import clean_text, normalize_email

from .models import StudentProfile, User


logger = logging.getLogger(__name__)

PUBLIC_SIGNUP_ROLES = {User.Role.STUDENT, User.Role.INSTITUTION}


def _parse_user_id(user_id) -> int:
    try:
        return int(user_id)
    except (TypeError, ValueError) as exc:
        raise ValidationFailed("Invalid user id") from exc


def _get_user(user_id) -> User:
    user = User.objects.filter(pk=_parse_user_id(user_id)).first()
    if user is None:
        raise NotFound("User not found")
    return user


def email_in_use(email: str, *, exclude_user_id=None) -> bool:
    qs = User.objects.filter(email__iexact=normalize_email(email))
    if exclude_user_id is not None:
        qs = qs.exclude(pk=exclude_user_id)
    return qs.exists()


def parse_role(value) -> str:
    role = clean_text(value).upper()
    if role not in User.Role.values:
        raise ValidationFailed(f"Invalid role: {value!r}")
    return role


def create_account(
    *,
    name: str,
    email: str,
    password: str,
    role: str = User.Role.STUDENT,
    date_of_birth: Optional[date] = None,
    must_change_password: bool = False,
) -> User:
    """Create an account and the profile row its role requires.

    STUDENT accounts get a StudentProfile. INSTITUTION accounts get an issuer
    profile named after the account; the name is a copy, later edits to either
    side are not synced.
    """

    email = normalize_email(email)
    role = parse_role(role)
    if email_in_use(email):
        raise DuplicateEmail()

    try:
        with transaction.atomic():
            user = User.objects.create_user(
                username=email,
                email=email,
                password=password,
                name=clean_text(name),
                role=role,
                must_change_password=must_change_password,
            )
            if role == User.Role.STUDENT:
                StudentProfile.objects.create(user=user, date_of_birth=date_of_birth)
            elif role == User.Role.INSTITUTION:
                from institutions.models import Institution  # noqa: PLC0415

                Institution.objects.create(user=user, name=user.name or email)
    except IntegrityError as exc:
        # Lost a race against another signup for the same email.
        raise DuplicateEmail() from exc

    logger.info("Account created id=%s role=%s", user.pk, role)
    return user


def authenticate_account(email: str, password: str) -> User:
    """Return the account for valid credentials.

    Unknown email and wrong password both raise InvalidCredentials. The ban is
    only reported after the password matched.
    """

    user = User.objects.filter(email__iexact=normalize_email(email)).first()
    if user is None:
        # Hash anyway so unknown emails take as long as wrong passwords.
        make_password(password)
        raise InvalidCredentials()

    if not user.check_password(password or ""):
        raise InvalidCredentials()

    if user.banned or not user.is_active:
        raise Banned()

    return user


def set_role(user_id, role) -> User:
    role = parse_role(role)
    user = _get_user(user_id)
    User.objects.filter(pk=user.pk).update(role=role)
    user.role = role
    return user


def set_banned(user_id, banned: bool) -> User:
    user = _get_user(user_id)
    User.objects.filter(pk=user.pk).update(banned=bool(banned))
    user.banned = bool(banned)
    return user


def update_profile(user_id, *, name: Optional[str] = None, email: Optional[str] = None) -> User:
    user = _get_user(user_id)

    update_fields: list[str] = []
    if name is not None and clean_text(name):
        user.name = clean_text(name)
        update_fields.append("name")

    if email is not None and normalize_email(email):
        new_email = normalize_email(email)
        if new_email != user.email:
            if email_in_use(new_email, exclude_user_id=user.pk):
                raise DuplicateEmail("Email already in use")
            user.email = new_email
            user.username = new_email
            update_fields.extend(["email", "username"])

    if not update_fields:
        raise ValidationFailed("No valid fields to update")

    try:
        user.save(update_fields=update_fields)
    except IntegrityError as exc:
        raise DuplicateEmail("Email already in use") from exc
    return user


def change_password(user_id, *, current_password: str, new_password: str) -> User:
    user = _get_user(user_id)
    if not user.check_password(current_password or ""):
        raise InvalidCredentials("Current password is incorrect")

    user.set_password(new_password)
    user.must_change_password = False
    user.save(update_fields=["password", "must_change_password"])
    return user


def delete_account(user_id) -> None:
    """Delete an account unless it owns issued certificates.

    Certificates and notifications are never removed through this path.
    """

    from certificates.models import Certificate  # noqa: PLC0415
    from institutions.models import Institution  # noqa: PLC0415

    user_id = _parse_user_id(user_id)
    with transaction.atomic():
        user = User.objects.select_for_update().filter(pk=user_id).first()
        if user is None:
            raise NotFound("User not found")

        # Checked for every role: an account demoted from INSTITUTION may still
        # own an issuer profile with certificates.
        institution = Institution.objects.filter(user=user).first()
        if institution is not None:
            if Certificate.objects.filter(institution=institution).exists():
                raise HasIssuedCertificates()
            institution.delete()

        StudentProfile.objects.filter(user=user).delete()
        user.delete()

    logger.info("Account deleted id=%s", user_id)


def seed_default_admin(email: Optional[str] = None, password: Optional[str] = None) -> Optional[User]:
    """Ensure the default admin exists. Never overwrites an existing account.

    Falls back to CERTMINT_ADMIN_EMAIL / CERTMINT_ADMIN_PASSWORD when no
    credentials are given. Returns None when nothing was created.
    """

    email = normalize_email(email or getattr(settings, "CERTMINT_ADMIN_EMAIL", ""))
    password = str(password or getattr(settings, "CERTMINT_ADMIN_PASSWORD", "") or "")
    if not email or not password:
        return None

    if User.objects.filter(email__iexact=email).exists():
        return None

    user = User.objects.create_user(
        username=email,
        email=email,
        password=password,
        name="Admin",
        role=User.Role.ADMIN,
        is_staff=True,
    )
    logger.info("Default admin created: %s", email)
    return user
