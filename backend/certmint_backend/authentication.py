from __future__ import annotations

from rest_framework import exceptions
from rest_framework_simplejwt.authentication import JWTAuthentication

from core.exceptions import Banned
from users.security import is_password_change_exempt_path


class CertmintJWTAuthentication(JWTAuthentication):
    """Bearer-token authentication that also honours bans and forced password changes."""

    def authenticate(self, request):
        header_auth = super().authenticate(request)
        if header_auth is None:
            return None

        user, validated_token = header_auth
        self._enforce_not_banned(user)
        self._enforce_password_change(user, request)
        return user, validated_token

    def _enforce_not_banned(self, user) -> None:
        if getattr(user, "banned", False):
            raise exceptions.PermissionDenied(Banned.default_detail, code=Banned.code)

    def _enforce_password_change(self, user, request) -> None:
        if not user or not getattr(user, "is_authenticated", False):
            return
        if not getattr(user, "must_change_password", False):
            return
        if is_password_change_exempt_path(getattr(request, "path", "")):
            return
        raise exceptions.PermissionDenied("You must change your temporary password before continuing.")
