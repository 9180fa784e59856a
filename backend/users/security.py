from __future__ import annotations


PASSWORD_CHANGE_ALLOWED_PATH_PREFIXES = (
    "/api/auth/me/",
    "/api/auth/profile/",
    "/api/auth/change-password/",
)


def is_password_change_exempt_path(path: str) -> bool:
    normalized = (path or "").strip()
    return any(normalized.startswith(prefix) for prefix in PASSWORD_CHANGE_ALLOWED_PATH_PREFIXES)
