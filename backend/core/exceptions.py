from __future__ import annotations

from rest_framework import status


class ServiceError(Exception):
    """Base class for domain errors raised by the service layer.

    Each subclass carries a stable machine-readable ``code`` and the HTTP status
    the API layer should answer with. Raised before any mutation happens, except
    where a service documents otherwise.
    """

    code = "SERVICE_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationFailed(ServiceError, ValueError):
    code = "VALIDATION_ERROR"
    default_detail = "Invalid input."


class NotFound(ServiceError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."


class DuplicateEmail(ServiceError):
    code = "DUPLICATE_EMAIL"
    default_detail = "Email already registered."


class DuplicatePending(ServiceError):
    code = "DUPLICATE_PENDING"
    default_detail = "A pending request with this email already exists."


class DuplicateProfile(ServiceError):
    code = "DUPLICATE_PROFILE"
    default_detail = "Institution profile already exists."


class AlreadyDecided(ServiceError):
    code = "ALREADY_DECIDED"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This request has already been decided."


class InvalidCredentials(ServiceError):
    code = "INVALID_CREDENTIALS"
    default_detail = "Invalid credentials."


class Banned(ServiceError):
    code = "BANNED"
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Account is banned. Contact admin."


class NoIssuerProfile(ServiceError):
    code = "NO_ISSUER_PROFILE"
    default_detail = "Institution profile not found."


class HasIssuedCertificates(ServiceError):
    code = "HAS_ISSUED_CERTIFICATES"
    status_code = status.HTTP_409_CONFLICT
    default_detail = (
        "Cannot delete this institution user because certificates were issued. "
        "Delete/transfer certificates first."
    )


# Partial-failure codes. These never propagate as exceptions once a
# certificate has been persisted; they are reported inside IssuanceResult.
ATTESTATION_FAILED = "ATTESTATION_FAILED"
NOTIFICATION_FAILED = "NOTIFICATION_FAILED"
TIMEOUT = "TIMEOUT"
REMOTE_ERROR = "REMOTE_ERROR"
