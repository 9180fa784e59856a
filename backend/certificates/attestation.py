"""Client side of the external attestation (minting) service.

The service is opaque: it receives the certificate data and returns a string
reference. The backend is chosen with the ATTESTATION_BACKEND setting.
"""

from __future__ import annotations

import hashlib
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import asdict, dataclass

import requests
from django.conf import settings
from django.utils.module_loading import import_string


logger = logging.getLogger(__name__)

DEFAULT_BACKEND = "certificates.attestation.LocalAttestationBackend"


class AttestationError(Exception):
    """The attestation service rejected the call or could not be reached."""


class AttestationTimeout(AttestationError):
    """No answer within the engine's timeout."""


@dataclass(frozen=True)
class AttestationPayload:
    certificate_id: str
    subject: str
    recipient_name: str
    recipient_email: str

    def as_dict(self) -> dict:
        return asdict(self)


class LocalAttestationBackend:
    """Development backend. Returns a reference derived from the payload digest."""

    def attest(self, payload: AttestationPayload) -> str:
        raw = json.dumps(payload.as_dict(), sort_keys=True).encode("utf-8")
        return "local-" + hashlib.sha256(raw).hexdigest()[:32]


class HttpAttestationBackend:
    def __init__(self, *, url: str | None = None, token: str | None = None, timeout_seconds: float | None = None):
        self.url = str(url if url is not None else getattr(settings, "ATTESTATION_SERVICE_URL", "") or "").strip()
        self.token = str(token if token is not None else getattr(settings, "ATTESTATION_SERVICE_TOKEN", "") or "").strip()
        self.timeout_seconds = float(
            timeout_seconds if timeout_seconds is not None else getattr(settings, "ATTESTATION_TIMEOUT_SECONDS", 10)
        )

    def attest(self, payload: AttestationPayload) -> str:
        if not self.url:
            raise AttestationError("ATTESTATION_SERVICE_URL is not configured.")

        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = requests.post(self.url, json=payload.as_dict(), headers=headers, timeout=self.timeout_seconds)
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as exc:
            raise AttestationTimeout(f"Attestation service timed out: {exc}") from exc
        except requests.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else "unknown"
            raise AttestationError(f"Attestation service HTTP error ({status_code})") from exc
        except requests.RequestException as exc:
            raise AttestationError(f"Could not reach attestation service: {exc}") from exc
        except ValueError as exc:
            raise AttestationError("Attestation service returned invalid JSON") from exc

        reference = ""
        if isinstance(data, dict):
            reference = str(data.get("reference") or data.get("tokenId") or data.get("token_id") or "").strip()
        if not reference:
            raise AttestationError("Attestation service returned no reference")
        return reference


def get_attestation_backend():
    path = str(getattr(settings, "ATTESTATION_BACKEND", "") or DEFAULT_BACKEND)
    return import_string(path)()


def attest_with_timeout(backend, payload: AttestationPayload, *, timeout_seconds: float) -> str:
    """Run ``backend.attest`` and stop waiting after ``timeout_seconds``.

    The worker thread is abandoned on timeout; its eventual result is ignored.
    """

    ex = ThreadPoolExecutor(max_workers=1)
    fut = ex.submit(backend.attest, payload)
    try:
        reference = fut.result(timeout=timeout_seconds)
    except FutureTimeoutError as exc:
        raise AttestationTimeout(f"No attestation answer after {timeout_seconds}s") from exc
    finally:
        ex.shutdown(wait=False, cancel_futures=True)

    reference = str(reference or "").strip()
    if not reference:
        raise AttestationError("Attestation backend returned an empty reference")
    return reference
