import threading
import uuid
from unittest import mock

import requests
from django.core.cache import cache
from django.db import connection
from django.test import SimpleTestCase, TestCase, override_settings
from django.test.utils import CaptureQueriesContext
from rest_framework import status
from rest_framework.test import APIClient

from core.exceptions import ATTESTATION_FAILED, NOTIFICATION_FAILED, REMOTE_ERROR, TIMEOUT, NoIssuerProfile, NotFound
from institutions import services as institution_services
from institutions.models import Institution
from notifications import services as notification_services
from notifications.models import Notification
from users import services as user_services
from users.models import User

from . import services
from .attestation import (
    AttestationError,
    AttestationPayload,
    AttestationTimeout,
    HttpAttestationBackend,
    LocalAttestationBackend,
    attest_with_timeout,
)
from .models import Certificate


PASSWORD = "Str0ng-pass-2026"


class FixedReferenceBackend:
    def __init__(self, reference="ref-0001"):
        self.reference = reference
        self.calls = []

    def attest(self, payload):
        self.calls.append(payload)
        return self.reference


class FailingBackend:
    def attest(self, payload):
        raise AttestationError("ledger rejected the call")


class BlockingBackend:
    """Never answers until released."""

    def __init__(self):
        self.release = threading.Event()

    def attest(self, payload):
        self.release.wait(5)
        return "too-late"


class IssuanceServiceTests(TestCase):
    def setUp(self):
        self.issuer = user_services.create_account(
            name="Acme Academy",
            email="acme@example.com",
            password=PASSWORD,
            role=User.Role.INSTITUTION,
        )
        self.institution = Institution.objects.get(user=self.issuer)

    def issue(self, backend=None, **kwargs):
        params = {
            "issuer": self.issuer,
            "recipient_name": "Jane Doe",
            "recipient_email": "Jane@Example.com",
            "subject": "Algorithms",
            "attestation_backend": backend or FixedReferenceBackend(),
        }
        params.update(kwargs)
        return services.issue_certificate(**params)

    def test_happy_path_persists_attests_and_notifies(self):
        backend = FixedReferenceBackend("ref-42")

        result = self.issue(backend, time_period="2026-01 to 2026-06")

        self.assertTrue(result.ok)
        self.assertEqual(result.status, "ok")
        cert = Certificate.objects.get(pk=result.certificate.pk)
        self.assertEqual(cert.attestation_id, "ref-42")
        self.assertIsNotNone(cert.attested_at)
        self.assertEqual(cert.recipient_email_snapshot, "jane@example.com")
        self.assertEqual(cert.institution_name_snapshot, "Acme Academy")
        self.assertEqual(cert.template, Certificate.Template.CLASSIC)

        self.assertEqual(len(backend.calls), 1)
        self.assertEqual(backend.calls[0].certificate_id, str(cert.pk))

        notification = Notification.objects.get()
        self.assertEqual(result.notification, notification)
        self.assertEqual(notification.recipient_email, "jane@example.com")
        self.assertEqual(notification.certificate_id, cert.pk)

    def test_snapshots_do_not_follow_profile_edits(self):
        result = self.issue()
        institution_services.update_issuer_profile(self.issuer, name="Acme University")

        cert = services.get_certificate(result.certificate.pk)
        self.assertEqual(cert.institution_name_snapshot, "Acme Academy")

    def test_issuer_without_profile_is_rejected_before_writing(self):
        student = user_services.create_account(name="Ana", email="ana@example.com", password=PASSWORD)

        with self.assertRaises(NoIssuerProfile):
            self.issue(issuer=student)
        self.assertFalse(Certificate.objects.exists())

    def test_missing_fields_are_rejected_before_writing(self):
        with self.assertRaises(ValueError):
            self.issue(subject="   ")
        self.assertFalse(Certificate.objects.exists())

    def test_attestation_failure_keeps_certificate(self):
        with CaptureQueriesContext(connection) as ctx:
            result = self.issue(FailingBackend())

        self.assertTrue(result.degraded)
        self.assertTrue(result.has_failure(ATTESTATION_FAILED))
        self.assertEqual(result.failures[0].reason, REMOTE_ERROR)

        cert = services.get_certificate(result.certificate.pk)
        self.assertIsNone(cert.attestation_id)
        self.assertIsNone(cert.attested_at)
        self.assertEqual(cert.subject, result.certificate.subject)
        table = Certificate._meta.db_table
        updates = [q["sql"] for q in ctx.captured_queries if q["sql"].startswith("UPDATE") and table in q["sql"]]
        self.assertEqual(updates, [])
        self.assertIn(cert, list(services.list_by_issuer(self.issuer)))
        self.assertIn(cert, list(services.list_unattested()))
        # Notification still goes out.
        self.assertEqual(Notification.objects.filter(certificate=cert).count(), 1)

    @override_settings(ATTESTATION_TIMEOUT_SECONDS=0.2)
    def test_attestation_timeout_reports_failure_with_certificate_id(self):
        backend = BlockingBackend()
        self.addCleanup(backend.release.set)

        result = self.issue(backend)

        self.assertTrue(result.has_failure(ATTESTATION_FAILED))
        self.assertEqual(result.failures[0].reason, TIMEOUT)
        cert = Certificate.objects.get(pk=result.certificate.pk)
        self.assertIsNone(cert.attestation_id)
        self.assertIsNone(cert.attested_at)

    def test_notification_failure_does_not_roll_back(self):
        with mock.patch(
            "notifications.services.create_certificate_notification",
            side_effect=RuntimeError("ledger table locked"),
        ):
            result = self.issue()

        self.assertTrue(result.has_failure(NOTIFICATION_FAILED))
        self.assertFalse(result.has_failure(ATTESTATION_FAILED))
        self.assertIsNone(result.notification)
        self.assertTrue(Certificate.objects.filter(pk=result.certificate.pk, attestation_id="ref-0001").exists())
        self.assertFalse(Notification.objects.exists())

    def test_blank_recipient_email_skips_notification(self):
        result = self.issue(recipient_email="")

        self.assertTrue(result.ok)
        self.assertIsNone(result.notification)
        self.assertFalse(Notification.objects.exists())

    def test_recipient_without_account_still_gets_notification(self):
        self.assertFalse(User.objects.filter(email="jane@example.com").exists())

        self.issue()

        self.assertEqual(notification_services.unread_count("jane@example.com"), 1)
        self.assertEqual(services.list_by_recipient_email("JANE@example.com").count(), 1)

    def test_unknown_template_falls_back_to_classic(self):
        result = self.issue(template="neon")
        self.assertEqual(result.certificate.template, Certificate.Template.CLASSIC)

    def test_record_attestation_writes_once(self):
        result = self.issue(FailingBackend())
        pk = result.certificate.pk

        self.assertTrue(services.record_attestation(pk, "first"))
        self.assertFalse(services.record_attestation(pk, "second"))
        cert = Certificate.objects.get(pk=pk)
        self.assertEqual(cert.attestation_id, "first")
        self.assertIsNotNone(cert.attested_at)

    def test_get_certificate_not_found(self):
        with self.assertRaises(NotFound):
            services.get_certificate(uuid.uuid4())
        with self.assertRaises(NotFound):
            services.get_certificate("not-a-uuid")

    @override_settings(ATTESTATION_BACKEND="certificates.tests.FailingBackend")
    def test_configured_backend_is_used_by_default(self):
        result = services.issue_certificate(issuer=self.issuer, recipient_name="Jane", subject="Algorithms")
        self.assertTrue(result.has_failure(ATTESTATION_FAILED))


class OnboardingToIssuanceScenarioTests(TestCase):
    def test_approved_institution_issues_and_recipient_is_notified(self):
        admin = User.objects.create_user(email="root@example.com", password=PASSWORD, role=User.Role.ADMIN)
        req = institution_services.submit_request(institution_name="Acme U", email="admin@acme.edu")
        institution_services.approve_request(req.pk, admin)
        issuer = User.objects.get(email="admin@acme.edu")

        result = services.issue_certificate(
            issuer=issuer,
            recipient_name="Jane Doe",
            recipient_email="jane@example.com",
            subject="Algorithms",
            attestation_backend=FixedReferenceBackend(),
        )

        notifications = Notification.objects.filter(recipient_email="jane@example.com")
        self.assertEqual(notifications.count(), 1)
        self.assertEqual(notifications.get().certificate_id, result.certificate.pk)
        self.assertEqual(notification_services.unread_count("jane@example.com"), 1)
        self.assertEqual(result.certificate.institution_name_snapshot, "Acme U")


class AttestationBackendTests(SimpleTestCase):
    payload = AttestationPayload(
        certificate_id="c1",
        subject="Algorithms",
        recipient_name="Jane Doe",
        recipient_email="jane@example.com",
    )

    def test_local_backend_is_deterministic(self):
        backend = LocalAttestationBackend()
        first = backend.attest(self.payload)
        self.assertTrue(first.startswith("local-"))
        self.assertEqual(first, backend.attest(self.payload))

    def test_http_backend_reads_reference(self):
        response = mock.Mock()
        response.raise_for_status.return_value = None
        response.json.return_value = {"tokenId": 42}

        backend = HttpAttestationBackend(url="https://ledger.example.com/mint", token="secret", timeout_seconds=3)
        with mock.patch("certificates.attestation.requests.post", return_value=response) as post:
            self.assertEqual(backend.attest(self.payload), "42")

        _, kwargs = post.call_args
        self.assertEqual(kwargs["json"]["certificate_id"], "c1")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer secret")
        self.assertEqual(kwargs["timeout"], 3.0)

    def test_http_backend_maps_errors(self):
        backend = HttpAttestationBackend(url="https://ledger.example.com/mint", token="", timeout_seconds=1)

        with mock.patch("certificates.attestation.requests.post", side_effect=requests.Timeout("slow")):
            with self.assertRaises(AttestationTimeout):
                backend.attest(self.payload)

        with mock.patch("certificates.attestation.requests.post", side_effect=requests.ConnectionError("down")):
            with self.assertRaises(AttestationError):
                backend.attest(self.payload)

        empty = mock.Mock()
        empty.raise_for_status.return_value = None
        empty.json.return_value = {}
        with mock.patch("certificates.attestation.requests.post", return_value=empty):
            with self.assertRaises(AttestationError):
                backend.attest(self.payload)

    def test_http_backend_requires_url(self):
        with self.assertRaises(AttestationError):
            HttpAttestationBackend(url="", token="", timeout_seconds=1).attest(self.payload)

    def test_attest_with_timeout(self):
        self.assertEqual(attest_with_timeout(FixedReferenceBackend("abc"), self.payload, timeout_seconds=1), "abc")

        backend = BlockingBackend()
        self.addCleanup(backend.release.set)
        with self.assertRaises(AttestationTimeout):
            attest_with_timeout(backend, self.payload, timeout_seconds=0.1)


class CertificateAPITests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.issuer = user_services.create_account(
            name="Acme Academy",
            email="acme@example.com",
            password=PASSWORD,
            role=User.Role.INSTITUTION,
        )
        self.student = user_services.create_account(name="Jane Doe", email="jane@example.com", password=PASSWORD)

    def issue_via_api(self, **data):
        payload = {"recipient_name": "Jane Doe", "recipient_email": "jane@example.com", "subject": "Algorithms"}
        payload.update(data)
        return self.client.post("/api/certificates/", payload, format="json")

    def test_institution_issues_and_lists(self):
        self.client.force_authenticate(user=self.issuer)

        res = self.issue_via_api()
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["status"], "ok")
        self.assertEqual(res.data["failures"], [])
        self.assertIsNotNone(res.data["notification_id"])
        self.assertTrue(res.data["certificate"]["is_attested"])

        listing = self.client.get("/api/certificates/")
        self.assertEqual(listing.status_code, status.HTTP_200_OK)
        self.assertEqual(len(listing.data["certificates"]), 1)

    @override_settings(ATTESTATION_BACKEND="certificates.tests.FailingBackend")
    def test_degraded_issuance_still_returns_201(self):
        self.client.force_authenticate(user=self.issuer)

        res = self.issue_via_api()
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["status"], "degraded")
        self.assertEqual(res.data["failures"][0]["code"], ATTESTATION_FAILED)
        self.assertIsNone(res.data["certificate"]["attestation_id"])

    def test_validation_and_role_gates(self):
        self.client.force_authenticate(user=self.issuer)
        res = self.issue_via_api(subject="")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        self.client.force_authenticate(user=self.student)
        self.assertEqual(self.issue_via_api().status_code, status.HTTP_403_FORBIDDEN)

    def test_issuer_without_profile(self):
        Institution.objects.filter(user=self.issuer).delete()
        self.client.force_authenticate(user=self.issuer)

        res = self.issue_via_api()
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["code"], "NO_ISSUER_PROFILE")

    def test_recipient_lists_own_certificates(self):
        self.client.force_authenticate(user=self.issuer)
        self.issue_via_api()
        self.issue_via_api(recipient_email="someone.else@example.com")

        self.client.force_authenticate(user=self.student)
        res = self.client.get("/api/certificates/student/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(len(res.data["certificates"]), 1)
        self.assertEqual(res.data["certificates"][0]["recipient_email_snapshot"], "jane@example.com")

    def test_public_lookup_hides_recipient_email(self):
        self.client.force_authenticate(user=self.issuer)
        cert_id = self.issue_via_api().data["certificate"]["id"]

        anonymous = APIClient()
        res = anonymous.get(f"/api/certificates/{cert_id}/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["subject"], "Algorithms")
        self.assertNotIn("recipient_email_snapshot", res.data)

        res = anonymous.get(f"/api/certificates/{uuid.uuid4()}/")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(res.data["code"], "NOT_FOUND")

    @override_settings(PUBLIC_CERTIFICATE_THROTTLE_RATE="2/min")
    def test_public_lookup_is_throttled(self):
        cert = Certificate.objects.create(
            institution=Institution.objects.get(user=self.issuer),
            institution_name_snapshot="Acme Academy",
            recipient_name_snapshot="Jane Doe",
            subject="Algorithms",
        )

        anonymous = APIClient()
        for _ in range(2):
            self.assertEqual(anonymous.get(f"/api/certificates/{cert.pk}/").status_code, status.HTTP_200_OK)
        self.assertEqual(anonymous.get(f"/api/certificates/{cert.pk}/").status_code, status.HTTP_429_TOO_MANY_REQUESTS)
