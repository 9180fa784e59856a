import shutil
import tempfile
import threading
import unittest
from io import BytesIO
from unittest import mock

from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from PIL import Image
from rest_framework import status
from rest_framework.test import APIClient

from audit.models import AuditLog
from core.exceptions import (
    AlreadyDecided,
    DuplicateEmail,
    DuplicatePending,
    DuplicateProfile,
    NotFound,
    ValidationFailed,
)
from users import services as user_services
from users.models import User

from . import services
from .models import Institution, InstitutionRequest


PASSWORD = "Str0ng-pass-2026"


def _pdf(name="proof.pdf"):
    return SimpleUploadedFile(name, b"%PDF-1.4 minimal", content_type="application/pdf")


def _png(name="logo.png"):
    buf = BytesIO()
    Image.new("RGB", (4, 4), color=(10, 120, 200)).save(buf, format="PNG")
    return SimpleUploadedFile(name, buf.getvalue(), content_type="image/png")


class MediaRootMixin:
    def setUp(self):
        super().setUp()
        media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, media_root, ignore_errors=True)
        media_override = override_settings(MEDIA_ROOT=media_root)
        media_override.enable()
        self.addCleanup(media_override.disable)


class OnboardingServiceTests(MediaRootMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.admin = User.objects.create_user(email="admin@example.com", password=PASSWORD, role=User.Role.ADMIN)

    def submit(self, email="acme@example.com", **kwargs):
        return services.submit_request(
            institution_name=kwargs.pop("institution_name", "Acme Academy"),
            email=email,
            phone=kwargs.pop("phone", "+57 300 000 0000"),
            address=kwargs.pop("address", "Main St 1"),
            document=kwargs.pop("document", None),
        )

    def test_submit_stores_normalized_pending_request_with_document(self):
        req = self.submit(email="  ACME@Example.com ", document=_pdf())

        self.assertEqual(req.email, "acme@example.com")
        self.assertEqual(req.status, InstitutionRequest.Status.PENDING)
        self.assertEqual(req.document_original_name, "proof.pdf")
        self.assertTrue(req.document.name.startswith("institution-documents/"))
        self.assertEqual(list(services.list_pending_requests()), [req])

    def test_submit_rejects_duplicates(self):
        self.submit()
        with self.assertRaises(DuplicatePending):
            self.submit(email="Acme@example.com")

        with self.assertRaises(DuplicateEmail):
            self.submit(email="admin@example.com")

    def test_submit_requires_name_and_email(self):
        with self.assertRaises(ValueError):
            self.submit(institution_name="   ")

    def test_resubmission_allowed_after_rejection(self):
        first = self.submit()
        services.reject_request(first.pk, self.admin)

        second = self.submit()
        self.assertNotEqual(first.pk, second.pk)
        self.assertTrue(second.is_pending)

    def test_approve_creates_issuer_account_and_profile(self):
        req = self.submit()

        approved = services.approve_request(req.pk, self.admin)

        self.assertEqual(approved.status, InstitutionRequest.Status.APPROVED)
        self.assertEqual(approved.decided_by_id, self.admin.pk)
        self.assertIsNotNone(approved.decided_at)

        user = User.objects.get(email="acme@example.com")
        self.assertEqual(approved.created_user_id, user.pk)
        self.assertEqual(user.role, User.Role.INSTITUTION)
        self.assertEqual(user.name, "Acme Academy")
        # Initial password is the email address.
        self.assertTrue(user.check_password("acme@example.com"))
        self.assertFalse(user.must_change_password)

        institution = Institution.objects.get(user=user)
        self.assertEqual(institution.name, "Acme Academy")
        self.assertEqual(institution.contact_number, "+57 300 000 0000")
        self.assertEqual(institution.address, "Main St 1")

    @override_settings(ONBOARDING_FORCE_PASSWORD_CHANGE=True)
    def test_approve_can_force_password_change(self):
        req = self.submit()
        services.approve_request(req.pk, self.admin)

        self.assertTrue(User.objects.get(email="acme@example.com").must_change_password)

    def test_decisions_are_final(self):
        req = self.submit()
        services.approve_request(req.pk, self.admin)

        with self.assertRaises(AlreadyDecided):
            services.approve_request(req.pk, self.admin)
        with self.assertRaises(AlreadyDecided):
            services.reject_request(req.pk, self.admin)

        self.assertEqual(User.objects.filter(email="acme@example.com").count(), 1)

    def test_reject_creates_no_account(self):
        req = self.submit()

        rejected = services.reject_request(req.pk, self.admin)

        self.assertEqual(rejected.status, InstitutionRequest.Status.REJECTED)
        self.assertIsNone(rejected.created_user_id)
        self.assertFalse(User.objects.filter(email="acme@example.com").exists())

    def test_unknown_request(self):
        with self.assertRaises(NotFound):
            services.approve_request(999999, self.admin)
        with self.assertRaises(NotFound):
            services.reject_request(999999, self.admin)
        with self.assertRaises(ValidationFailed):
            services.approve_request("abc", self.admin)

    def test_stale_approval_loses_the_compare_and_set(self):
        req = self.submit()
        stale = InstitutionRequest.objects.get(pk=req.pk)

        services.approve_request(req.pk, self.admin)

        # A second admin read the request before the first decision landed.
        with mock.patch.object(services, "_get_request", return_value=stale):
            with self.assertRaises(AlreadyDecided):
                services.approve_request(req.pk, self.admin)

        self.assertEqual(User.objects.filter(email="acme@example.com").count(), 1)
        self.assertEqual(Institution.objects.filter(user__email="acme@example.com").count(), 1)

    def test_approve_rolls_back_when_email_was_taken_meanwhile(self):
        req = self.submit()
        user_services.create_account(name="Someone", email="acme@example.com", password=PASSWORD)

        with self.assertRaises(DuplicateEmail):
            services.approve_request(req.pk, self.admin)

        req.refresh_from_db()
        self.assertEqual(req.status, InstitutionRequest.Status.PENDING)
        self.assertIsNone(req.decided_at)
        self.assertFalse(Institution.objects.filter(user__email="acme@example.com").exists())


class IssuerProfileServiceTests(MediaRootMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.user = User.objects.create_user(email="acme@example.com", password=PASSWORD, role=User.Role.INSTITUTION)

    def test_create_then_duplicate(self):
        institution = services.create_issuer_profile(self.user, name="Acme", logo=_png())

        self.assertEqual(services.get_issuer_profile(self.user), institution)
        self.assertTrue(institution.logo.name.startswith("institutions/logos/"))
        with self.assertRaises(DuplicateProfile):
            services.create_issuer_profile(self.user, name="Acme again")

    def test_update_keeps_blank_name_unchanged(self):
        services.create_issuer_profile(self.user, name="Acme")

        updated = services.update_issuer_profile(self.user, name="  ", address="Elm St 2")

        self.assertEqual(updated.name, "Acme")
        self.assertEqual(updated.address, "Elm St 2")

    def test_update_without_profile(self):
        with self.assertRaises(NotFound):
            services.update_issuer_profile(self.user, name="Acme")


class OnboardingAPITests(MediaRootMixin, TestCase):
    def setUp(self):
        super().setUp()
        cache.clear()
        self.client = APIClient()
        self.admin = User.objects.create_user(email="admin@example.com", password=PASSWORD, role=User.Role.ADMIN)

    def signup(self, email="acme@example.com"):
        return self.client.post(
            "/api/auth/signup/institution/",
            {
                "institution_name": "Acme Academy",
                "email": email,
                "phone": "123",
                "address": "Main St 1",
                "document": _pdf(),
            },
            format="multipart",
        )

    def test_signup_and_duplicate_pending(self):
        res = self.signup()
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(InstitutionRequest.objects.count(), 1)

        res = self.signup(email="ACME@example.com")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["code"], "DUPLICATE_PENDING")

        res = self.signup(email="admin@example.com")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["code"], "DUPLICATE_EMAIL")

    def test_signup_rejects_oversized_document(self):
        big = SimpleUploadedFile("big.pdf", b"0" * (10 * 1024 * 1024 + 1), content_type="application/pdf")
        res = self.client.post(
            "/api/auth/signup/institution/",
            {"institution_name": "Acme", "email": "acme@example.com", "document": big},
            format="multipart",
        )
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(InstitutionRequest.objects.exists())

    def test_admin_approves_then_institution_logs_in(self):
        self.signup()
        req = InstitutionRequest.objects.get()

        self.client.force_authenticate(user=self.admin)
        listing = self.client.get("/api/admin/institution-requests/")
        self.assertEqual(listing.status_code, status.HTTP_200_OK)
        self.assertEqual([r["id"] for r in listing.data["results"]], [req.pk])

        res = self.client.post(f"/api/admin/institution-requests/{req.pk}/approve/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], InstitutionRequest.Status.APPROVED)
        self.assertEqual(res.data["decided_by_email"], "admin@example.com")
        self.assertTrue(
            AuditLog.objects.filter(
                event_type=AuditLog.EventType.INSTITUTION_REQUEST_APPROVED,
                object_id=str(req.pk),
                actor_email="admin@example.com",
            ).exists()
        )

        res = self.client.post(f"/api/admin/institution-requests/{req.pk}/approve/")
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(res.data["code"], "ALREADY_DECIDED")

        # Decided requests drop out of the default listing.
        listing = self.client.get("/api/admin/institution-requests/")
        self.assertEqual(listing.data["results"], [])
        listing = self.client.get("/api/admin/institution-requests/", {"status": "APPROVED"})
        self.assertEqual(len(listing.data["results"]), 1)

        self.client.force_authenticate(user=None)
        login = self.client.post(
            "/api/auth/login/",
            {"email": "acme@example.com", "password": "acme@example.com"},
            format="json",
        )
        self.assertEqual(login.status_code, status.HTTP_200_OK)
        self.assertEqual(login.data["user"]["role"], User.Role.INSTITUTION)

    def test_reject_via_api(self):
        self.signup()
        req = InstitutionRequest.objects.get()

        self.client.force_authenticate(user=self.admin)
        res = self.client.post(f"/api/admin/institution-requests/{req.pk}/reject/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], InstitutionRequest.Status.REJECTED)
        self.assertTrue(AuditLog.objects.filter(event_type=AuditLog.EventType.INSTITUTION_REQUEST_REJECTED).exists())

        res = self.client.post(f"/api/admin/institution-requests/{req.pk}/approve/")
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)

    def test_non_admin_cannot_decide(self):
        self.signup()
        req = InstitutionRequest.objects.get()
        student = User.objects.create_user(email="ana@example.com", password=PASSWORD, role=User.Role.STUDENT)

        self.client.force_authenticate(user=student)
        res = self.client.post(f"/api/admin/institution-requests/{req.pk}/approve/")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)
        req.refresh_from_db()
        self.assertTrue(req.is_pending)

    def test_non_numeric_request_id_is_a_bad_request(self):
        self.client.force_authenticate(user=self.admin)
        for action in ("approve", "reject"):
            res = self.client.post(f"/api/admin/institution-requests/abc/{action}/")
            self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST, action)
            self.assertEqual(res.data["code"], "VALIDATION_ERROR")


class IssuerProfileAPITests(MediaRootMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.user = User.objects.create_user(
            email="acme@example.com",
            name="Acme",
            password=PASSWORD,
            role=User.Role.INSTITUTION,
        )
        self.client.force_authenticate(user=self.user)

    def test_me_without_profile_returns_404(self):
        res = self.client.get("/api/institution/me/")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(res.data["code"], "NO_ISSUER_PROFILE")

    def test_create_read_update(self):
        res = self.client.post(
            "/api/institution/create/",
            {"name": "Acme Academy", "contact_number": "123", "logo": _png()},
            format="multipart",
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)

        res = self.client.post("/api/institution/create/", {"name": "Again"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["code"], "DUPLICATE_PROFILE")

        res = self.client.patch("/api/institution/me/", {"location_url": "https://maps.example.com/acme"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["name"], "Acme Academy")
        self.assertEqual(res.data["location_url"], "https://maps.example.com/acme")

    def test_students_cannot_manage_issuer_profiles(self):
        student = User.objects.create_user(email="ana@example.com", password=PASSWORD, role=User.Role.STUDENT)
        self.client.force_authenticate(user=student)

        self.assertEqual(self.client.get("/api/institution/me/").status_code, status.HTTP_403_FORBIDDEN)


class InterleavedApprovalTests(TransactionTestCase):
    def test_second_admin_deciding_mid_approval_wins_once(self):
        admin = User.objects.create_user(email="admin@example.com", password=PASSWORD, role=User.Role.ADMIN)
        other_admin = User.objects.create_user(email="other@example.com", password=PASSWORD, role=User.Role.ADMIN)
        req = services.submit_request(institution_name="Acme", email="acme@example.com")

        real_get_request = services._get_request
        outcomes = []

        def read_then_let_other_admin_approve(request_id):
            request_obj = real_get_request(request_id)
            with mock.patch.object(services, "_get_request", real_get_request):
                services.approve_request(request_id, other_admin)
            outcomes.append("other_approved")
            return request_obj

        with mock.patch.object(services, "_get_request", side_effect=read_then_let_other_admin_approve):
            with self.assertRaises(AlreadyDecided):
                services.approve_request(req.pk, admin)

        self.assertEqual(outcomes, ["other_approved"])
        req.refresh_from_db()
        self.assertEqual(req.status, InstitutionRequest.Status.APPROVED)
        self.assertEqual(req.decided_by_id, other_admin.pk)
        self.assertEqual(User.objects.filter(email="acme@example.com").count(), 1)
        self.assertEqual(Institution.objects.filter(user__email="acme@example.com").count(), 1)


@unittest.skipUnless(connection.vendor == "postgresql", "row-level races need a real concurrent database")
class ConcurrentApprovalTests(TransactionTestCase):
    def test_two_admins_approving_at_once_create_one_account(self):
        admin = User.objects.create_user(email="admin@example.com", password=PASSWORD, role=User.Role.ADMIN)
        req = services.submit_request(institution_name="Acme", email="acme@example.com")

        barrier = threading.Barrier(2)
        outcomes = []

        def approve():
            try:
                barrier.wait()
                services.approve_request(req.pk, admin)
                outcomes.append("approved")
            except AlreadyDecided:
                outcomes.append("already_decided")
            finally:
                connection.close()

        threads = [threading.Thread(target=approve) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(sorted(outcomes), ["already_decided", "approved"])
        self.assertEqual(User.objects.filter(email="acme@example.com").count(), 1)
