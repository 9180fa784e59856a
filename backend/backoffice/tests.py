from datetime import timedelta

from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from audit.models import AuditLog
from certificates.models import Certificate
from institutions.models import Institution, InstitutionRequest
from users import services as user_services
from users.models import User

from . import selectors


PASSWORD = "Str0ng-pass-2026"


class BackofficeFixtureMixin:
    def setUp(self):
        super().setUp()
        self.admin = User.objects.create_user(email="root@example.com", name="Root", password=PASSWORD, role=User.Role.ADMIN)
        self.issuer = user_services.create_account(
            name="Acme Academy",
            email="acme@example.com",
            password=PASSWORD,
            role=User.Role.INSTITUTION,
        )
        self.institution = Institution.objects.get(user=self.issuer)
        self.other_issuer = user_services.create_account(
            name="Beta School",
            email="beta@example.com",
            password=PASSWORD,
            role=User.Role.INSTITUTION,
        )
        self.other_institution = Institution.objects.get(user=self.other_issuer)
        self.jane = user_services.create_account(name="Jane Doe", email="jane@example.com", password=PASSWORD)

    def certificate(self, institution, subject="Algorithms", recipient_email="jane@example.com", **extra):
        return Certificate.objects.create(
            institution=institution,
            institution_name_snapshot=institution.name,
            recipient_name_snapshot=extra.pop("recipient_name", "Jane Doe"),
            recipient_email_snapshot=recipient_email,
            subject=subject,
            **extra,
        )


class StatsSelectorTests(BackofficeFixtureMixin, APITestCase):
    def test_platform_stats(self):
        self.certificate(self.institution)
        self.certificate(self.institution, attestation_id="ref-1")
        InstitutionRequest.objects.create(institution_name="Gamma", email="gamma@example.com")
        InstitutionRequest.objects.create(
            institution_name="Delta",
            email="delta@example.com",
            status=InstitutionRequest.Status.REJECTED,
        )

        stats = selectors.platform_stats()

        self.assertEqual(stats["total_accounts"], 4)
        self.assertEqual(
            stats["total_by_role"],
            {User.Role.STUDENT: 1, User.Role.INSTITUTION: 2, User.Role.ADMIN: 1},
        )
        self.assertEqual(stats["total_certificates"], 2)
        self.assertEqual(stats["pending_onboarding_count"], 1)
        self.assertEqual(stats["unattested_certificates"], 1)


class AdminUserAPITests(BackofficeFixtureMixin, APITestCase):
    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.admin)

    def test_list_filters_by_q_and_role(self):
        res = self.client.get("/api/admin/users/", {"q": "ACME"})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual([u["email"] for u in res.data["results"]], ["acme@example.com"])

        res = self.client.get("/api/admin/users/", {"role": "institution"})
        self.assertEqual({u["email"] for u in res.data["results"]}, {"acme@example.com", "beta@example.com"})

        res = self.client.get("/api/admin/users/", {"role": "nope"})
        self.assertEqual(res.data["results"], [])

    def test_page_size_is_capped(self):
        res = self.client.get("/api/admin/users/", {"page_size": 5000})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["count"], 4)

    def test_change_role(self):
        res = self.client.patch(f"/api/admin/users/{self.jane.pk}/", {"role": "INSTITUTION"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["role"], User.Role.INSTITUTION)
        self.assertTrue(AuditLog.objects.filter(event_type=AuditLog.EventType.USER_ROLE_CHANGED).exists())

        res = self.client.patch(f"/api/admin/users/{self.jane.pk}/", {"role": "ROOT"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.patch("/api/admin/users/999999/", {"role": "STUDENT"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_ban_and_unban(self):
        res = self.client.post(f"/api/admin/users/{self.jane.pk}/ban/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertTrue(res.data["banned"])

        res = self.client.post(f"/api/admin/users/{self.jane.pk}/unban/")
        self.assertFalse(res.data["banned"])
        self.assertEqual(
            AuditLog.objects.filter(
                event_type__in=[AuditLog.EventType.USER_BANNED, AuditLog.EventType.USER_UNBANNED],
                object_id=str(self.jane.pk),
            ).count(),
            2,
        )

    def test_delete_respects_issued_certificates(self):
        self.certificate(self.institution)

        res = self.client.delete(f"/api/admin/users/{self.issuer.pk}/")
        self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(res.data["code"], "HAS_ISSUED_CERTIFICATES")
        self.assertTrue(User.objects.filter(pk=self.issuer.pk).exists())

        res = self.client.delete(f"/api/admin/users/{self.other_issuer.pk}/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertFalse(Institution.objects.filter(pk=self.other_institution.pk).exists())
        self.assertTrue(AuditLog.objects.filter(event_type=AuditLog.EventType.USER_DELETED).exists())

    def test_non_numeric_user_id_is_a_bad_request(self):
        responses = [
            self.client.patch("/api/admin/users/abc/", {"role": "STUDENT"}, format="json"),
            self.client.delete("/api/admin/users/abc/"),
            self.client.post("/api/admin/users/abc/ban/"),
            self.client.post("/api/admin/users/abc/unban/"),
        ]
        for res in responses:
            self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(res.data["code"], "VALIDATION_ERROR")
        self.assertFalse(AuditLog.objects.exists())

    def test_non_admins_are_forbidden(self):
        self.client.force_authenticate(user=self.issuer)
        for url in (
            "/api/admin/users/",
            "/api/admin/institutions/",
            "/api/admin/students/",
            "/api/admin/certificates/",
            "/api/admin/stats/",
            "/api/audit-logs/",
        ):
            self.assertEqual(self.client.get(url).status_code, status.HTTP_403_FORBIDDEN, url)


class AdminReadAPITests(BackofficeFixtureMixin, APITestCase):
    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.admin)

    def test_institutions_search_includes_owner(self):
        self.certificate(self.institution)

        res = self.client.get("/api/admin/institutions/", {"q": "acme@example"})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(len(res.data["results"]), 1)
        row = res.data["results"][0]
        self.assertEqual(row["name"], "Acme Academy")
        self.assertEqual(row["user"]["email"], "acme@example.com")
        self.assertEqual(row["certificates_count"], 1)

    def test_institution_drilldown_filters_certificates(self):
        self.certificate(self.institution, subject="Algorithms")
        self.certificate(self.institution, subject="Databases")
        self.certificate(self.other_institution, subject="Algorithms")

        res = self.client.get(f"/api/admin/institutions/{self.institution.pk}/", {"cert_q": "algo"})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["institution"]["id"], self.institution.pk)
        self.assertEqual([c["subject"] for c in res.data["certificates"]], ["Algorithms"])

        res = self.client.get("/api/admin/institutions/999999/")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_students_search(self):
        res = self.client.get("/api/admin/students/", {"q": "jane"})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual([s["user"]["email"] for s in res.data["results"]], ["jane@example.com"])

    def test_certificates_filters(self):
        now = timezone.now()
        self.certificate(self.institution, subject="Algorithms", issued_at=now - timedelta(days=10))
        self.certificate(self.institution, subject="Databases", recipient_email="bob@example.com", recipient_name="Bob")
        self.certificate(self.other_institution, subject="Networks")

        res = self.client.get("/api/admin/certificates/", {"q": "bob"})
        self.assertEqual([c["subject"] for c in res.data["results"]], ["Databases"])

        res = self.client.get("/api/admin/certificates/", {"institution": self.other_institution.pk})
        self.assertEqual([c["subject"] for c in res.data["results"]], ["Networks"])

        res = self.client.get(
            "/api/admin/certificates/",
            {"issued_to": (now - timedelta(days=5)).date().isoformat()},
        )
        self.assertEqual([c["subject"] for c in res.data["results"]], ["Algorithms"])

        res = self.client.get(
            "/api/admin/certificates/",
            {"issued_from": (now - timedelta(days=5)).date().isoformat(), "institution": self.institution.pk},
        )
        self.assertEqual([c["subject"] for c in res.data["results"]], ["Databases"])

    def test_stats_endpoint(self):
        res = self.client.get("/api/admin/stats/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["total_accounts"], 4)
        self.assertIn("pending_onboarding_count", res.data)

    def test_audit_log_listing(self):
        self.client.post(f"/api/admin/users/{self.jane.pk}/ban/")

        res = self.client.get("/api/audit-logs/", {"event_type": AuditLog.EventType.USER_BANNED})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(len(res.data["results"]), 1)
        self.assertEqual(res.data["results"][0]["actor_email"], "root@example.com")
