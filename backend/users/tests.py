from io import StringIO

from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from certificates.models import Certificate
from core.exceptions import (
    Banned,
    DuplicateEmail,
    HasIssuedCertificates,
    InvalidCredentials,
    NotFound,
    ValidationFailed,
)
from institutions.models import Institution

from . import services
from .models import StudentProfile, User


PASSWORD = "Str0ng-pass-2026"


class IdentityStoreTests(TestCase):
    def test_create_student_normalizes_email_and_creates_profile(self):
        user = services.create_account(name="  Ana  ", email="  Ana@Example.COM ", password=PASSWORD)

        self.assertEqual(user.email, "ana@example.com")
        self.assertEqual(user.username, "ana@example.com")
        self.assertEqual(user.name, "Ana")
        self.assertEqual(user.role, User.Role.STUDENT)
        self.assertTrue(StudentProfile.objects.filter(user=user).exists())
        self.assertTrue(user.check_password(PASSWORD))

    def test_create_institution_copies_name_into_issuer_profile(self):
        user = services.create_account(
            name="Acme Academy",
            email="acme@example.com",
            password=PASSWORD,
            role=User.Role.INSTITUTION,
        )

        institution = Institution.objects.get(user=user)
        self.assertEqual(institution.name, "Acme Academy")
        self.assertFalse(StudentProfile.objects.filter(user=user).exists())

    def test_duplicate_email_is_case_insensitive(self):
        services.create_account(name="Ana", email="ana@example.com", password=PASSWORD)

        with self.assertRaises(DuplicateEmail):
            services.create_account(name="Other", email="ANA@example.com", password=PASSWORD)
        self.assertEqual(User.objects.count(), 1)

    def test_invalid_role_is_rejected(self):
        with self.assertRaises(ValueError):
            services.create_account(name="X", email="x@example.com", password=PASSWORD, role="ROOT")

    def test_authenticate_unknown_email_and_wrong_password_look_the_same(self):
        services.create_account(name="Ana", email="ana@example.com", password=PASSWORD)

        with self.assertRaises(InvalidCredentials) as unknown:
            services.authenticate_account("nobody@example.com", PASSWORD)
        with self.assertRaises(InvalidCredentials) as wrong:
            services.authenticate_account("ana@example.com", "wrong-password")
        self.assertEqual(unknown.exception.detail, wrong.exception.detail)

    def test_banned_is_reported_only_after_password_matches(self):
        user = services.create_account(name="Ana", email="ana@example.com", password=PASSWORD)
        services.set_banned(user.pk, True)

        with self.assertRaises(InvalidCredentials):
            services.authenticate_account("ana@example.com", "wrong-password")
        with self.assertRaises(Banned):
            services.authenticate_account("ANA@example.com", PASSWORD)

        services.set_banned(user.pk, False)
        self.assertEqual(services.authenticate_account("ana@example.com", PASSWORD).pk, user.pk)

    def test_set_role_and_missing_account(self):
        user = services.create_account(name="Ana", email="ana@example.com", password=PASSWORD)

        updated = services.set_role(user.pk, "admin")
        self.assertEqual(updated.role, User.Role.ADMIN)
        user.refresh_from_db()
        self.assertEqual(user.role, User.Role.ADMIN)

        with self.assertRaises(NotFound):
            services.set_role(999999, User.Role.STUDENT)
        with self.assertRaises(NotFound):
            services.set_banned(999999, True)

    def test_update_profile_rejects_taken_email(self):
        ana = services.create_account(name="Ana", email="ana@example.com", password=PASSWORD)
        services.create_account(name="Bea", email="bea@example.com", password=PASSWORD)

        with self.assertRaises(DuplicateEmail):
            services.update_profile(ana.pk, email="BEA@example.com")
        with self.assertRaises(ValueError):
            services.update_profile(ana.pk, name="   ")

        updated = services.update_profile(ana.pk, name="Ana Maria", email="ana.maria@example.com")
        self.assertEqual(updated.email, "ana.maria@example.com")
        self.assertEqual(updated.username, "ana.maria@example.com")

    def test_change_password_clears_forced_change(self):
        user = services.create_account(
            name="Ana",
            email="ana@example.com",
            password=PASSWORD,
            must_change_password=True,
        )

        with self.assertRaises(InvalidCredentials):
            services.change_password(user.pk, current_password="wrong", new_password="An0ther-pass-2026")

        services.change_password(user.pk, current_password=PASSWORD, new_password="An0ther-pass-2026")
        user.refresh_from_db()
        self.assertFalse(user.must_change_password)
        self.assertTrue(user.check_password("An0ther-pass-2026"))


class DeletionSafetyTests(TestCase):
    def setUp(self):
        self.issuer = services.create_account(
            name="Acme Academy",
            email="acme@example.com",
            password=PASSWORD,
            role=User.Role.INSTITUTION,
        )
        self.institution = Institution.objects.get(user=self.issuer)

    def _certificate(self):
        return Certificate.objects.create(
            institution=self.institution,
            institution_name_snapshot=self.institution.name,
            recipient_name_snapshot="Ana",
            recipient_email_snapshot="ana@example.com",
            subject="Python 101",
        )

    def test_issuer_with_certificates_cannot_be_deleted(self):
        certificate = self._certificate()

        with self.assertRaises(HasIssuedCertificates):
            services.delete_account(self.issuer.pk)

        self.assertTrue(User.objects.filter(pk=self.issuer.pk).exists())
        self.assertTrue(Institution.objects.filter(pk=self.institution.pk).exists())
        self.assertTrue(Certificate.objects.filter(pk=certificate.pk).exists())

    def test_demoted_issuer_with_certificates_is_still_protected(self):
        self._certificate()
        services.set_role(self.issuer.pk, User.Role.STUDENT)

        with self.assertRaises(HasIssuedCertificates):
            services.delete_account(self.issuer.pk)
        self.assertTrue(User.objects.filter(pk=self.issuer.pk).exists())

    def test_issuer_without_certificates_is_deleted_with_profile(self):
        services.delete_account(self.issuer.pk)

        self.assertFalse(User.objects.filter(pk=self.issuer.pk).exists())
        self.assertFalse(Institution.objects.filter(pk=self.institution.pk).exists())

    def test_student_deletion_removes_profile(self):
        student = services.create_account(name="Ana", email="ana@example.com", password=PASSWORD)

        services.delete_account(student.pk)

        self.assertFalse(User.objects.filter(pk=student.pk).exists())
        self.assertFalse(StudentProfile.objects.filter(user_id=student.pk).exists())

    def test_missing_account(self):
        with self.assertRaises(NotFound):
            services.delete_account(999999)

    def test_non_numeric_id_is_rejected(self):
        with self.assertRaises(ValidationFailed):
            services.delete_account("abc")
        with self.assertRaises(ValidationFailed):
            services.set_banned("abc", True)
        self.assertTrue(User.objects.filter(pk=self.issuer.pk).exists())


class AuthAPITests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()

    def login(self, email, password=PASSWORD):
        return self.client.post("/api/auth/login/", {"email": email, "password": password}, format="json")

    def test_student_signup_then_login_and_me(self):
        res = self.client.post(
            "/api/auth/signup/student/",
            {"name": "Ana", "email": "Ana@Example.com", "password": PASSWORD, "date_of_birth": "2001-05-04"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["user"]["email"], "ana@example.com")
        self.assertEqual(str(StudentProfile.objects.get(user__email="ana@example.com").date_of_birth), "2001-05-04")

        login = self.login("ana@example.com")
        self.assertEqual(login.status_code, status.HTTP_200_OK)
        self.assertIn("access", login.data)
        self.assertIn("refresh", login.data)
        self.assertEqual(login.data["user"]["role"], User.Role.STUDENT)

        self.client.credentials(HTTP_AUTHORIZATION="Bearer " + login.data["access"])
        me = self.client.get("/api/auth/me/")
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data["email"], "ana@example.com")

    def test_duplicate_signup_returns_400_with_code(self):
        services.create_account(name="Ana", email="ana@example.com", password=PASSWORD)

        res = self.client.post(
            "/api/auth/signup/student/",
            {"name": "Ana", "email": "ANA@example.com", "password": PASSWORD},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["code"], "DUPLICATE_EMAIL")

    def test_legacy_signup_never_grants_admin(self):
        res = self.client.post(
            "/api/auth/signup/",
            {"name": "Eve", "email": "eve@example.com", "password": PASSWORD, "role": "ADMIN"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(User.objects.get(email="eve@example.com").role, User.Role.STUDENT)

    def test_legacy_signup_as_institution_creates_issuer_profile(self):
        res = self.client.post(
            "/api/auth/signup/",
            {"name": "Acme", "email": "acme@example.com", "password": PASSWORD, "role": "institution"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Institution.objects.filter(user__email="acme@example.com").exists())

    def test_login_errors(self):
        user = services.create_account(name="Ana", email="ana@example.com", password=PASSWORD)

        res = self.login("ana@example.com", "wrong-password")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["code"], "INVALID_CREDENTIALS")

        services.set_banned(user.pk, True)
        res = self.login("ana@example.com")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(res.data["code"], "BANNED")

    def test_banned_token_is_rejected(self):
        user = services.create_account(name="Ana", email="ana@example.com", password=PASSWORD)
        token = self.login("ana@example.com").data["access"]

        services.set_banned(user.pk, True)
        self.client.credentials(HTTP_AUTHORIZATION="Bearer " + token)
        res = self.client.get("/api/auth/me/")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_refresh_returns_new_access_token(self):
        services.create_account(name="Ana", email="ana@example.com", password=PASSWORD)
        refresh = self.login("ana@example.com").data["refresh"]

        res = self.client.post("/api/auth/refresh/", {"refresh": refresh}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertIn("access", res.data)

    def test_profile_update_and_change_password(self):
        user = services.create_account(name="Ana", email="ana@example.com", password=PASSWORD)
        self.client.force_authenticate(user=user)

        res = self.client.patch("/api/auth/profile/", {"name": "Ana Maria"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["user"]["name"], "Ana Maria")

        res = self.client.patch("/api/auth/profile/", {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.patch(
            "/api/auth/change-password/",
            {"current_password": "wrong", "new_password": "An0ther-pass-2026"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.patch(
            "/api/auth/change-password/",
            {"current_password": PASSWORD, "new_password": "An0ther-pass-2026"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK)

        self.client.force_authenticate(user=None)
        self.assertEqual(self.login("ana@example.com", "An0ther-pass-2026").status_code, status.HTTP_200_OK)

    def test_forced_password_change_blocks_other_endpoints(self):
        services.create_account(
            name="Acme",
            email="acme@example.com",
            password=PASSWORD,
            role=User.Role.INSTITUTION,
            must_change_password=True,
        )
        token = self.login("acme@example.com").data["access"]
        self.client.credentials(HTTP_AUTHORIZATION="Bearer " + token)

        self.assertEqual(self.client.get("/api/auth/me/").status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get("/api/certificates/").status_code, status.HTTP_403_FORBIDDEN)

        res = self.client.patch(
            "/api/auth/change-password/",
            {"current_password": PASSWORD, "new_password": "An0ther-pass-2026"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get("/api/certificates/").status_code, status.HTTP_200_OK)

    def test_anonymous_me_is_rejected(self):
        self.assertEqual(self.client.get("/api/auth/me/").status_code, status.HTTP_401_UNAUTHORIZED)


class SeedAdminCommandTests(TestCase):
    def test_creates_admin_once_and_never_overwrites(self):
        out = StringIO()
        call_command("seed_admin", email="Admin@Example.com", password=PASSWORD, stdout=out)

        admin = User.objects.get(email="admin@example.com")
        self.assertEqual(admin.role, User.Role.ADMIN)
        self.assertIn("created", out.getvalue())

        out = StringIO()
        call_command("seed_admin", email="admin@example.com", password="Different-pass-99", stdout=out)
        admin.refresh_from_db()
        self.assertTrue(admin.check_password(PASSWORD))
        self.assertIn("already exists", out.getvalue())

    @override_settings(CERTMINT_ADMIN_EMAIL="", CERTMINT_ADMIN_PASSWORD="")
    def test_missing_credentials(self):
        with self.assertRaises(CommandError):
            call_command("seed_admin", stdout=StringIO())

    @override_settings(CERTMINT_ADMIN_EMAIL="root@example.com", CERTMINT_ADMIN_PASSWORD=PASSWORD)
    def test_falls_back_to_settings(self):
        self.assertIsNotNone(services.seed_default_admin())
        self.assertIsNone(services.seed_default_admin())
        self.assertEqual(User.objects.filter(role=User.Role.ADMIN).count(), 1)
