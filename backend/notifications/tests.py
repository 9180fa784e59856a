from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from certificates.models import Certificate
from core.exceptions import NotFound
from institutions.models import Institution
from users.models import User

from . import services
from .models import Notification


PASSWORD = "Str0ng-pass-2026"


class NotificationLedgerMixin:
    def setUp(self):
        super().setUp()
        issuer = User.objects.create_user(email="acme@example.com", password=PASSWORD, role=User.Role.INSTITUTION)
        self.institution = Institution.objects.create(user=issuer, name="Acme Academy")

    def make_certificate(self, recipient_email="jane@example.com", subject="Algorithms"):
        return Certificate.objects.create(
            institution=self.institution,
            institution_name_snapshot=self.institution.name,
            recipient_name_snapshot="Jane Doe",
            recipient_email_snapshot=recipient_email,
            subject=subject,
        )

    def notify(self, recipient_email="jane@example.com", subject="Algorithms"):
        certificate = self.make_certificate(recipient_email, subject)
        return services.create_certificate_notification(certificate=certificate, recipient_email=recipient_email)


class NotificationServiceTests(NotificationLedgerMixin, TestCase):
    def test_create_normalizes_email_and_describes_certificate(self):
        notification = self.notify(recipient_email=" Jane@Example.COM ")

        self.assertEqual(notification.recipient_email, "jane@example.com")
        self.assertEqual(notification.type, Notification.Type.CERTIFICATE_ISSUED)
        self.assertIn("Algorithms", notification.message)
        self.assertIn("Acme Academy", notification.message)
        self.assertFalse(notification.is_read)

    def test_create_requires_email(self):
        with self.assertRaises(ValueError):
            services.create_certificate_notification(certificate=self.make_certificate(), recipient_email="  ")

    def test_mark_all_read_is_idempotent(self):
        self.notify()
        self.notify(subject="Databases")
        self.notify(recipient_email="other@example.com")

        self.assertEqual(services.mark_all_read("JANE@example.com"), 2)
        self.assertEqual(services.mark_all_read("jane@example.com"), 0)
        self.assertEqual(services.unread_count("jane@example.com"), 0)
        self.assertEqual(services.unread_count("other@example.com"), 1)

    def test_mark_read_keeps_first_read_at(self):
        notification = self.notify()

        first = services.mark_read(notification.pk, "jane@example.com")
        self.assertTrue(first.is_read)
        self.assertIsNotNone(first.read_at)

        second = services.mark_read(notification.pk, "jane@example.com")
        self.assertEqual(second.read_at, first.read_at)

    def test_mark_read_hides_foreign_and_missing_notifications(self):
        notification = self.notify()

        with self.assertRaises(NotFound):
            services.mark_read(notification.pk, "other@example.com")
        with self.assertRaises(NotFound):
            services.mark_read(999999, "jane@example.com")
        with self.assertRaises(NotFound):
            services.mark_read("abc", "jane@example.com")

        notification.refresh_from_db()
        self.assertFalse(notification.is_read)

    def test_list_is_newest_first_and_clamped(self):
        created = [self.notify(subject=f"Course {i}") for i in range(5)]

        listed = list(services.list_notifications("jane@example.com"))
        self.assertEqual([n.pk for n in listed], [n.pk for n in reversed(created)])

        self.assertEqual(len(services.list_notifications("jane@example.com", 2)), 2)
        self.assertEqual(len(services.list_notifications("jane@example.com", 0)), 1)
        self.assertEqual(len(services.list_notifications("jane@example.com", "junk")), 5)
        self.assertEqual(list(services.list_notifications("")), [])

    @override_settings(NOTIFICATIONS_MAX_LIMIT=3)
    def test_list_respects_configured_maximum(self):
        for i in range(5):
            self.notify(subject=f"Course {i}")

        self.assertEqual(len(services.list_notifications("jane@example.com", 100)), 3)


class NotificationAPITests(NotificationLedgerMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.jane = User.objects.create_user(email="jane@example.com", password=PASSWORD, role=User.Role.STUDENT)
        self.client.force_authenticate(user=self.jane)

    def test_list_and_unread_count(self):
        self.notify()
        self.notify(recipient_email="other@example.com")

        res = self.client.get("/api/notifications/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(len(res.data), 1)
        self.assertEqual(res.data[0]["type"], Notification.Type.CERTIFICATE_ISSUED)

        res = self.client.get("/api/notifications/unread-count/")
        self.assertEqual(res.data, {"unread": 1})

    def test_mark_read_and_mark_all_read(self):
        first = self.notify()
        self.notify(subject="Databases")

        res = self.client.patch(f"/api/notifications/{first.pk}/read/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertTrue(res.data["is_read"])

        res = self.client.patch("/api/notifications/mark-all-read/")
        self.assertEqual(res.data, {"updated": 1})
        res = self.client.patch("/api/notifications/mark-all-read/")
        self.assertEqual(res.data, {"updated": 0})

    def test_cannot_read_someone_elses_notification(self):
        foreign = self.notify(recipient_email="other@example.com")

        res = self.client.patch(f"/api/notifications/{foreign.pk}/read/")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        self.assertEqual(self.client.get("/api/notifications/").status_code, status.HTTP_401_UNAUTHORIZED)
