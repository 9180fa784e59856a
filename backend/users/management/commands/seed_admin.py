from __future__ import annotations

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from core.text import normalize_email
from users.models import User
from users.services import seed_default_admin


class Command(BaseCommand):
    help = "Creates the default ADMIN account if it does not exist yet. Never overwrites."

    def add_arguments(self, parser):
        parser.add_argument(
            "--email",
            type=str,
            default="",
            help="Admin email. Defaults to CERTMINT_ADMIN_EMAIL.",
        )
        parser.add_argument(
            "--password",
            type=str,
            default="",
            help="Admin password. Defaults to CERTMINT_ADMIN_PASSWORD.",
        )

    def handle(self, *args, **options):
        email = normalize_email(options.get("email") or getattr(settings, "CERTMINT_ADMIN_EMAIL", ""))
        password = options.get("password") or getattr(settings, "CERTMINT_ADMIN_PASSWORD", "") or ""
        if not email or not password:
            raise CommandError("Missing admin credentials. Pass --email/--password or set CERTMINT_ADMIN_EMAIL/PASSWORD.")

        if User.objects.filter(email__iexact=email).exists():
            self.stdout.write(f"Admin {email} already exists; left unchanged.")
            return

        user = seed_default_admin(email=email, password=password)
        self.stdout.write(self.style.SUCCESS(f"Default admin created: {user.email}"))
