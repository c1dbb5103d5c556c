import os

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from apps.accounts.models import Role


class Command(BaseCommand):
    help = (
        "Create the super admin account, or reset its password and role if it exists. "
        "Values default to ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_NAME."
    )

    def add_arguments(self, parser):
        parser.add_argument("--email", default=os.getenv("ADMIN_EMAIL"))
        parser.add_argument("--password", default=os.getenv("ADMIN_PASSWORD"))
        parser.add_argument("--name", default=os.getenv("ADMIN_NAME", "Super Admin"))

    def handle(self, *args, **options):
        if not settings.DEBUG and os.getenv("ALLOW_CREATE_ADMIN_IN_PROD") != "True":
            raise CommandError("Production lock: set ALLOW_CREATE_ADMIN_IN_PROD=True to run this.")

        email, password = options["email"], options["password"]
        if not email or not password:
            raise CommandError("An email and a password are required (--email/--password or env vars).")

        User = get_user_model()
        email = User.objects.normalize_email(email)

        with transaction.atomic():
            user = User.objects.select_for_update().filter(email__iexact=email).first()
            if user is None:
                User.objects.create_superuser(email=email, password=password, name=options["name"])
                self.stdout.write(self.style.SUCCESS(f"Created super admin: {email}"))
                return

            user.role = Role.SUPER_ADMIN
            user.is_staff = True
            user.is_superuser = True
            user.is_active = True
            user.set_password(password)
            user.save(update_fields=["role", "is_staff", "is_superuser", "is_active", "password"])

        self.stdout.write(self.style.WARNING(f"Updated super admin: {email}"))
