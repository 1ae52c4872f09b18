# core/management/commands/ensure_test_users.py
from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand

from core.models import User

TEST_SET = [
    ("admin1", "admin", None),
    ("doctor1", "doctor", "D-0001"),
]


class Command(BaseCommand):
    help = "Ensure test users exist with password=123456 (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="123456")

    def handle(self, *args, **opts):
        password = make_password(opts["password"])
        for username, role, doctor_id in TEST_SET:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={"role": role, "doctor_id": doctor_id, "password": password, "is_active": True,
                          "email": f"{username}@example.com"},
            )
            if not created:
                u.password = password
                u.role = role
                u.doctor_id = doctor_id
                u.is_active = True
                u.save(update_fields=["password", "role", "doctor_id", "is_active"])
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
