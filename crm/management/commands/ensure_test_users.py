from django.core.management.base import BaseCommand
from django.db import transaction

from crm.models import Clinic, User

PASSWORD = "123456"

# username, role, belongs to the demo clinic
TEST_SET = [
    ("admin1", "admin", False),
    ("clinic1", "clinic", False),
    ("doctor1", "doctor", True),
    ("doctorstaff1", "doctorStaff", True),
    ("agent1", "agent", True),
]


class Command(BaseCommand):
    help = "Ensure demo users and an approved demo clinic exist, password=123456 (idempotent)."

    @transaction.atomic
    def handle(self, *args, **opts):
        users = {}
        for username, role, _ in TEST_SET:
            u, created = User.objects.get_or_create(username=username, defaults={"role": role, "is_active": True})
            u.role = role
            u.is_active = True
            u.is_staff = role == "admin"
            u.set_password(PASSWORD)
            u.save()
            users[role] = u
            self.stdout.write(self.style.SUCCESS(f"{'created' if created else 'ok'}: {username} ({role})"))

        clinic, _ = Clinic.objects.get_or_create(
            owner=users["clinic"], defaults={"name": "Demo Clinic", "is_approved": True},
        )
        for username, role, member in TEST_SET:
            if member:
                u = users[role]
                u.clinic = clinic
                u.created_by = users["clinic"]
                u.save(update_fields=["clinic", "created_by"])
        self.stdout.write(self.style.SUCCESS(f"All test users ensured (clinic id={clinic.id})."))
