from django.core.management.base import BaseCommand
from django.db import transaction

from crm.models import NavigationItem
from crm.services.sidebar import invalidate_sidebars


def _sub(name, path, order):
    return {"name": name, "path": path, "icon": "", "order": order}


# role -> [(label, path, icon, module_key, sub_modules)]
DEFAULT_NAVIGATION = {
    "clinic": [
        ("Leads", "/clinic/assigned-leads", "users", "lead", [
            _sub("Create Lead", "/lead/create-lead", 1),
            _sub("Import Leads", "/lead/import-leads", 2),
        ]),
        ("Offers", "/clinic/create-offer", "tag", "create_offers", []),
        ("Appointments", "/clinic/appointment", "calendar", "appointment", [
            _sub("All Appointments", "/clinic/all-appointment", 1),
            _sub("Appointment Reports", "/clinic/appointment-reports", 2),
        ]),
        ("Patient Registration", "/clinic/patient-registration", "user-plus", "patient_registration", []),
        ("Rooms", "/clinic/add-room", "door-open", "room_management", [
            _sub("Departments", "/clinic/add-department", 1),
        ]),
        ("Enquiries", "/clinic/get-Enquiry", "mail", "enquiry", []),
        ("Commissions", "/clinic/commissions", "percent", "clinic_commission", [
            _sub("Commission Trends", "/clinic/commission-trends", 1),
        ]),
        ("WhatsApp Inbox", "/clinic/inbox", "message-circle", "whatsapp_chat", [
            _sub("Marketing Chat", "/marketingalltype/whatsapp-marketing/chat", 1),
        ]),
        ("Templates", "/clinic/all-templates", "file-text", "all_templates", []),
    ],
    "doctor": [
        ("Appointments", "/doctor/appointment", "calendar", "doctor_appointment", [
            _sub("All Appointments", "/doctor/all-appointment", 1),
        ]),
        ("Patient Registration", "/doctor/patient-registration", "user-plus", "doctor_patient_registration", []),
        ("Rooms", "/doctor/add-room", "door-open", "doctor_room_management", []),
    ],
    "admin": [
        ("Staff Management", "/admin/create-agent", "shield", "admin_staff_management", [
            _sub("Clinic Permissions", "/admin/manage-clinic-permissions", 1),
            _sub("Navigation", "/admin/seed-navigation", 2),
        ]),
    ],
}


class Command(BaseCommand):
    help = "Create or update the default sidebar navigation items (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--role", choices=sorted(DEFAULT_NAVIGATION), help="Seed a single role only.")

    @transaction.atomic
    def handle(self, *args, **opts):
        roles = [opts["role"]] if opts.get("role") else list(DEFAULT_NAVIGATION)
        total = 0
        for role in roles:
            for order, (label, path, icon, module_key, subs) in enumerate(DEFAULT_NAVIGATION[role], start=1):
                _, created = NavigationItem.objects.update_or_create(
                    role=role, module_key=module_key,
                    defaults={"label": label, "path": path, "icon": icon, "order": order,
                              "sub_modules": subs, "is_active": True},
                )
                total += 1
                self.stdout.write(f"{'created' if created else 'updated'}: {role}:{module_key}")
        invalidate_sidebars()
        self.stdout.write(self.style.SUCCESS(f"Seeded {total} navigation items."))
