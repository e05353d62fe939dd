import pytest
from django.core.management import call_command

from crm.models import Clinic, NavigationItem, User

pytestmark = pytest.mark.django_db


def test_ensure_test_users_is_idempotent():
    call_command("ensure_test_users", verbosity=0)
    call_command("ensure_test_users", verbosity=0)

    assert User.objects.filter(username__in=["admin1", "clinic1", "doctor1", "doctorstaff1", "agent1"]).count() == 5
    clinic = Clinic.objects.get()
    assert clinic.owner.username == "clinic1"
    assert clinic.is_approved
    agent = User.objects.get(username="agent1")
    assert agent.clinic == clinic
    assert agent.created_by == clinic.owner
    assert agent.check_password("123456")
    assert User.objects.get(username="admin1").is_staff


def test_seed_navigation_upserts(capsys):
    call_command("seed_navigation")
    first = NavigationItem.objects.count()
    call_command("seed_navigation")
    assert NavigationItem.objects.count() == first
    assert f"Seeded {first} navigation items." in capsys.readouterr().out

    leads = NavigationItem.objects.get(role="clinic", module_key="lead")
    assert leads.order == 1
    assert [s["name"] for s in leads.sub_modules] == ["Create Lead", "Import Leads"]


def test_seed_navigation_single_role():
    call_command("seed_navigation", role="doctor", verbosity=0)
    assert set(NavigationItem.objects.values_list("role", flat=True)) == {"doctor"}
