import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from crm.models import AgentPermission, Clinic, Patient, Room, User

PASSWORD = "S3cure-pass!"


@pytest.fixture(autouse=True)
def _fresh_cache():
    # throttles and cached sidebars live in the cache
    cache.clear()
    yield
    cache.clear()


def make_user(username, role, clinic=None, created_by=None, **extra):
    return User.objects.create_user(
        username=username, password=PASSWORD, role=role, clinic=clinic, created_by=created_by, **extra
    )


@pytest.fixture
def admin_user(db):
    return make_user("admin", "admin")


@pytest.fixture
def clinic_owner(db):
    return make_user("owner", "clinic", first_name="Olivia", last_name="Owner")


@pytest.fixture
def clinic(clinic_owner):
    return Clinic.objects.create(name="Palm Clinic", owner=clinic_owner, is_approved=True)


@pytest.fixture
def other_owner(db):
    return make_user("owner2", "clinic")


@pytest.fixture
def other_clinic(other_owner):
    return Clinic.objects.create(name="Dune Clinic", owner=other_owner, is_approved=True)


@pytest.fixture
def doctor(clinic, clinic_owner):
    return make_user("doctor", "doctor", clinic=clinic, created_by=clinic_owner)


@pytest.fixture
def doctor_staff(clinic, clinic_owner):
    return make_user("drstaff", "doctorStaff", clinic=clinic, created_by=clinic_owner,
                     first_name="Sam", last_name="Surgeon")


@pytest.fixture
def agent(clinic, clinic_owner):
    return make_user("agent", "agent", clinic=clinic, created_by=clinic_owner,
                     first_name="Alex", last_name="Agent")


@pytest.fixture
def room(clinic):
    return Room.objects.create(clinic=clinic, name="Room 1")


@pytest.fixture
def patient(clinic, clinic_owner):
    return Patient.objects.create(
        clinic=clinic, emr_number=f"EMR-{clinic.id}-00001", first_name="Layla", last_name="Hassan",
        mobile_number="971500000001", created_by=clinic_owner,
    )


@pytest.fixture
def grant_agent():
    """Give an agent its own permission document."""
    def _grant(user, permissions):
        doc, _ = AgentPermission.objects.update_or_create(agent=user, defaults={"permissions": permissions})
        return doc
    return _grant


@pytest.fixture
def client_for():
    def _client(user=None):
        c = APIClient()
        if user is not None:
            c.force_authenticate(user=user)
        return c
    return _client
