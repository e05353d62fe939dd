import pytest
from django.core.management import call_command

from crm.models import ClinicPermission, NavigationItem
from crm.services.sidebar import convert_path_to_staff, transform_clinic_path
from crm.tests.conftest import make_user

pytestmark = pytest.mark.django_db

AGENT_SIDEBAR = "/api/agent/sidebar-permissions"
CLINIC_SIDEBAR = "/api/clinic/sidebar-permissions"


@pytest.fixture
def navigation(db):
    call_command("seed_navigation", verbosity=0)


@pytest.mark.parametrize("path, expected", [
    ("/clinic/leads/create", "/staff/clinic-leads-create"),
    ("/doctor/rooms", "/staff/doctor-rooms"),
    ("/admin/create-agent", "/staff/create-agent"),
    ("/agent/create-lead", "/staff/create-lead"),
    ("/lead/create-lead", "/staff/lead-create-lead"),
    ("/staff/clinic-add-room", "/staff/clinic-add-room"),
    ("clinic//add-room/", "/staff/clinic-add-room"),
    ("", ""),
])
def test_convert_path_to_staff(path, expected):
    assert convert_path_to_staff(path) == expected


def test_transform_clinic_path():
    assert transform_clinic_path("/staff/create-lead") == "/clinic/staff/create-lead"
    assert transform_clinic_path("/clinic/add-room") == "/clinic/add-room"


def test_agent_sidebar_lists_granted_modules_only(navigation, agent, grant_agent, client_for):
    grant_agent(agent, [{
        "module": "lead",
        "actions": {"read": True},
        "subModules": [{"name": "Create Lead", "actions": {"create": True}}],
    }])
    r = client_for(agent).get(AGENT_SIDEBAR)
    assert r.status_code == 200
    assert r.data["navigationRole"] == "clinic"
    items = r.data["items"]
    assert [i["moduleKey"] for i in items] == ["lead"]
    assert items[0]["path"] == "/staff/clinic-assigned-leads"
    assert items[0]["permissions"]["read"] is True
    subs = items[0]["subModules"]
    assert [s["name"] for s in subs] == ["Create Lead"]
    assert subs[0]["path"] == "/staff/lead-create-lead"
    assert subs[0]["permissions"]["create"] is True


def test_agent_sidebar_module_all_grants_every_submodule(navigation, agent, grant_agent, client_for):
    grant_agent(agent, [{"module": "clinic_lead", "actions": {"all": True}}])
    items = client_for(agent).get(AGENT_SIDEBAR).data["items"]
    assert [s["name"] for s in items[0]["subModules"]] == ["Create Lead", "Import Leads"]


def test_agent_without_document_gets_empty_sidebar(navigation, agent, client_for):
    r = client_for(agent).get(AGENT_SIDEBAR)
    assert r.data["items"] == []


def test_agent_created_by_doctor_navigates_doctor_portal(navigation, clinic, doctor, grant_agent, client_for):
    helper = make_user("helper", "agent", clinic=clinic, created_by=doctor)
    grant_agent(helper, [{"module": "appointment", "actions": {"read": True}}])
    r = client_for(helper).get(AGENT_SIDEBAR)
    assert r.data["navigationRole"] == "doctor"
    assert [i["path"] for i in r.data["items"]] == ["/staff/doctor-appointment"]


def test_portal_owner_sees_own_items_in_staff_form(navigation, clinic, client_for, clinic_owner):
    r = client_for(clinic_owner).get("/api/staff/sidebar-permissions")
    assert r.data["navigationRole"] == "clinic"
    assert len(r.data["items"]) == NavigationItem.objects.filter(role="clinic").count()
    assert all(i["path"].startswith("/staff/clinic-") for i in r.data["items"])


def test_clinic_sidebar_unconfigured_shows_everything(navigation, clinic, clinic_owner, client_for):
    r = client_for(clinic_owner).get(CLINIC_SIDEBAR)
    assert r.status_code == 200
    assert r.data["clinicId"] == clinic.id
    assert len(r.data["items"]) == NavigationItem.objects.filter(role="clinic").count()


def test_clinic_sidebar_filters_by_document(navigation, clinic, clinic_owner, client_for):
    ClinicPermission.objects.create(clinic=clinic, role="clinic", permissions=[{
        "module": "clinic_lead",
        "actions": {"read": True},
        "subModules": [{"name": "Import Leads", "actions": {"read": True}}],
    }])
    items = client_for(clinic_owner).get(CLINIC_SIDEBAR).data["items"]
    assert [i["moduleKey"] for i in items] == ["lead"]
    assert [s["name"] for s in items[0]["subModules"]] == ["Import Leads"]


def test_clinic_sidebar_requires_approval(navigation, clinic, clinic_owner, client_for):
    clinic.is_approved = False
    clinic.save()
    r = client_for(clinic_owner).get(CLINIC_SIDEBAR)
    assert r.status_code == 403
    assert r.data["message"] == "Clinic account not approved. Please wait for admin approval."


def test_admin_cannot_read_clinic_sidebar(navigation, admin_user, client_for):
    r = client_for(admin_user).get(CLINIC_SIDEBAR)
    assert r.status_code == 403


def test_sidebar_is_cached_until_navigation_changes(navigation, clinic, clinic_owner, admin_user, client_for):
    owner = client_for(clinic_owner)
    before = len(owner.get(CLINIC_SIDEBAR).data["items"])
    NavigationItem.objects.create(role="clinic", label="Reports", module_key="reports", order=99)
    assert len(owner.get(CLINIC_SIDEBAR).data["items"]) == before

    r = client_for(admin_user).post("/api/admin/navigation", {
        "role": "clinic", "moduleKey": "analytics", "label": "Analytics", "path": "/clinic/analytics",
    }, format="json")
    assert r.status_code == 201
    assert len(owner.get(CLINIC_SIDEBAR).data["items"]) == before + 2


def test_navigation_admin_only(clinic_owner, client_for):
    r = client_for(clinic_owner).get("/api/admin/navigation")
    assert r.status_code == 403


def test_navigation_upsert_validates_payload(admin_user, client_for):
    r = client_for(admin_user).post("/api/admin/navigation", {"role": "nobody", "moduleKey": "x", "label": "X"},
                                    format="json")
    assert r.status_code == 400
    assert r.data["message"] == "role, moduleKey and label are required"


@pytest.mark.parametrize("sub_modules, message", [
    (["Create Lead"], "subModules at index 0 need a name"),
    ([{"path": "/clinic/leads"}], "subModules at index 0 need a name"),
    ("Create Lead", "subModules must be an array"),
])
def test_navigation_rejects_malformed_sub_modules(navigation, clinic_owner, admin_user, client_for,
                                                   sub_modules, message):
    r = client_for(admin_user).post("/api/admin/navigation", {
        "role": "clinic", "moduleKey": "lead", "label": "Leads", "subModules": sub_modules,
    }, format="json")
    assert r.status_code == 400
    assert r.data["message"] == message
    assert client_for(clinic_owner).get(CLINIC_SIDEBAR).status_code == 200


def test_navigation_rejects_non_numeric_order(admin_user, client_for):
    r = client_for(admin_user).post("/api/admin/navigation", {
        "role": "clinic", "moduleKey": "reports", "label": "Reports", "order": "first",
    }, format="json")
    assert r.status_code == 400
    assert r.data["message"] == "order must be a whole number"
    assert not NavigationItem.objects.filter(module_key="reports").exists()
