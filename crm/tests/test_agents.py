import pytest

from crm.models import AgentPermission, ClinicPermission, User
from crm.tests.conftest import make_user

CREATE = "/api/lead-ms/create-agent"
LIST = "/api/lead-ms/get-agents"
DELETE = "/api/lead-ms/delete-agent"

pytestmark = pytest.mark.django_db


def new_agent(**overrides):
    payload = {"name": "Mona Farouk", "email": "Mona@Example.com", "password": "secret1", "role": "agent"}
    payload.update(overrides)
    return payload


def test_owner_creates_agent(client_for, clinic_owner, clinic):
    r = client_for(clinic_owner).post(CREATE, new_agent(), format="json")
    assert r.status_code == 201
    body = r.json()["agent"]
    assert body["name"] == "Mona Farouk"
    assert body["clinicId"] == clinic.id
    agent = User.objects.get(id=body["id"])
    assert agent.username == "mona@example.com"
    assert agent.created_by == clinic_owner
    assert agent.check_password("secret1")
    assert AgentPermission.objects.get(agent=agent).permissions == []


def test_duplicate_email_rejected(client_for, clinic_owner, clinic):
    api = client_for(clinic_owner)
    api.post(CREATE, new_agent(), format="json")
    r = api.post(CREATE, new_agent(name="Other"), format="json")
    assert r.status_code == 400
    assert r.json()["message"] == "A user with this email already exists"


def test_short_password_rejected(client_for, clinic_owner, clinic):
    r = client_for(clinic_owner).post(CREATE, new_agent(password="123"), format="json")
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_doctor_cannot_create_doctor_staff(client_for, doctor):
    r = client_for(doctor).post(CREATE, new_agent(role="doctorStaff"), format="json")
    assert r.status_code == 403
    assert r.json()["message"] == "Doctors can only create agents"

    r = client_for(doctor).post(CREATE, new_agent(), format="json")
    assert r.status_code == 201
    assert User.objects.get(username="mona@example.com").created_by == doctor


def test_agents_cannot_manage_agents(client_for, agent):
    assert client_for(agent).get(LIST).status_code == 403
    assert client_for(agent).post(CREATE, new_agent(), format="json").status_code == 403


def test_list_filters_by_role_and_tenant(client_for, clinic_owner, agent, doctor_staff, other_clinic, other_owner):
    make_user("outsider", "agent", clinic=other_clinic, created_by=other_owner)
    api = client_for(clinic_owner)

    ids = {a["id"] for a in api.get(LIST).json()["agents"]}
    assert ids == {agent.id, doctor_staff.id}

    only_staff = api.get(LIST, {"role": "doctorStaff"}).json()["agents"]
    assert [a["id"] for a in only_staff] == [doctor_staff.id]


def test_decline_and_approve(client_for, clinic_owner, agent):
    api = client_for(clinic_owner)
    r = api.patch(LIST, {"agentId": agent.id, "action": "decline"}, format="json")
    assert r.status_code == 200
    assert r.json()["agent"]["isApproved"] is False
    agent.refresh_from_db()
    assert agent.is_active is False

    r = api.patch(LIST, {"agentId": agent.id, "action": "approve"}, format="json")
    assert r.json()["agent"]["isApproved"] is True


def test_reset_password(client_for, clinic_owner, agent):
    api = client_for(clinic_owner)
    r = api.patch(LIST, {"agentId": agent.id, "action": "resetPassword", "newPassword": "abc"}, format="json")
    assert r.status_code == 400
    assert r.json()["message"] == "Password must be at least 6 characters"

    r = api.patch(LIST, {"agentId": agent.id, "action": "resetPassword", "newPassword": "n3w-pass"},
                  format="json")
    assert r.status_code == 200
    agent.refresh_from_db()
    assert agent.check_password("n3w-pass")


def test_delete_agent(client_for, clinic_owner, agent):
    r = client_for(clinic_owner).delete(f"{DELETE}?agentId={agent.id}")
    assert r.status_code == 200
    assert r.json()["deletedUser"]["id"] == agent.id
    assert not User.objects.filter(id=agent.id).exists()


def test_delete_agent_of_other_clinic(client_for, other_owner, other_clinic, agent):
    r = client_for(other_owner).delete(f"{DELETE}?agentId={agent.id}")
    assert r.status_code == 404
    assert User.objects.filter(id=agent.id).exists()


def test_delete_requires_agent_id(client_for, clinic_owner, clinic):
    r = client_for(clinic_owner).delete(DELETE)
    assert r.status_code == 400
    assert r.json()["message"] == "agentId is required"


def test_clinic_document_gates_agent_management(client_for, clinic_owner, clinic):
    ClinicPermission.objects.create(clinic=clinic, role="clinic", permissions=[
        {"module": "create_agent", "actions": {"create": False, "read": True, "delete": False}},
    ])
    api = client_for(clinic_owner)
    r = api.post(CREATE, new_agent(), format="json")
    assert r.status_code == 403
    assert r.json()["message"] == "Permission denied: create action not allowed for module create_agent"
    assert not User.objects.filter(username="mona@example.com").exists()
    assert api.get(LIST).status_code == 200
    member = make_user("kept", "agent", clinic=clinic, created_by=clinic_owner)
    assert api.delete(DELETE, {"agentId": member.id}, format="json").status_code == 403


def test_admin_manages_agents_regardless_of_clinic_document(client_for, admin_user, clinic):
    ClinicPermission.objects.create(clinic=clinic, role="clinic", permissions=[
        {"module": "create_agent", "actions": {"create": False}},
    ])
    r = client_for(admin_user).post(f"{CREATE}?clinicId={clinic.id}", new_agent(), format="json")
    assert r.status_code == 201
