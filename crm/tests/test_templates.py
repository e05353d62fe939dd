import json

import pytest

from crm.models import MessageTemplate
from crm.services.templates import build_components

pytestmark = pytest.mark.django_db

LIST = "/api/all-templates"
CREATE = "/api/all-templates/create-template"


def edit_url(t):
    return f"/api/all-templates/edit-template/{t.id}"


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body if body is not None else {"id": "tpl-991", "status": "PENDING"}
        self.content = json.dumps(self._body).encode()

    def json(self):
        return self._body


def whatsapp_template(**overrides):
    data = {
        "templateType": "whatsapp",
        "name": "Appointment reminder",
        "uniqueName": "appointment_reminder",
        "category": "utility",
        "content": "Hi {{1}}, see you on {{2}}",
        "bodyVariableSampleValues": ["Layla", "Monday"],
        "footer": "Palm Clinic",
    }
    data.update(overrides)
    return data


@pytest.fixture
def graph(settings, monkeypatch):
    settings.WHATSAPP_ENABLE = True
    settings.WHATSAPP_TOKEN = "tkn"
    settings.WHATSAPP_BUSINESS_ACCOUNT_ID = "WABA-1"
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append((url, json))
        return FakeResponse()

    monkeypatch.setattr("crm.services.whatsapp.requests.post", fake_post)
    return calls


def test_sms_template_is_usable_straight_away(clinic, clinic_owner, client_for):
    r = client_for(clinic_owner).post(CREATE, {
        "templateType": "sms", "name": "Welcome", "uniqueName": "welcome", "content": "Welcome to Palm Clinic",
    }, format="json")
    assert r.status_code == 201, r.data
    assert r.data["message"] == "Template created successfully."
    assert r.data["data"]["status"] == "approved"
    assert r.data["data"]["templateId"] is None
    assert MessageTemplate.objects.get().clinic == clinic


def test_email_template_needs_a_subject(clinic, clinic_owner, client_for):
    r = client_for(clinic_owner).post(CREATE, {
        "templateType": "email", "name": "Welcome", "uniqueName": "welcome_mail", "content": "Hello",
    }, format="json")
    assert r.status_code == 400
    assert "subject" in r.data["error"]["message"]


def test_unique_name_format(clinic, clinic_owner, client_for):
    r = client_for(clinic_owner).post(CREATE, {
        "templateType": "sms", "name": "Promo", "uniqueName": "Summer Promo", "content": "20% off",
    }, format="json")
    assert r.status_code == 400
    assert not MessageTemplate.objects.exists()


def test_whatsapp_template_is_submitted_for_review(graph, clinic, clinic_owner, client_for):
    r = client_for(clinic_owner).post(CREATE, whatsapp_template(), format="json")
    assert r.status_code == 201, r.data
    assert r.data["data"]["status"] == "pending"
    assert r.data["data"]["templateId"] == "tpl-991"

    url, body = graph[0]
    assert url.endswith("/WABA-1/message_templates")
    assert body["name"] == "appointment_reminder"
    assert body["category"] == "UTILITY"
    assert body["components"] == [
        {"type": "BODY", "text": "Hi {{1}}, see you on {{2}}", "example": {"body_text": [["Layla", "Monday"]]}},
        {"type": "FOOTER", "text": "Palm Clinic"},
    ]


def test_whatsapp_template_needs_a_category(graph, clinic, clinic_owner, client_for):
    data = whatsapp_template()
    del data["category"]
    r = client_for(clinic_owner).post(CREATE, data, format="json")
    assert r.status_code == 400
    assert not graph


def test_whatsapp_disabled(settings, clinic, clinic_owner, client_for):
    settings.WHATSAPP_ENABLE = False
    settings.WHATSAPP_BUSINESS_ACCOUNT_ID = "WABA-1"
    r = client_for(clinic_owner).post(CREATE, whatsapp_template(), format="json")
    assert r.status_code == 502
    assert r.data["message"] == "WhatsApp messaging not enabled on server"
    assert not MessageTemplate.objects.exists()


def test_whatsapp_business_account_required(settings, graph, clinic, clinic_owner, client_for):
    settings.WHATSAPP_BUSINESS_ACCOUNT_ID = ""
    r = client_for(clinic_owner).post(CREATE, whatsapp_template(), format="json")
    assert r.status_code == 400
    assert r.data["message"] == "WhatsApp business account not configured for this clinic"


def test_duplicate_unique_name(clinic, clinic_owner, client_for):
    data = {"templateType": "sms", "name": "Welcome", "uniqueName": "welcome", "content": "Hi"}
    client = client_for(clinic_owner)
    assert client.post(CREATE, data, format="json").status_code == 201
    r = client.post(CREATE, data, format="json")
    assert r.status_code == 400
    assert r.data["message"] == "A template with this unique name already exists"
    data["templateType"] = "email"
    data["subject"] = "Welcome"
    assert client.post(CREATE, data, format="json").status_code == 201


def test_authentication_components():
    t = MessageTemplate(template_type="whatsapp", category="authentication", content="")
    assert build_components(t) == [
        {"type": "BODY", "add_security_recommendation": True},
        {"type": "BUTTONS", "buttons": [{"type": "OTP", "otp_type": "COPY_CODE"}]},
    ]


def test_edit_whatsapp_template_resubmits(graph, clinic, clinic_owner, client_for):
    client = client_for(clinic_owner)
    client.post(CREATE, whatsapp_template(), format="json")
    t = MessageTemplate.objects.get()
    r = client.patch(edit_url(t), {"content": "Hi {{1}}, your visit is on {{2}}", "uniqueName": "renamed"},
                     format="json")
    assert r.status_code == 200, r.data
    assert r.data["message"] == "Template updated successfully"
    assert r.data["data"]["content"] == "Hi {{1}}, your visit is on {{2}}"
    assert r.data["data"]["uniqueName"] == "appointment_reminder"
    url, body = graph[-1]
    assert url.endswith("/tpl-991")
    assert "name" not in body


def test_templates_are_scoped_to_the_clinic(clinic, other_clinic, clinic_owner, other_owner, client_for):
    client_for(clinic_owner).post(CREATE, {
        "templateType": "sms", "name": "Welcome", "uniqueName": "welcome", "content": "Hi",
    }, format="json")
    client_for(clinic_owner).post(CREATE, {
        "templateType": "email", "name": "Receipt", "uniqueName": "receipt", "subject": "Receipt", "content": "Paid",
    }, format="json")
    t = MessageTemplate.objects.get(unique_name="welcome")

    r = client_for(clinic_owner).get(LIST, {"templateType": "sms"})
    assert [x["uniqueName"] for x in r.data["data"]] == ["welcome"]
    assert len(client_for(clinic_owner).get(LIST).data["data"]) == 2
    assert client_for(other_owner).get(LIST).data["data"] == []
    assert client_for(other_owner).get(edit_url(t)).status_code == 404
