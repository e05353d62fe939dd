from decimal import Decimal

import pytest

from crm.models import Commission, Referral

pytestmark = pytest.mark.django_db

BY_PERSON = "/api/clinic/commissions/by-person"
TRENDS = "/api/clinic/commissions/trends"


@pytest.fixture
def referral(clinic):
    return Referral.objects.create(clinic=clinic, first_name="Rami", percentage=Decimal("10"))


@pytest.fixture
def commissions(clinic, other_clinic, referral, patient, agent):
    rows = [
        Commission.objects.create(clinic=clinic, source="referral", referral=referral, patient=patient,
                                  invoice_number="INV-1", amount_paid=Decimal("1000"),
                                  commission_percent=Decimal("10"), commission_amount=Decimal("100")),
        Commission.objects.create(clinic=clinic, source="referral", referral=referral,
                                  amount_paid=Decimal("500"), commission_percent=Decimal("10"),
                                  commission_amount=Decimal("50")),
        Commission.objects.create(clinic=clinic, source="staff", staff=agent,
                                  amount_paid=Decimal("200"), commission_amount=Decimal("20")),
        Commission.objects.create(clinic=other_clinic, source="referral",
                                  amount_paid=Decimal("999"), commission_amount=Decimal("99")),
    ]
    return rows


def test_commissions_by_referral(clinic_owner, referral, commissions, client_for):
    r = client_for(clinic_owner).get(BY_PERSON, {"source": "referral", "referralId": referral.id})
    assert r.status_code == 200
    assert r.data["totals"] == {"count": 2, "paidAmount": 1500.0, "commissionAmount": 150.0}
    first = r.data["items"][-1]
    assert first["invoiceNumber"] == "INV-1"
    assert first["patientName"] == "Layla Hassan"


def test_commissions_by_staff(clinic_owner, agent, commissions, client_for):
    r = client_for(clinic_owner).get(BY_PERSON, {"source": "staff", "staffId": agent.id})
    assert r.data["totals"]["commissionAmount"] == 20.0


@pytest.mark.parametrize("params, message", [
    ({"source": "bonus"}, "Invalid source"),
    ({"source": "referral"}, "referralId is required for referral source"),
    ({"source": "staff"}, "staffId is required for staff source"),
])
def test_commission_parameter_errors(clinic_owner, clinic, client_for, params, message):
    r = client_for(clinic_owner).get(BY_PERSON, params)
    assert r.status_code == 400
    assert r.data["message"] == message


def test_commission_trends(clinic_owner, commissions, client_for):
    client = client_for(clinic_owner)
    r = client.get(TRENDS)
    assert len(r.data["items"]) == 1
    bucket = r.data["items"][0]
    assert bucket["count"] == 3
    assert bucket["commissionAmount"] == 170.0

    r = client.get(TRENDS, {"source": "staff", "period": "daily"})
    assert r.data["items"][0]["paidAmount"] == 200.0
    assert len(r.data["items"][0]["period"]) == len("2026-01-01")

    assert client.get(TRENDS, {"period": "weekly"}).status_code == 400


def test_agent_without_grant(agent, referral, commissions, client_for):
    client = client_for(agent)
    r = client.get(BY_PERSON, {"source": "referral", "referralId": referral.id})
    assert r.status_code == 403
    r = client.get(TRENDS)
    assert r.status_code == 200
    assert r.data["items"] == []


def test_agent_with_grant(agent, referral, commissions, grant_agent, client_for):
    grant_agent(agent, [{"module": "clinic_commission", "actions": {"read": True}}])
    r = client_for(agent).get(BY_PERSON, {"source": "referral", "referralId": referral.id})
    assert r.data["totals"]["count"] == 2
