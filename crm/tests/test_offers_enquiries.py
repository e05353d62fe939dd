from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from crm.models import Enquiry, Notification, Offer

pytestmark = pytest.mark.django_db


def offer_payload(**overrides):
    now = timezone.now()
    data = {
        "title": "Summer glow",
        "type": "percentage",
        "value": "20",
        "startsAt": now.isoformat(),
        "endsAt": (now + timedelta(days=30)).isoformat(),
        "status": "active",
        "treatments": ["Botox"],
    }
    data.update(overrides)
    return data


def make_offer(clinic, **fields):
    now = timezone.now()
    defaults = dict(title="Old", value=10, starts_at=now - timedelta(days=10),
                    ends_at=now + timedelta(days=10), status="active")
    defaults.update(fields)
    return Offer.objects.create(clinic=clinic, **defaults)


def test_create_offer(clinic, clinic_owner, client_for):
    r = client_for(clinic_owner).post("/api/lead-ms/create-offer", offer_payload(), format="json")
    assert r.status_code == 201, r.data
    assert r.data["offer"]["value"] == 20.0
    assert r.data["offer"]["currency"] == "AED"


@pytest.mark.parametrize("overrides", [
    {"value": "150"},
    {"endsAt": (timezone.now() - timedelta(days=1)).isoformat()},
])
def test_create_offer_validation(clinic, clinic_owner, client_for, overrides):
    r = client_for(clinic_owner).post("/api/lead-ms/create-offer", offer_payload(**overrides), format="json")
    assert r.status_code == 400


def test_fixed_offers_may_exceed_hundred(clinic, clinic_owner, client_for):
    r = client_for(clinic_owner).post("/api/lead-ms/create-offer",
                                      offer_payload(type="fixed", value="250"), format="json")
    assert r.status_code == 201


def test_listing_expires_past_offers(clinic, clinic_owner, client_for):
    past = make_offer(clinic, ends_at=timezone.now() - timedelta(hours=1))
    r = client_for(clinic_owner).get("/api/lead-ms/get-create-offer")
    statuses = {o["id"]: o["status"] for o in r.data["offers"]}
    assert statuses[past.id] == "expired"


def test_update_offer(clinic, clinic_owner, client_for):
    offer = make_offer(clinic)
    client = client_for(clinic_owner)
    r = client.put(f"/api/lead-ms/update-offer?id={offer.id}", {"title": "Renamed"}, format="json")
    assert r.status_code == 200
    assert r.data["offer"]["title"] == "Renamed"
    r = client.get("/api/lead-ms/update-offer", {"offerId": offer.id})
    assert r.data["offer"]["status"] == "active"


def test_update_offer_rejects_inverted_window(clinic, clinic_owner, client_for):
    offer = make_offer(clinic)
    r = client_for(clinic_owner).put(
        "/api/lead-ms/update-offer",
        {"id": offer.id, "endsAt": (offer.starts_at - timedelta(days=1)).isoformat()},
        format="json",
    )
    assert r.status_code == 400
    assert r.data["message"] == "endsAt must be after startsAt"


def test_switching_fixed_offer_to_percentage_checks_stored_value(clinic, clinic_owner, client_for):
    offer = make_offer(clinic, type="fixed", value=250)
    r = client_for(clinic_owner).put(f"/api/lead-ms/update-offer?id={offer.id}", {"type": "percentage"}, format="json")
    assert r.status_code == 400
    offer.refresh_from_db()
    assert offer.type == "fixed"


def test_percentage_offer_value_update_is_capped(clinic, clinic_owner, client_for):
    offer = make_offer(clinic)
    r = client_for(clinic_owner).put(f"/api/lead-ms/update-offer?id={offer.id}", {"value": "101"}, format="json")
    assert r.status_code == 400


def test_offers_are_tenant_scoped(clinic, other_clinic, other_owner, client_for):
    offer = make_offer(clinic)
    r = client_for(other_owner).get("/api/lead-ms/update-offer", {"id": offer.id})
    assert r.status_code == 403
    assert client_for(other_owner).delete(f"/api/lead-ms/delete-offer?id={offer.id}").status_code == 403


def test_delete_offer(clinic, clinic_owner, client_for):
    offer = make_offer(clinic)
    client = client_for(clinic_owner)
    assert client.delete("/api/lead-ms/delete-offer").data["message"] == "Offer id is required"
    r = client.delete(f"/api/lead-ms/delete-offer?offerId={offer.id}")
    assert r.data["message"] == "Offer deleted successfully"
    assert not Offer.objects.exists()


def test_expire_offers_command(clinic):
    make_offer(clinic, ends_at=timezone.now() - timedelta(days=1))
    make_offer(clinic)
    out = StringIO()
    call_command("expire_offers", stdout=out)
    assert "Expired 1 offers" in out.getvalue()
    assert Offer.objects.filter(status="expired").count() == 1


def enquiry_payload(clinic, **overrides):
    data = {"clinicId": clinic.id, "name": "John Doe", "email": "john@example.com",
            "phone": "0501234567", "message": "Do you offer laser?"}
    data.update(overrides)
    return data


def test_public_enquiry_notifies_owner(clinic, clinic_owner, client_for):
    r = client_for().post("/api/clinics/enquiries", enquiry_payload(clinic), format="json")
    assert r.status_code == 201
    assert r.data["enquiry"]["clinicId"] == clinic.id
    note = Notification.objects.get(user=clinic_owner)
    assert note.type == "enquiry"
    assert note.message == "New enquiry from John Doe"


@pytest.mark.parametrize("overrides", [
    {"name": "R2D2"},
    {"phone": "+971-50"},
    {"email": "nope"},
    {"message": "<script></script>"},
])
def test_enquiry_validation(clinic, client_for, overrides):
    r = client_for().post("/api/clinics/enquiries", enquiry_payload(clinic, **overrides), format="json")
    assert r.status_code == 400
    assert not Enquiry.objects.exists()


def test_enquiry_for_unknown_clinic(clinic, client_for):
    r = client_for().post("/api/clinics/enquiries", enquiry_payload(clinic, clinicId=999999), format="json")
    assert r.status_code == 404
    assert r.data["message"] == "Clinic not found"


def test_list_enquiries(clinic, other_clinic, clinic_owner, client_for):
    Enquiry.objects.create(clinic=clinic, name="A", email="a@example.com", phone="1", message="hi")
    Enquiry.objects.create(clinic=other_clinic, name="B", email="b@example.com", phone="2", message="hi")
    r = client_for(clinic_owner).get("/api/clinics/getEnquiries")
    assert [e["name"] for e in r.data["enquiries"]] == ["A"]
