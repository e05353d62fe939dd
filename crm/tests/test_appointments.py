import pytest

from crm.models import Appointment, Notification, Patient
from crm.services import appointments as appt_service

pytestmark = pytest.mark.django_db

URL = "/api/clinic/appointments"


@pytest.fixture
def booking(patient, doctor_staff, room):
    def _payload(**overrides):
        data = {
            "patientId": patient.id,
            "doctorId": doctor_staff.id,
            "roomId": room.id,
            "status": "booked",
            "followType": "first time",
            "startDate": "2026-11-02",
            "fromTime": "10:00",
            "toTime": "10:30",
        }
        data.update(overrides)
        return data
    return _payload


def test_book_appointment(clinic_owner, doctor_staff, booking, client_for):
    r = client_for(clinic_owner).post(URL, booking(), format="json")
    assert r.status_code == 201, r.data
    appt = r.data["appointment"]
    assert appt["fromTime"] == "10:00" and appt["toTime"] == "10:30"
    assert appt["referral"] == "direct"
    assert appt["emergency"] == "no"
    assert appt["bookedFrom"] == "doctor"
    assert appt["patientName"] == "Layla Hassan"
    assert appt["hasReport"] is False
    assert Notification.objects.filter(user=doctor_staff, type="appointment").count() == 1


def test_missing_fields_are_listed(clinic_owner, booking, client_for):
    data = booking()
    del data["roomId"]
    data["followType"] = ""
    r = client_for(clinic_owner).post(URL, data, format="json")
    assert r.status_code == 400
    assert r.data["message"] == "Missing required fields"
    assert r.data["missingFields"] == ["roomId", "followType"]
    assert r.data["missingFieldLabels"] == ["Room", "Follow Type"]
    assert r.data["errors"]["roomId"] == "Room is required"


def test_overlapping_booking_is_rejected(clinic_owner, booking, client_for):
    client = client_for(clinic_owner)
    assert client.post(URL, booking(), format="json").status_code == 201

    r = client.post(URL, booking(fromTime="10:15", toTime="10:45"), format="json")
    assert r.status_code == 400
    assert r.data["message"] == appt_service.CONFLICT_MESSAGE

    # touching intervals do not overlap
    assert client.post(URL, booking(fromTime="10:30", toTime="11:00"), format="json").status_code == 201
    # another day is free
    assert client.post(URL, booking(startDate="2026-11-03"), format="json").status_code == 201


def test_end_must_follow_start(clinic_owner, booking, client_for):
    r = client_for(clinic_owner).post(URL, booking(fromTime="11:00", toTime="10:00"), format="json")
    assert r.status_code == 400
    assert r.data["message"] == "To Time must be after From Time"


def test_doctor_must_be_clinic_doctor_staff(clinic_owner, doctor, booking, client_for):
    r = client_for(clinic_owner).post(URL, booking(doctorId=doctor.id), format="json")
    assert r.status_code == 400
    assert r.data["message"] == "Doctor not found or does not belong to this clinic"


def test_patient_must_belong_to_clinic(clinic_owner, other_clinic, booking, client_for):
    stranger = Patient.objects.create(clinic=other_clinic, first_name="Zed", mobile_number="971500000009")
    r = client_for(clinic_owner).post(URL, booking(patientId=stranger.id), format="json")
    assert r.status_code == 400
    assert r.data["message"] == "Patient not found or does not belong to this clinic"


def test_update_appointment(clinic, clinic_owner, booking, client_for):
    client = client_for(clinic_owner)
    first = client.post(URL, booking(), format="json").data["appointment"]["id"]
    second = client.post(URL, booking(fromTime="11:00", toTime="11:30"), format="json").data["appointment"]["id"]

    # keeping its own slot is not a conflict
    r = client.put(f"/api/clinic/update-appointment/{first}", {"status": "Arrived"}, format="json")
    assert r.status_code == 200
    assert r.data["appointment"]["status"] == "Arrived"

    r = client.put(f"/api/clinic/update-appointment/{second}", {"fromTime": "10:15"}, format="json")
    assert r.status_code == 400
    assert r.data["message"] == appt_service.CONFLICT_MESSAGE

    r = client.put(f"/api/clinic/update-appointment/{second}", {"toTime": "12:00"}, format="json")
    assert r.data["appointment"]["toTime"] == "12:00"
    assert Appointment.objects.get(id=second).from_time.strftime("%H:%M") == "11:00"


def test_update_appointment_of_other_clinic(other_clinic, other_owner, clinic_owner, booking, client_for):
    appt_id = client_for(clinic_owner).post(URL, booking(), format="json").data["appointment"]["id"]
    r = client_for(other_owner).put(f"/api/clinic/update-appointment/{appt_id}", {"status": "Arrived"}, format="json")
    assert r.status_code == 404


def test_list_appointments_by_day(clinic_owner, booking, client_for):
    client = client_for(clinic_owner)
    client.post(URL, booking(fromTime="12:00", toTime="12:30"), format="json")
    client.post(URL, booking(), format="json")
    client.post(URL, booking(startDate="2026-11-05"), format="json")
    r = client.get(URL, {"date": "2026-11-02"})
    assert [a["fromTime"] for a in r.data["appointments"]] == ["10:00", "12:00"]


def test_all_appointments_paginates_and_searches(clinic, clinic_owner, booking, client_for):
    client = client_for(clinic_owner)
    for day in ("2026-11-02", "2026-11-03", "2026-11-04"):
        client.post(URL, booking(startDate=day), format="json")
    r = client.get("/api/clinic/all-appointments", {"limit": 2, "search": "layla"})
    assert r.data["pagination"] == {"total": 3, "page": 1, "limit": 2, "totalPages": 2}
    assert [a["startDate"] for a in r.data["appointments"]] == ["2026-11-04", "2026-11-03"]

    r = client.get("/api/clinic/all-appointments", {"fromDate": "2026-11-03", "toDate": "2026-11-03"})
    assert r.data["pagination"]["total"] == 1
    r = client.get("/api/clinic/all-appointments", {"search": "nobody"})
    assert r.data["appointments"] == []


def test_doctor_staff_can_book_with_clinic_grant(doctor_staff, grant_agent, booking, client_for):
    grant_agent(doctor_staff, [{"module": "appointment", "actions": {"all": True}}])
    r = client_for(doctor_staff).post(URL, booking(), format="json")
    assert r.status_code == 201
    # booking for oneself does not notify
    assert not Notification.objects.filter(user=doctor_staff).exists()
