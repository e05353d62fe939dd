import datetime

import pytest

from crm.models import Appointment, Department, Room

pytestmark = pytest.mark.django_db

ROOMS = "/api/clinic/rooms"


def test_create_and_list_rooms(clinic, other_clinic, clinic_owner, client_for):
    Room.objects.create(clinic=other_clinic, name="Theirs")
    client = client_for(clinic_owner)
    r = client.post(ROOMS, {"name": "  Laser   Room "}, format="json")
    assert r.status_code == 201
    assert r.data["message"] == "Room created successfully"
    assert r.data["room"]["name"] == "Laser Room"
    assert [x["name"] for x in client.get(ROOMS).data["rooms"]] == ["Laser Room"]


def test_room_names_unique_per_clinic(clinic, other_clinic, clinic_owner, other_owner, client_for):
    client = client_for(clinic_owner)
    client.post(ROOMS, {"name": "Laser Room"}, format="json")
    r = client.post(ROOMS, {"name": "laser room"}, format="json")
    assert r.status_code == 400
    assert r.data["message"] == "A room with this name already exists"
    assert client_for(other_owner).post(ROOMS, {"name": "Laser Room"}, format="json").status_code == 201


def test_room_name_required(clinic, clinic_owner, client_for):
    r = client_for(clinic_owner).post(ROOMS, {"name": "   "}, format="json")
    assert r.data["message"] == "Room name is required"


def test_rename_room(clinic, room, clinic_owner, client_for):
    client = client_for(clinic_owner)
    Room.objects.create(clinic=clinic, name="Room 2")
    r = client.put(ROOMS, {"id": room.id, "name": "Room 2"}, format="json")
    assert r.status_code == 400
    r = client.put(ROOMS, {"roomId": room.id, "name": "Consult A"}, format="json")
    assert r.data["room"]["name"] == "Consult A"


def test_delete_room(clinic, room, clinic_owner, other_owner, other_clinic, client_for):
    assert client_for(other_owner).delete(f"{ROOMS}?id={room.id}").status_code == 404
    r = client_for(clinic_owner).delete(f"{ROOMS}?id={room.id}")
    assert r.data["message"] == "Room deleted successfully"
    assert not Room.objects.filter(id=room.id).exists()


def test_room_with_appointments_cannot_be_deleted(clinic, room, patient, doctor_staff, clinic_owner, client_for):
    Appointment.objects.create(
        clinic=clinic, patient=patient, doctor=doctor_staff, room=room, status="booked",
        follow_type="first time", start_date=datetime.date(2026, 11, 2),
        from_time=datetime.time(9, 0), to_time=datetime.time(9, 30),
    )
    r = client_for(clinic_owner).delete(f"{ROOMS}?id={room.id}")
    assert r.status_code == 400
    assert Room.objects.filter(id=room.id).exists()


def test_departments_share_the_same_shape(clinic, clinic_owner, client_for):
    client = client_for(clinic_owner)
    r = client.post("/api/clinic/departments", {"name": "Dermatology"}, format="json")
    assert r.data["department"]["name"] == "Dermatology"
    dept_id = r.data["department"]["id"]
    assert client.get("/api/clinic/departments").data["departments"][0]["id"] == dept_id
    client.delete(f"/api/clinic/departments?departmentId={dept_id}")
    assert not Department.objects.exists()
