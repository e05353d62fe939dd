import logging
from datetime import date
from typing import Optional

from django.db import transaction
from django.db.models import Q

from crm.models import Appointment, Clinic, Patient, Room, User
from crm.services.audit import log_action
from crm.services.notifications import notify

logger = logging.getLogger(__name__)

FIELD_LABELS = {
    'patientId': 'Patient',
    'doctorId': 'Doctor',
    'roomId': 'Room',
    'status': 'Status',
    'followType': 'Follow Type',
    'startDate': 'Start Date',
    'fromTime': 'From Time',
    'toTime': 'To Time',
}

CONFLICT_MESSAGE = 'An appointment already exists for this doctor at this time'


class AppointmentError(ValueError):
    """Booking rejected; ``payload`` is merged into the 400 response."""

    def __init__(self, message: str, **payload):
        super().__init__(message)
        self.payload = payload


def check_required(data) -> None:
    missing = [f for f in FIELD_LABELS if data.get(f) in (None, '')]
    if missing:
        raise AppointmentError(
            'Missing required fields',
            missingFields=missing,
            missingFieldLabels=[FIELD_LABELS[f] for f in missing],
            errors={f: f'{FIELD_LABELS[f]} is required' for f in missing},
        )


def serialize_appointment(a: Appointment) -> dict:
    return {
        '_id': a.id,
        'id': a.id,
        'clinicId': a.clinic_id,
        'patientId': a.patient_id,
        'patientName': a.patient.full_name,
        'patientNumber': a.patient.mobile_number,
        'emrNumber': a.patient.emr_number,
        'doctorId': a.doctor_id,
        'doctorName': a.doctor.display_name,
        'roomId': a.room_id,
        'roomName': a.room.name,
        'status': a.status,
        'followType': a.follow_type,
        'startDate': a.start_date.isoformat(),
        'fromTime': a.from_time.strftime('%H:%M'),
        'toTime': a.to_time.strftime('%H:%M'),
        'referral': a.referral,
        'emergency': a.emergency,
        'notes': a.notes,
        'bookedFrom': a.booked_from if a.booked_from in ('room', 'doctor') else 'doctor',
        'hasReport': hasattr(a, 'report'),
        'createdAt': a.created_at.isoformat(),
    }


def _base_qs():
    return Appointment.objects.select_related('patient', 'doctor', 'room')


def has_conflict(clinic: Clinic, doctor_id: int, day: date, from_time, to_time,
                 exclude_id: Optional[int] = None) -> bool:
    qs = Appointment.objects.filter(
        clinic=clinic, doctor_id=doctor_id, start_date=day,
    ).filter(Q(from_time__lt=to_time, to_time__gt=from_time) | Q(from_time=from_time, to_time=to_time))
    if exclude_id is not None:
        qs = qs.exclude(id=exclude_id)
    return qs.exists()


def _resolve_refs(clinic: Clinic, data: dict):
    doctor = User.objects.filter(id=data['doctorId'], role='doctorStaff', clinic=clinic).first()
    if doctor is None:
        raise AppointmentError('Doctor not found or does not belong to this clinic')
    room = Room.objects.filter(id=data['roomId'], clinic=clinic).first()
    if room is None:
        raise AppointmentError('Room not found or does not belong to this clinic')
    patient = Patient.objects.filter(id=data['patientId'], clinic=clinic).first()
    if patient is None:
        raise AppointmentError('Patient not found or does not belong to this clinic')
    return doctor, room, patient


@transaction.atomic
def book_appointment(user: User, clinic: Clinic, data: dict) -> Appointment:
    """Book an appointment; ``data`` is validated by AppointmentSerializer."""
    doctor, room, patient = _resolve_refs(clinic, data)
    if data['toTime'] <= data['fromTime']:
        raise AppointmentError('To Time must be after From Time')
    if has_conflict(clinic, doctor.id, data['startDate'], data['fromTime'], data['toTime']):
        raise AppointmentError(CONFLICT_MESSAGE)

    appt = Appointment.objects.create(
        clinic=clinic,
        patient=patient,
        doctor=doctor,
        room=room,
        status=data['status'],
        follow_type=data['followType'],
        start_date=data['startDate'],
        from_time=data['fromTime'],
        to_time=data['toTime'],
        referral=data.get('referral') or 'direct',
        emergency=data.get('emergency') or 'no',
        notes=data.get('notes') or '',
        booked_from=data.get('bookedFrom') if data.get('bookedFrom') in ('room', 'doctor') else 'doctor',
        created_by=user,
    )
    if doctor.id != user.id:
        notify(doctor, f'New appointment with {patient.full_name} on {appt.start_date} at {data["fromTime"]:%H:%M}',
               type='appointment', related_id=appt.id)
    log_action(user=user, action='appointment_create', object_type='appointment', object_id=appt.id, clinic=clinic)
    return appt


@transaction.atomic
def update_appointment(user: User, clinic: Clinic, appt: Appointment, data: dict) -> Appointment:
    merged = {
        'patientId': appt.patient_id,
        'doctorId': appt.doctor_id,
        'roomId': appt.room_id,
        'startDate': appt.start_date,
        'fromTime': appt.from_time,
        'toTime': appt.to_time,
        **{k: v for k, v in data.items() if v is not None},
    }
    doctor, room, patient = _resolve_refs(clinic, merged)
    if merged['toTime'] <= merged['fromTime']:
        raise AppointmentError('To Time must be after From Time')
    if has_conflict(clinic, doctor.id, merged['startDate'], merged['fromTime'], merged['toTime'], exclude_id=appt.id):
        raise AppointmentError(CONFLICT_MESSAGE)

    appt.patient, appt.doctor, appt.room = patient, doctor, room
    appt.start_date = merged['startDate']
    appt.from_time = merged['fromTime']
    appt.to_time = merged['toTime']
    for key, attr in (('status', 'status'), ('followType', 'follow_type'), ('referral', 'referral'),
                      ('emergency', 'emergency'), ('notes', 'notes'), ('bookedFrom', 'booked_from')):
        if data.get(key) is not None:
            setattr(appt, attr, data[key])
    appt.save()
    log_action(user=user, action='appointment_update', object_type='appointment', object_id=appt.id,
               clinic=clinic, detail={'fields': sorted(data.keys())})
    return appt


def list_appointments(clinic: Clinic, *, day: Optional[date] = None, doctor_id=None, room_id=None):
    qs = _base_qs().filter(clinic=clinic)
    if day:
        qs = qs.filter(start_date=day)
    if doctor_id:
        qs = qs.filter(doctor_id=doctor_id)
    if room_id:
        qs = qs.filter(room_id=room_id)
    return [serialize_appointment(a) for a in qs.order_by('start_date', 'from_time', 'id')]


def all_appointments(clinic: Clinic, *, status: Optional[str] = None, start: Optional[date] = None,
                     end: Optional[date] = None, doctor_id=None, search: Optional[str] = None,
                     page: int = 1, limit: int = 20):
    qs = _base_qs().filter(clinic=clinic)
    if status:
        qs = qs.filter(status=status)
    if start:
        qs = qs.filter(start_date__gte=start)
    if end:
        qs = qs.filter(start_date__lte=end)
    if doctor_id:
        qs = qs.filter(doctor_id=doctor_id)
    if search:
        qs = qs.filter(
            Q(patient__first_name__icontains=search) | Q(patient__last_name__icontains=search)
            | Q(patient__mobile_number__icontains=search) | Q(patient__emr_number__icontains=search)
        )
    page = max(1, int(page or 1))
    limit = min(100, max(1, int(limit or 20)))
    total = qs.count()
    start_idx = (page - 1) * limit
    items = qs.order_by('-start_date', '-from_time', '-id')[start_idx:start_idx + limit]
    return [serialize_appointment(a) for a in items], {
        'total': total,
        'page': page,
        'limit': limit,
        'totalPages': (total + limit - 1) // limit,
    }
