"""Vitals recorded against an appointment.

One report per appointment; posting again overwrites the previous
values.  BMI is derived whenever both height and weight are known.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from crm.models import Appointment, AppointmentReport, Clinic, PatientComplaint, User
from crm.services.audit import log_action

MANDATORY_MESSAGE = 'Temperature, pulse, and blood pressure fields are mandatory.'

# payload key -> model field
VITAL_FIELDS = {
    'temperatureCelsius': 'temperature_celsius',
    'pulseBpm': 'pulse_bpm',
    'systolicBp': 'systolic_bp',
    'diastolicBp': 'diastolic_bp',
    'heightCm': 'height_cm',
    'weightKg': 'weight_kg',
    'waistCm': 'waist_cm',
    'respiratoryRate': 'respiratory_rate',
    'spo2Percent': 'spo2_percent',
    'hipCircumference': 'hip_circumference',
    'headCircumference': 'head_circumference',
    'sugar': 'sugar',
    'urinalysis': 'urinalysis',
    'otherDetails': 'other_details',
}
MANDATORY = ('temperatureCelsius', 'pulseBpm', 'systolicBp', 'diastolicBp')
# bounds of the stored bmi column
MAX_BMI = Decimal('999.9')


def compute_bmi(height_cm, weight_kg) -> Optional[Decimal]:
    if not height_cm or not weight_kg:
        return None
    meters = Decimal(str(height_cm)) / 100
    bmi = Decimal(str(weight_kg)) / (meters * meters)
    return bmi.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)


def validate_vitals(data: dict) -> None:
    if any(data.get(k) in (None, '') for k in MANDATORY):
        raise ValueError(MANDATORY_MESSAGE)
    spo2 = data.get('spo2Percent')
    if spo2 is not None and spo2 > 100:
        raise ValueError('SpO2 cannot exceed 100%')
    if data['systolicBp'] <= data['diastolicBp']:
        raise ValueError('Systolic pressure must be greater than diastolic pressure')
    bmi = compute_bmi(data.get('heightCm'), data.get('weightKg'))
    if bmi is not None and bmi > MAX_BMI:
        raise ValueError('Height and weight give an implausible BMI')


def serialize_report(r: AppointmentReport) -> dict:
    out = {
        '_id': r.id,
        'id': r.id,
        'appointmentId': r.appointment_id,
        'patientId': r.patient_id,
        'doctorId': r.doctor_id,
        'clinicId': r.clinic_id,
        'bmi': float(r.bmi) if r.bmi is not None else None,
        'createdAt': r.created_at.isoformat(),
        'updatedAt': r.updated_at.isoformat(),
    }
    for key, field in VITAL_FIELDS.items():
        value = getattr(r, field)
        out[key] = float(value) if isinstance(value, Decimal) else value
    return out


def get_appointment(clinic: Clinic, appointment_id) -> Appointment:
    try:
        appointment_id = int(appointment_id)
    except (TypeError, ValueError):
        raise ValueError('Valid appointmentId is required')
    appt = Appointment.objects.select_related('patient').filter(id=appointment_id, clinic=clinic).first()
    if appt is None:
        raise LookupError('Appointment not found')
    return appt


def save_report(user: User, clinic: Clinic, appt: Appointment, data: dict) -> AppointmentReport:
    validate_vitals(data)
    values = {field: data.get(key) for key, field in VITAL_FIELDS.items() if key in data}
    for text_field in ('sugar', 'urinalysis', 'other_details'):
        if values.get(text_field) is None and text_field in values:
            values[text_field] = ''
    values['bmi'] = compute_bmi(data.get('heightCm'), data.get('weightKg'))
    report, created = AppointmentReport.objects.update_or_create(
        appointment=appt,
        defaults={
            'patient': appt.patient,
            'clinic': clinic,
            'doctor': appt.doctor,
            'created_by': user,
            **values,
        },
    )
    log_action(user=user, action='report_create' if created else 'report_update',
               object_type='appointment_report', object_id=report.id, clinic=clinic)
    return report


def serialize_complaint(c: PatientComplaint) -> dict:
    return {
        '_id': c.id,
        'id': c.id,
        'clinicId': c.clinic_id,
        'patientId': c.patient_id,
        'doctorId': c.doctor_id,
        'appointmentId': c.appointment_id,
        'appointmentReportId': c.report_id,
        'complaints': c.complaints,
        'items': c.items or [],
        'createdAt': c.created_at.isoformat(),
        'updatedAt': c.updated_at.isoformat(),
    }


def add_complaint(user: User, clinic: Clinic, data: dict) -> PatientComplaint:
    """Record complaints against the vitals report of one of the clinic's appointments."""
    appt = get_appointment(clinic, data['appointmentId'])
    report = AppointmentReport.objects.filter(
        id=data['appointmentReportId'], appointment=appt, clinic=clinic,
    ).first()
    if report is None:
        raise LookupError('Appointment report not found or does not match appointment')
    complaint = PatientComplaint.objects.create(
        clinic=clinic,
        patient_id=appt.patient_id,
        doctor_id=appt.doctor_id,
        appointment=appt,
        report=report,
        complaints=data['complaints'],
        items=data.get('items') or [],
    )
    log_action(user=user, action='complaint_create', object_type='patient_complaint',
               object_id=complaint.id, clinic=clinic)
    return complaint


def list_complaints(clinic: Clinic, *, appointment_id=None, patient_id=None, report_id=None) -> list[dict]:
    qs = PatientComplaint.objects.filter(clinic=clinic)
    if appointment_id:
        qs = qs.filter(appointment_id=appointment_id)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if report_id:
        qs = qs.filter(report_id=report_id)
    return [serialize_complaint(c) for c in qs]


def get_complaint(clinic: Clinic, complaint_id) -> PatientComplaint:
    try:
        complaint_id = int(complaint_id)
    except (TypeError, ValueError):
        raise ValueError('complaintId is required')
    complaint = PatientComplaint.objects.filter(clinic=clinic, id=complaint_id).first()
    if complaint is None:
        raise LookupError('Complaint not found')
    return complaint


def update_complaint(user: User, complaint: PatientComplaint, data: dict) -> PatientComplaint:
    if 'complaints' in data:
        complaint.complaints = data['complaints']
    if 'items' in data:
        complaint.items = data['items']
    complaint.save(update_fields=['complaints', 'items', 'updated_at'])
    log_action(user=user, action='complaint_update', object_type='patient_complaint',
               object_id=complaint.id, clinic=complaint.clinic)
    return complaint


def delete_complaint(user: User, complaint: PatientComplaint) -> None:
    log_action(user=user, action='complaint_delete', object_type='patient_complaint',
               object_id=complaint.id, clinic=complaint.clinic)
    complaint.delete()
