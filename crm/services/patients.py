import logging
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import Q

from crm.models import Clinic, Patient, User
from crm.serializers.patients import PatientRegistrationSerializer
from crm.services.audit import log_action
from crm.services.spreadsheets import map_columns, mapped_row, read_spreadsheet

logger = logging.getLogger(__name__)


def serialize_patient(p: Patient) -> dict:
    return {
        '_id': p.id,
        'id': p.id,
        'emrNumber': p.emr_number,
        'firstName': p.first_name,
        'lastName': p.last_name,
        'fullName': p.full_name,
        'gender': p.gender,
        'email': p.email,
        'mobileNumber': p.mobile_number,
        'createdAt': p.created_at.isoformat(),
    }


def next_emr_number(clinic: Clinic) -> str:
    """Next free ``EMR-<clinic>-<seq>`` number, counting on from the highest issued."""
    prefix = f"EMR-{clinic.id}-"
    seq = 0
    for emr in Patient.objects.filter(clinic=clinic, emr_number__startswith=prefix).values_list('emr_number', flat=True):
        tail = emr[len(prefix):]
        if tail.isdigit():
            seq = max(seq, int(tail))
    return f"{prefix}{seq + 1:05d}"


@transaction.atomic
def register_patient(user: User, clinic: Clinic, data: dict) -> Patient:
    if Patient.objects.filter(clinic=clinic, mobile_number=data['mobileNumber'],
                              first_name__iexact=data['firstName']).exists():
        raise ValueError('Patient with this name and mobile number already exists')
    emr = data.get('emrNumber')
    if emr and Patient.objects.filter(clinic=clinic, emr_number=emr).exists():
        raise ValueError('EMR number is already in use')
    try:
        with transaction.atomic():
            patient = Patient.objects.create(
                clinic=clinic,
                emr_number=emr or next_emr_number(clinic),
                first_name=data['firstName'],
                last_name=data.get('lastName') or '',
                gender=data.get('gender') or '',
                email=data.get('email') or '',
                mobile_number=data['mobileNumber'],
                created_by=user,
            )
    except IntegrityError:
        # a concurrent registration took the number
        raise ValueError('EMR number is already in use, please retry')
    log_action(user=user, action='patient_register', object_type='patient', object_id=patient.id, clinic=clinic)
    return patient


def search_patients(clinic: Clinic, search=None, limit: int = 50):
    qs = Patient.objects.filter(clinic=clinic)
    if search:
        qs = qs.filter(
            Q(first_name__icontains=search) | Q(last_name__icontains=search)
            | Q(mobile_number__icontains=search) | Q(emr_number__icontains=search)
        )
    return [serialize_patient(p) for p in qs.order_by('-created_at', '-id')[:limit]]


IMPORT_FIELDS = {
    'firstname': 'firstName',
    'lastname': 'lastName',
    'gender': 'gender',
    'email': 'email',
    'mobilenumber': 'mobileNumber',
    'mobile': 'mobileNumber',
    'phone': 'mobileNumber',
    'emrnumber': 'emrNumber',
}
IMPORT_REQUIRED = ('firstName', 'mobileNumber', 'gender')


def _first_error(errors) -> str:
    field, messages = next(iter(errors.items()))
    message = messages[0] if isinstance(messages, list) else messages
    return f'{field}: {message}'


def import_patients(user: User, clinic: Clinic, upload, column_mapping: Optional[dict] = None) -> dict:
    """Register patients from a spreadsheet upload, one row at a time.

    Rows go through the same validation as a single registration, with
    gender required as well.  Failed rows are reported as ``Row N: reason``
    and do not stop the rest of the file.
    """
    rows = read_spreadsheet(upload)
    if not rows:
        raise ValueError('File is empty or has no data')
    columns = map_columns(rows[0].keys(), column_mapping, IMPORT_FIELDS, IMPORT_REQUIRED)

    result = {'total': len(rows), 'imported': 0, 'failed': 0, 'errors': []}
    for line_no, raw in enumerate(rows, start=2):
        row = mapped_row(raw, columns)
        if row.get('gender'):
            row['gender'] = row['gender'].strip().capitalize()
        missing = [f for f in IMPORT_REQUIRED if not row.get(f)]
        s = PatientRegistrationSerializer(data=row)
        try:
            if missing:
                raise ValueError(f'{", ".join(missing)} required')
            if not s.is_valid():
                raise ValueError(_first_error(s.errors))
            register_patient(user, clinic, s.validated_data)
        except ValueError as e:
            result['failed'] += 1
            result['errors'].append(f'Row {line_no}: {e}')
            continue
        result['imported'] += 1
    logger.info("imported %d patients for clinic %s (%d failed)", result['imported'], clinic.id, result['failed'])
    return result
