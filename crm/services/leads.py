import logging
from datetime import datetime, time
from typing import Optional

import bleach
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from crm.models import Clinic, Lead, LeadAssignment, LeadFollowUp, LeadNote, User
from crm.services.audit import log_action
from crm.services.notifications import notify
from crm.services.spreadsheets import map_columns, mapped_row, read_spreadsheet
from crm.services.tenancy import clinic_users

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20


def _clean(value) -> str:
    return bleach.clean(str(value or '').strip(), strip=True)


def resolve_assignees(clinic: Clinic, values) -> list[User]:
    """Map ids or (case-insensitive) names onto users of ``clinic``."""
    if values in (None, '', []):
        return []
    if not isinstance(values, (list, tuple)):
        values = [values]
    members = clinic_users(clinic)
    users = []
    for val in values:
        raw = str(val).strip()
        user = None
        if raw.isdigit():
            user = members.filter(id=int(raw)).first()
        if user is None:
            user = members.filter(
                Q(username__iexact=raw) | Q(first_name__iexact=raw)
            ).first()
            if user is None and ' ' in raw:
                first, _, last = raw.partition(' ')
                user = members.filter(first_name__iexact=first, last_name__iexact=last.strip()).first()
        if user is None:
            raise ValueError(f'Assigned user not found: {raw}')
        if user not in users:
            users.append(user)
    return users


def _normalize_notes(notes) -> list[str]:
    if not notes:
        return []
    if not isinstance(notes, list):
        notes = [notes]
    out = []
    for n in notes:
        text = n.get('text') if isinstance(n, dict) else n
        text = _clean(text)
        if text:
            out.append(text)
    return out


def _parse_when(value) -> datetime:
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt)
    return dt


@transaction.atomic
def create_lead(user: User, clinic: Clinic, data: dict) -> Lead:
    """Create a lead with its notes, follow-ups and assignees.

    ``data`` is the validated payload of :class:`LeadCreateSerializer`.
    """
    assignees = resolve_assignees(clinic, data.get('assignedTo'))
    lead = Lead.objects.create(
        clinic=clinic,
        name=_clean(data['name']),
        phone=_clean(data['phone']),
        gender=data['gender'],
        age=data.get('age'),
        treatments=[
            {'treatment': _clean(t['treatment']), 'subTreatment': _clean(t.get('subTreatment')) or None}
            for t in data['treatments']
        ],
        source=data['source'],
        custom_source=_clean(data.get('customSource')),
        offer_tag=_clean(data.get('offerTag')),
        status=data.get('status') or 'New',
        custom_status=_clean(data.get('customStatus')),
        created_by=user,
    )
    for text in _normalize_notes(data.get('notes')):
        LeadNote.objects.create(lead=lead, text=text, added_by=user)
    for f in data.get('followUps') or []:
        LeadFollowUp.objects.create(lead=lead, date=_parse_when(f['date']), added_by=user)
    for assignee in assignees:
        LeadAssignment.objects.create(lead=lead, user=assignee)
        notify(assignee, f'New lead assigned: {lead.name}', type='lead', related_id=lead.id)

    log_action(user=user, action='lead_create', object_type='lead', object_id=lead.id, clinic=clinic)
    return lead


def serialize_lead(lead: Lead) -> dict:
    return {
        'id': lead.id,
        'clinicId': lead.clinic_id,
        'name': lead.name,
        'phone': lead.phone,
        'gender': lead.gender,
        'age': lead.age,
        'treatments': lead.treatments,
        'source': lead.source,
        'customSource': lead.custom_source,
        'offerTag': lead.offer_tag,
        'status': lead.status,
        'customStatus': lead.custom_status,
        'notes': [
            {'text': n.text, 'addedBy': n.added_by_id, 'createdAt': n.created_at.isoformat()}
            for n in lead.notes.all()
        ],
        'followUps': [
            {'date': f.date.isoformat(), 'addedBy': f.added_by_id} for f in lead.follow_ups.all()
        ],
        'assignedTo': [
            {'user': {'id': a.user_id, 'name': a.user.display_name}, 'assignedAt': a.assigned_at.isoformat()}
            for a in lead.assignments.all()
        ],
        'createdAt': lead.created_at.isoformat(),
    }


def filter_leads(clinic: Clinic, *, treatment: Optional[str] = None, offer: Optional[str] = None,
                 source: Optional[str] = None, status: Optional[str] = None, name: Optional[str] = None,
                 start_date=None, end_date=None, page: int = 1, limit: int = DEFAULT_PAGE_SIZE):
    qs = Lead.objects.filter(clinic=clinic)
    if treatment:
        # JSON containment is not portable to SQLite, match the serialized list instead
        qs = qs.filter(treatments__icontains=f'"treatment": "{treatment}"')
    if offer:
        qs = qs.filter(offer_tag=offer)
    if source:
        qs = qs.filter(source=source)
    if status:
        qs = qs.filter(status=status)
    if name:
        qs = qs.filter(name__icontains=name)
    if start_date and end_date:
        tz = timezone.get_current_timezone()
        qs = qs.filter(
            created_at__gte=timezone.make_aware(datetime.combine(start_date, time.min), tz),
            created_at__lte=timezone.make_aware(datetime.combine(end_date, time.max), tz),
        )

    page = max(1, int(page or 1))
    limit = min(MAX_PAGE_SIZE, max(1, int(limit or DEFAULT_PAGE_SIZE)))
    total = qs.count()
    start = (page - 1) * limit
    items = (
        qs.order_by('-created_at', '-id')
        .prefetch_related('notes', 'follow_ups', 'assignments__user')[start:start + limit]
    )
    total_pages = (total + limit - 1) // limit
    pagination = {
        'totalLeads': total,
        'totalPages': total_pages,
        'currentPage': page,
        'limit': limit,
        'hasMore': page < total_pages,
    }
    return [serialize_lead(lead) for lead in items], pagination


IMPORT_FIELDS = {
    'name': 'name',
    'phone': 'phone',
    'gender': 'gender',
    'age': 'age',
    'source': 'source',
    'status': 'status',
    'treatments': 'treatments',
    'offertag': 'offerTag',
    'followupdate': 'followUpDate',
}
IMPORT_REQUIRED = ('name', 'phone')
FOLLOW_UP_FORMATS = (
    '%d/%m/%Y %H:%M', '%d/%m/%Y, %H:%M', '%Y-%m-%d %H:%M', '%d-%m-%Y %H:%M',
    '%d/%m/%Y', '%Y-%m-%d', '%d-%m-%Y',
)


def _gender(value: str) -> str:
    v = value.strip().lower()
    if v.startswith('f'):
        return 'Female'
    if v.startswith('o'):
        return 'Other'
    return 'Male'


def _choice(value, choices, default: str) -> str:
    wanted = str(value or '').strip().lower()
    for key, _ in choices:
        if key.lower() == wanted:
            return key
    return default


def _age(value: str) -> Optional[int]:
    try:
        age = int(float(value))
    except (TypeError, ValueError):
        return None
    return age if 0 < age < 150 else None


def parse_follow_up(value) -> Optional[datetime]:
    text = str(value or '').strip()
    if not text:
        return None
    try:
        return _parse_when(text)
    except ValueError:
        pass
    for fmt in FOLLOW_UP_FORMATS:
        try:
            return timezone.make_aware(datetime.strptime(text, fmt))
        except ValueError:
            continue
    logger.warning("could not parse follow-up date %r", text)
    return None


def _row_treatments(value: str) -> list[dict]:
    return [
        {'treatment': _clean(t), 'subTreatment': None}
        for t in value.replace('[', '').replace(']', '').replace('"', '').split(',')
        if t.strip()
    ]


@transaction.atomic
def import_leads(user: User, clinic: Clinic, upload, options: Optional[dict] = None) -> dict:
    """Create leads from a spreadsheet upload.

    Each row needs a name and a phone.  Everything else a
    row leaves out comes from ``options``, the validated form fields of
    :class:`LeadImportSerializer`: treatments, source, status, offer tag,
    a note, a follow-up date and assignees shared by every imported lead.
    Rows without name or phone are reported and skipped, as are phones
    that already exist in the clinic or earlier in the file.
    """
    options = options or {}
    rows = read_spreadsheet(upload)
    if not rows:
        raise ValueError('No data found in the file')
    columns = map_columns(rows[0].keys(), options.get('columnMapping'), IMPORT_FIELDS, IMPORT_REQUIRED)

    assignees = resolve_assignees(clinic, options.get('assignedTo'))
    shared_treatments = [
        {'treatment': _clean(t['treatment']), 'subTreatment': _clean(t.get('subTreatment')) or None}
        for t in options.get('treatments') or []
    ]
    custom_source = _clean(options.get('customSource'))
    custom_status = _clean(options.get('customStatus'))
    default_source = 'Other' if custom_source else options.get('source') or 'Instagram'
    default_status = 'Other' if custom_status else options.get('status') or 'New'
    note = _clean(options.get('note'))
    shared_follow_up = options.get('followUpDate')

    existing = set(Lead.objects.filter(clinic=clinic).values_list('phone', flat=True))
    created, skipped = [], []
    for line_no, raw in enumerate(rows, start=2):
        row = mapped_row(raw, columns)
        name, phone = _clean(row.get('name')), _clean(row.get('phone'))
        if not name or not phone:
            skipped.append({'row': line_no, 'reason': 'Missing name or phone'})
            continue
        if phone in existing:
            skipped.append({'row': line_no, 'reason': 'Duplicate phone'})
            continue

        source = _choice(row.get('source'), Lead.SOURCE_CHOICES, default_source)
        status = _choice(row.get('status'), Lead.STATUS_CHOICES, default_status)
        lead = Lead.objects.create(
            clinic=clinic,
            name=name,
            phone=phone,
            gender=_gender(row.get('gender', '')),
            age=_age(row.get('age')),
            treatments=_row_treatments(row['treatments']) if row.get('treatments') else shared_treatments,
            source=source,
            custom_source=custom_source,
            offer_tag=_clean(row.get('offerTag')) or _clean(options.get('offerTag')),
            status=status,
            custom_status=custom_status,
            created_by=user,
        )
        if note:
            LeadNote.objects.create(lead=lead, text=note, added_by=user)
        for when in (parse_follow_up(row.get('followUpDate')), shared_follow_up):
            if when:
                LeadFollowUp.objects.create(lead=lead, date=when, added_by=user)
        for assignee in assignees:
            LeadAssignment.objects.create(lead=lead, user=assignee)
        created.append(lead)
        existing.add(phone)

    for assignee in assignees if created else []:
        notify(assignee, f'{len(created)} imported leads assigned to you', type='lead')
    log_action(user=user, action='lead_import', object_type='lead', clinic=clinic,
               detail={'created': len(created), 'skipped': len(skipped)})
    logger.info("imported %d leads for clinic %s (%d skipped)", len(created), clinic.id, len(skipped))
    return {'created': len(created), 'skipped': skipped}


@transaction.atomic
def assign_lead(user: User, clinic: Clinic, lead: Lead, assignees, *, replace: bool = False) -> Lead:
    users = resolve_assignees(clinic, assignees)
    if not users:
        raise ValueError('At least one assignee is required')
    if replace:
        lead.assignments.exclude(user__in=users).delete()
    for assignee in users:
        _, created = LeadAssignment.objects.get_or_create(lead=lead, user=assignee)
        if created:
            notify(assignee, f'Lead assigned to you: {lead.name}', type='lead', related_id=lead.id)
    log_action(user=user, action='lead_reassign' if replace else 'lead_assign', object_type='lead',
               object_id=lead.id, clinic=clinic, detail={'users': [u.id for u in users]})
    return lead


def delete_lead(user: User, clinic: Clinic, lead: Lead) -> None:
    lead_id = lead.id
    lead.delete()
    log_action(user=user, action='lead_delete', object_type='lead', object_id=lead_id, clinic=clinic)
