"""Rooms and departments: named, per-clinic resources with unique names."""
from django.db import IntegrityError, transaction

from crm.models import Clinic, Department, Room, User
from crm.services.audit import log_action

KINDS = {
    'room': Room,
    'department': Department,
}


def serialize(obj) -> dict:
    return {
        '_id': obj.id,
        'id': obj.id,
        'name': obj.name,
        'clinicId': obj.clinic_id,
        'createdAt': obj.created_at.isoformat(),
    }


def _normalize(name) -> str:
    name = (name or '').strip() if isinstance(name, str) else ''
    return ' '.join(name.split())


def _duplicate_message(kind: str) -> str:
    return f'A {kind} with this name already exists'


def list_items(kind: str, clinic: Clinic):
    model = KINDS[kind]
    return [serialize(o) for o in model.objects.filter(clinic=clinic)]


def create_item(kind: str, user: User, clinic: Clinic, name) -> object:
    model = KINDS[kind]
    name = _normalize(name)
    if not name:
        raise ValueError(f'{kind.capitalize()} name is required')
    if model.objects.filter(clinic=clinic, name__iexact=name).exists():
        raise ValueError(_duplicate_message(kind))
    try:
        with transaction.atomic():
            obj = model.objects.create(clinic=clinic, name=name)
    except IntegrityError:
        raise ValueError(_duplicate_message(kind))
    log_action(user=user, action=f'{kind}_create', object_type=kind, object_id=obj.id, clinic=clinic)
    return obj


def get_item(kind: str, clinic: Clinic, item_id):
    model = KINDS[kind]
    try:
        item_id = int(item_id)
    except (TypeError, ValueError):
        raise ValueError(f'Invalid {kind} id')
    obj = model.objects.filter(clinic=clinic, id=item_id).first()
    if obj is None:
        raise LookupError(f'{kind.capitalize()} not found')
    return obj


def rename_item(kind: str, user: User, clinic: Clinic, item_id, name) -> object:
    obj = get_item(kind, clinic, item_id)
    name = _normalize(name)
    if not name:
        raise ValueError(f'{kind.capitalize()} name is required')
    if KINDS[kind].objects.filter(clinic=clinic, name__iexact=name).exclude(id=obj.id).exists():
        raise ValueError(_duplicate_message(kind))
    obj.name = name
    obj.save(update_fields=['name'])
    log_action(user=user, action=f'{kind}_update', object_type=kind, object_id=obj.id, clinic=clinic)
    return obj


def delete_item(kind: str, user: User, clinic: Clinic, item_id) -> None:
    obj = get_item(kind, clinic, item_id)
    if kind == 'room' and obj.appointments.exists():
        raise ValueError('Room has appointments and cannot be deleted')
    obj_id = obj.id
    obj.delete()
    log_action(user=user, action=f'{kind}_delete', object_type=kind, object_id=obj_id, clinic=clinic)
