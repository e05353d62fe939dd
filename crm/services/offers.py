from typing import Optional

from django.utils import timezone

from crm.models import Clinic, Offer, User
from crm.services.audit import log_action

OFFER_FIELDS = {
    'title': 'title',
    'description': 'description',
    'type': 'type',
    'value': 'value',
    'currency': 'currency',
    'code': 'code',
    'startsAt': 'starts_at',
    'endsAt': 'ends_at',
    'status': 'status',
    'treatments': 'treatments',
    'maxUses': 'max_uses',
}


def serialize_offer(o: Offer) -> dict:
    return {
        'id': o.id,
        'clinicId': o.clinic_id,
        'title': o.title,
        'description': o.description,
        'type': o.type,
        'value': float(o.value),
        'currency': o.currency,
        'code': o.code,
        'startsAt': o.starts_at.isoformat(),
        'endsAt': o.ends_at.isoformat(),
        'status': o.status,
        'treatments': o.treatments,
        'maxUses': o.max_uses,
        'usesCount': o.uses_count,
        'createdAt': o.created_at.isoformat(),
    }


def expire_if_past(offer: Offer, now=None) -> bool:
    """Flip an offer whose end date has passed to ``expired``."""
    now = now or timezone.now()
    if offer.status != 'expired' and offer.ends_at < now:
        offer.status = 'expired'
        offer.save(update_fields=['status', 'updated_at'])
        return True
    return False


def expire_past_offers(clinic: Optional[Clinic] = None) -> int:
    qs = Offer.objects.filter(ends_at__lt=timezone.now()).exclude(status='expired')
    if clinic is not None:
        qs = qs.filter(clinic=clinic)
    return qs.update(status='expired', updated_at=timezone.now())


def get_offer_for(clinic: Optional[Clinic], offer_id) -> Offer:
    """Fetch an offer, refusing offers of another clinic."""
    offer = Offer.objects.filter(id=offer_id).first()
    if offer is None:
        raise LookupError('Offer not found')
    if clinic is not None and offer.clinic_id != clinic.id:
        raise PermissionError('You do not have access to this offer')
    return offer


def create_offer(user: User, clinic: Clinic, data: dict) -> Offer:
    kwargs = {model: data[key] for key, model in OFFER_FIELDS.items() if key in data}
    offer = Offer.objects.create(clinic=clinic, created_by=user, **kwargs)
    log_action(user=user, action='offer_create', object_type='offer', object_id=offer.id, clinic=clinic)
    return offer


def update_offer(user: User, offer: Offer, data: dict) -> Offer:
    fields = []
    for key, model in OFFER_FIELDS.items():
        if key in data:
            setattr(offer, model, data[key])
            fields.append(model)
    if offer.ends_at <= offer.starts_at:
        raise ValueError('endsAt must be after startsAt')
    if fields:
        offer.save(update_fields=fields + ['updated_at'])
    log_action(user=user, action='offer_update', object_type='offer', object_id=offer.id,
               clinic=offer.clinic, detail={'fields': fields})
    return offer


def list_offers(clinic: Clinic, status: Optional[str] = None):
    expire_past_offers(clinic)
    qs = Offer.objects.filter(clinic=clinic)
    if status:
        qs = qs.filter(status=status)
    return [serialize_offer(o) for o in qs.order_by('-created_at', '-id')]


def delete_offer(user: User, offer: Offer) -> None:
    offer_id, clinic = offer.id, offer.clinic
    offer.delete()
    log_action(user=user, action='offer_delete', object_type='offer', object_id=offer_id, clinic=clinic)
