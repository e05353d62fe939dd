import logging

from crm.models import Clinic, Enquiry
from crm.services.notifications import notify

logger = logging.getLogger(__name__)


def serialize_enquiry(e: Enquiry) -> dict:
    return {
        '_id': e.id,
        'id': e.id,
        'clinicId': e.clinic_id,
        'name': e.name,
        'email': e.email,
        'phone': e.phone,
        'message': e.message,
        'createdAt': e.created_at.isoformat(),
    }


def submit_enquiry(data: dict) -> Enquiry:
    """Store a public enquiry and tell the clinic owner about it."""
    clinic = Clinic.objects.select_related('owner').filter(id=data['clinicId']).first()
    if clinic is None:
        raise LookupError('Clinic not found')
    enquiry = Enquiry.objects.create(
        clinic=clinic,
        name=data['name'],
        email=data['email'],
        phone=data['phone'],
        message=data['message'],
    )
    if clinic.owner is not None:
        notify(clinic.owner, f'New enquiry from {enquiry.name}', type='enquiry', related_id=enquiry.id)
    else:
        logger.warning("enquiry %s for clinic %s has no owner to notify", enquiry.id, clinic.id)
    return enquiry


def list_enquiries(clinic: Clinic):
    return [serialize_enquiry(e) for e in Enquiry.objects.filter(clinic=clinic)]
