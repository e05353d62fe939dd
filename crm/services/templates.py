"""
Message templates of a clinic.

SMS and email templates are stored as-is and usable straight away.
WhatsApp templates are registered with the Cloud API first; the API
reviews them, so they start out ``pending`` unless it answers otherwise.
"""
import logging
from typing import Optional

from django.conf import settings
from django.db import transaction

from crm.models import Clinic, MessageTemplate, User
from crm.services.audit import log_action
from crm.services.whatsapp import graph_post

logger = logging.getLogger(__name__)

# payload key -> model field
TEMPLATE_FIELDS = {
    'name': 'name',
    'uniqueName': 'unique_name',
    'category': 'category',
    'language': 'language',
    'subject': 'subject',
    'content': 'content',
    'variables': 'variables',
    'bodyVariableSampleValues': 'body_samples',
    'headerText': 'header_text',
    'headerVariableSampleValues': 'header_samples',
    'footer': 'footer',
    'templateButtons': 'buttons',
}


def serialize_template(t: MessageTemplate) -> dict:
    return {
        '_id': t.id,
        'id': t.id,
        'clinicId': t.clinic_id,
        'templateType': t.template_type,
        'name': t.name,
        'uniqueName': t.unique_name,
        'category': t.category,
        'language': t.language,
        'subject': t.subject,
        'content': t.content,
        'variables': t.variables,
        'bodyVariableSampleValues': t.body_samples,
        'headerText': t.header_text,
        'headerVariableSampleValues': t.header_samples,
        'footer': t.footer,
        'templateButtons': t.buttons,
        'status': t.status,
        'templateId': t.external_id or None,
        'createdAt': t.created_at.isoformat(),
        'updatedAt': t.updated_at.isoformat(),
    }


def build_components(t: MessageTemplate) -> list[dict]:
    """Cloud API ``components`` for a WhatsApp template."""
    if t.category == 'authentication':
        return [
            {'type': 'BODY', 'add_security_recommendation': True},
            {'type': 'BUTTONS', 'buttons': [{'type': 'OTP', 'otp_type': 'COPY_CODE'}]},
        ]
    components = []
    if t.header_text:
        header = {'type': 'HEADER', 'format': 'TEXT', 'text': t.header_text}
        samples = [str(s).strip() for s in t.header_samples if str(s).strip()]
        if samples:
            header['example'] = {'header_text': samples[:1]}
        components.append(header)
    body = {'type': 'BODY', 'text': t.content}
    samples = [str(s).strip() for s in t.body_samples]
    if samples and all(samples):
        body['example'] = {'body_text': [samples]}
    components.append(body)
    if t.footer:
        components.append({'type': 'FOOTER', 'text': t.footer})
    if t.buttons:
        components.append({'type': 'BUTTONS', 'buttons': t.buttons})
    return components


def business_account_for(clinic: Clinic) -> str:
    account = clinic.whatsapp_business_account_id or settings.WHATSAPP_BUSINESS_ACCOUNT_ID
    if not account:
        raise ValueError('WhatsApp business account not configured for this clinic')
    return account


def _submit(t: MessageTemplate) -> None:
    if t.external_id:
        data = graph_post(t.external_id, {
            'category': t.category.upper(),
            'components': build_components(t),
        })
    else:
        data = graph_post(f"{business_account_for(t.clinic)}/message_templates", {
            'name': t.unique_name,
            'category': t.category.upper(),
            'language': t.language,
            'components': build_components(t),
        })
        if not data.get('id'):
            raise RuntimeError('Failed to create WhatsApp template')
        t.external_id = str(data['id'])
    t.status = (data.get('status') or 'pending').lower()
    logger.info("whatsapp template %s submitted for review (%s)", t.unique_name, t.status)


@transaction.atomic
def create_template(user: User, clinic: Clinic, data: dict) -> MessageTemplate:
    """Store a template; WhatsApp ones are registered with the Cloud API first.

    ``data`` is the validated payload of :class:`TemplateSerializer`.
    """
    kind = data['templateType']
    if MessageTemplate.objects.filter(clinic=clinic, template_type=kind, unique_name=data['uniqueName']).exists():
        raise ValueError('A template with this unique name already exists')
    values = {field: data[key] for key, field in TEMPLATE_FIELDS.items() if key in data}
    t = MessageTemplate(clinic=clinic, template_type=kind, created_by=user, **values)
    if kind == 'whatsapp':
        _submit(t)
    else:
        t.status = 'approved'
    t.save()
    log_action(user=user, action='template_create', object_type='message_template', object_id=t.id,
               clinic=clinic, detail={'type': kind})
    return t


@transaction.atomic
def update_template(user: User, clinic: Clinic, t: MessageTemplate, data: dict) -> MessageTemplate:
    """Apply the provided fields; WhatsApp templates go back for review."""
    for key, field in TEMPLATE_FIELDS.items():
        if key in ('uniqueName', 'language'):
            # the Cloud API keys templates by name and language
            continue
        if key in data and data[key] not in (None, ''):
            setattr(t, field, data[key])
    if t.template_type == 'whatsapp':
        _submit(t)
    t.save()
    log_action(user=user, action='template_update', object_type='message_template', object_id=t.id, clinic=clinic)
    return t


def get_template(clinic: Clinic, template_id) -> MessageTemplate:
    try:
        template_id = int(template_id)
    except (TypeError, ValueError):
        raise ValueError('Valid templateId is required')
    t = MessageTemplate.objects.select_related('clinic').filter(clinic=clinic, id=template_id).first()
    if t is None:
        raise LookupError('Template not found')
    return t


def list_templates(clinic: Clinic, template_type: Optional[str] = None) -> list[dict]:
    qs = MessageTemplate.objects.filter(clinic=clinic)
    if template_type:
        qs = qs.filter(template_type=template_type)
    return [serialize_template(t) for t in qs.order_by('-created_at', '-id')]
