"""
WhatsApp Cloud API integration.

Inbound messages arrive through the webhook, are stored against a
per-phone :class:`Conversation` and relayed to every socket subscribed to
the phone's channel group.  Outbound messages go through the Graph API
with ``requests`` and are relayed the same way so that every open chat
window shows them.
"""
import hashlib
import hmac
import logging
import re
from datetime import datetime, timezone as dt_timezone
from typing import Optional

import requests
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from crm.models import Clinic, Conversation, Lead, User, WhatsAppMessage
from crm.services.audit import log_action
from crm.services.notifications import notify

logger = logging.getLogger(__name__)

HIDDEN_STATUSES = ('trashed', 'blocked')
_NON_DIGITS = re.compile(r'[^\d]')


def normalize_phone(phone) -> str:
    """Strip ``+``, spaces, dashes and brackets from a phone number."""
    return _NON_DIGITS.sub('', str(phone or ''))


def group_for(phone: str) -> str:
    return f"whatsapp.{normalize_phone(phone)}"


def relay(phone: str, frame: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    async_to_sync(channel_layer.group_send)(group_for(phone), {"type": "whatsapp.message", "payload": frame})


def message_frame(msg: WhatsAppMessage, business_phone: str = '') -> dict:
    phone = msg.conversation.phone
    return {
        'id': msg.wa_id or str(msg.id),
        'from': phone if msg.direction == 'in' else business_phone,
        'to': business_phone if msg.direction == 'in' else phone,
        'text': msg.text,
        'timestamp': int(msg.timestamp.timestamp()),
        'status': msg.status,
    }


def serialize_message(msg: WhatsAppMessage) -> dict:
    return {
        'id': msg.id,
        'waId': msg.wa_id,
        'direction': msg.direction,
        'text': msg.text,
        'status': msg.status,
        'errorCode': msg.error_code or None,
        'errorMessage': msg.error_message or None,
        'timestamp': msg.timestamp.isoformat(),
    }


def serialize_owner(owner: Optional[User]) -> Optional[dict]:
    if owner is None:
        return None
    return {
        'id': owner.id,
        'name': owner.get_full_name() or owner.username,
        'email': owner.email,
        'role': owner.role,
        'phone': owner.phone,
    }


def serialize_conversation(c: Conversation) -> dict:
    lead = c.lead
    return {
        '_id': c.id,
        'id': c.id,
        'phone': c.phone,
        'status': c.status,
        'unreadCount': c.unread_count,
        'recentMessage': c.recent_message,
        'lastMessageAt': c.last_message_at.isoformat() if c.last_message_at else None,
        'lead': {'id': lead.id, 'name': lead.name, 'phone': lead.phone} if lead else None,
        'owner': serialize_owner(c.owner),
    }


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------

def verify_subscription(mode, token, challenge) -> Optional[str]:
    """Return the challenge to echo, or None when verification fails."""
    expected = settings.WHATSAPP_VERIFY_TOKEN
    if mode == 'subscribe' and expected and token == expected:
        return challenge
    return None


def signature_valid(body: bytes, header: Optional[str]) -> bool:
    """Check ``X-Hub-Signature-256``; always true when no app secret is configured."""
    secret = settings.WHATSAPP_APP_SECRET
    if not secret:
        return True
    if not header or not header.startswith('sha256='):
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, header[len('sha256='):])


def _from_epoch(value) -> datetime:
    try:
        return datetime.fromtimestamp(int(value), tz=dt_timezone.utc)
    except (TypeError, ValueError):
        return timezone.now()


def _message_text(message: dict) -> str:
    kind = message.get('type')
    if kind == 'text':
        return (message.get('text') or {}).get('body', '')
    if kind in ('image', 'video', 'document', 'audio'):
        return (message.get(kind) or {}).get('caption') or f'[{kind}]'
    if kind == 'button':
        return (message.get('button') or {}).get('text', '')
    return f'[{kind or "unknown"}]'


def _shared_number_clinic() -> Optional[Clinic]:
    unnumbered = list(Clinic.objects.filter(whatsapp_phone_number_id='').order_by('id')[:2])
    return unnumbered[0] if len(unnumbered) == 1 else None


def clinic_for_number(phone_number_id) -> Optional[Clinic]:
    """Clinic that owns a Cloud API ``phone_number_id``.

    The server-wide ``WHATSAPP_PHONE_NUMBER_ID`` belongs to the clinic
    without a number of its own, as long as there is exactly one such
    clinic.  :func:`number_for_clinic` applies the same rule outbound so
    replies land in the tenant that sent the message.
    """
    if not phone_number_id:
        return None
    clinic = Clinic.objects.filter(whatsapp_phone_number_id=phone_number_id).first()
    if clinic is None and phone_number_id == settings.WHATSAPP_PHONE_NUMBER_ID:
        clinic = _shared_number_clinic()
    return clinic


def number_for_clinic(clinic: Clinic) -> str:
    if clinic.whatsapp_phone_number_id:
        return clinic.whatsapp_phone_number_id
    if settings.WHATSAPP_PHONE_NUMBER_ID and _shared_number_clinic() == clinic:
        return settings.WHATSAPP_PHONE_NUMBER_ID
    raise ValueError('WhatsApp number not configured for this clinic')


@transaction.atomic
def store_inbound(clinic: Clinic, message: dict, contacts: list) -> Optional[WhatsAppMessage]:
    """Persist an inbound message; ``None`` when it was already delivered."""
    wa_id = message.get('id') or ''
    if wa_id and WhatsAppMessage.objects.filter(wa_id=wa_id).exists():
        logger.info("skipping redelivered whatsapp message %s", wa_id)
        return None

    phone = normalize_phone(message.get('from'))
    profile_name = ''
    for contact in contacts or []:
        if normalize_phone(contact.get('wa_id')) == phone:
            profile_name = (contact.get('profile') or {}).get('name', '')
            break

    lead = Lead.objects.filter(clinic=clinic, phone__in=[phone, f'+{phone}']).first()
    if lead is None:
        lead = Lead.objects.create(
            clinic=clinic, name=profile_name or phone, phone=phone, status='New', source='WhatsApp',
        )
        logger.info("created lead %s from whatsapp %s", lead.id, phone)

    conversation, _ = Conversation.objects.get_or_create(clinic=clinic, phone=phone, defaults={'lead': lead})
    if conversation.lead_id is None:
        conversation.lead = lead

    msg = WhatsAppMessage.objects.create(
        conversation=conversation,
        wa_id=wa_id,
        direction='in',
        text=_message_text(message),
        status='received',
        timestamp=_from_epoch(message.get('timestamp')),
    )
    conversation.unread_count += 1
    conversation.recent_message = msg.text[:512]
    conversation.last_message_at = msg.timestamp
    conversation.save(update_fields=['lead', 'unread_count', 'recent_message', 'last_message_at'])
    return msg


def apply_status(status: dict) -> Optional[WhatsAppMessage]:
    msg = WhatsAppMessage.objects.select_related('conversation').filter(wa_id=status.get('id')).first()
    if msg is None:
        return None
    msg.status = status.get('status') or msg.status
    errors = status.get('errors') or []
    if errors:
        msg.error_code = str(errors[0].get('code', ''))[:32]
        msg.error_message = (errors[0].get('title') or errors[0].get('message') or '')[:255]
    msg.save(update_fields=['status', 'error_code', 'error_message'])
    return msg


def process_webhook(payload: dict) -> dict:
    """Apply a Cloud API webhook payload; returns counts of what was handled."""
    handled = {'messages': 0, 'statuses': 0}
    for entry in payload.get('entry') or []:
        for change in entry.get('changes') or []:
            value = change.get('value') or {}
            metadata = value.get('metadata') or {}
            business_phone = normalize_phone(metadata.get('display_phone_number'))

            for status in value.get('statuses') or []:
                msg = apply_status(status)
                if msg is None:
                    continue
                handled['statuses'] += 1
                relay(msg.conversation.phone, {
                    'id': msg.wa_id,
                    'status': msg.status,
                    'recipient_id': normalize_phone(status.get('recipient_id')),
                })

            messages = value.get('messages') or []
            if not messages:
                continue
            clinic = clinic_for_number(metadata.get('phone_number_id'))
            if clinic is None:
                logger.warning("whatsapp message for unknown phone_number_id %s", metadata.get('phone_number_id'))
                continue
            for message in messages:
                msg = store_inbound(clinic, message, value.get('contacts'))
                if msg is None:
                    continue
                handled['messages'] += 1
                relay(msg.conversation.phone, message_frame(msg, business_phone))
    return handled


# ---------------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------------

def graph_post(path: str, body: dict) -> dict:
    """POST to the Graph API; ``RuntimeError`` on any API error."""
    if not settings.WHATSAPP_ENABLE:
        raise RuntimeError('WhatsApp messaging not enabled on server')
    url = f"{settings.WHATSAPP_API_BASE}/{settings.WHATSAPP_API_VERSION}/{path}"
    headers = {'Authorization': f"Bearer {settings.WHATSAPP_TOKEN}"}
    r = requests.post(url, json=body, headers=headers, timeout=settings.WHATSAPP_TIMEOUT)
    data = r.json() if r.content else {}
    if r.status_code >= 400 or 'error' in data:
        err = data.get('error') or {}
        raise RuntimeError(f"WhatsApp error {err.get('code', r.status_code)}: {err.get('message', 'request failed')}")
    return data


def _post_message(phone_number_id: str, to: str, text: str) -> dict:
    body = {
        'messaging_product': 'whatsapp',
        'recipient_type': 'individual',
        'to': to,
        'type': 'text',
        'text': {'preview_url': False, 'body': text},
    }
    return graph_post(f"{phone_number_id}/messages", body)


def send_text(user: User, clinic: Clinic, to, text: str, client_id: Optional[str] = None) -> WhatsAppMessage:
    phone = normalize_phone(to)
    if not phone:
        raise ValueError('Recipient phone number is required')
    text = (text or '').strip()
    if not text:
        raise ValueError('Message text is required')
    phone_number_id = number_for_clinic(clinic)
    data = _post_message(phone_number_id, phone, text)
    wa_id = ((data.get('messages') or [{}])[0]).get('id') or client_id or ''

    conversation, _ = Conversation.objects.get_or_create(
        clinic=clinic, phone=phone,
        defaults={'lead': Lead.objects.filter(clinic=clinic, phone__in=[phone, f'+{phone}']).first()},
    )
    msg = WhatsAppMessage.objects.create(
        conversation=conversation, wa_id=wa_id, direction='out', text=text,
        status='sent', sender=user, timestamp=timezone.now(),
    )
    conversation.recent_message = text[:512]
    conversation.last_message_at = msg.timestamp
    conversation.save(update_fields=['recent_message', 'last_message_at'])

    relay(phone, message_frame(msg))
    log_action(user=user, action='whatsapp_send', object_type='whatsapp_message', object_id=msg.id, clinic=clinic)
    return msg


def list_conversations(clinic: Clinic, *, status: str = 'all', search: Optional[str] = None,
                       page: int = 1, limit: int = 20):
    qs = Conversation.objects.filter(clinic=clinic).select_related('lead', 'owner')
    if status == 'all':
        qs = qs.exclude(status__in=HIDDEN_STATUSES)
    elif status == 'read':
        qs = qs.filter(unread_count=0)
    elif status == 'unread':
        qs = qs.filter(unread_count__gt=0)
    else:
        qs = qs.filter(status=status)
    if search:
        qs = qs.filter(Q(lead__name__icontains=search) | Q(phone__icontains=normalize_phone(search) or search))

    page = max(1, int(page or 1))
    limit = min(100, max(1, int(limit or 20)))
    total = qs.count()
    start = (page - 1) * limit
    items = qs.order_by('-last_message_at', '-id')[start:start + limit]
    return [serialize_conversation(c) for c in items], {
        'totalConversations': total,
        'currentPage': page,
        'totalPages': (total + limit - 1) // limit,
        'hasMore': page * limit < total,
    }


def conversation_messages(clinic: Clinic, conversation_id, limit: int = 100):
    conversation = Conversation.objects.filter(clinic=clinic, id=conversation_id).first()
    if conversation is None:
        raise LookupError('Conversation not found')
    if conversation.unread_count:
        conversation.unread_count = 0
        conversation.save(update_fields=['unread_count'])
    msgs = conversation.messages.order_by('-timestamp', '-id')[:limit]
    return [serialize_message(m) for m in reversed(list(msgs))]


ASSIGNABLE_ROLES = ('agent', 'doctor', 'staff', 'doctorStaff')


@transaction.atomic
def assign_conversation(user: User, clinic: Clinic, conversation_id, owner_id=None) -> dict:
    """Hand a conversation to a clinic member, or unassign it when ``owner_id`` is empty.

    Only approved agents, doctors and staff of the same clinic can own a
    conversation; trashed and blocked conversations cannot be assigned.
    """
    owner = None
    if owner_id:
        owner = User.objects.filter(id=owner_id, clinic=clinic, role__in=ASSIGNABLE_ROLES).first()
        if owner is None:
            raise ValueError('Agent not found or does not belong to this clinic')
        if not owner.is_active:
            raise ValueError('Agent is not approved or has been declined')

    conversation = (Conversation.objects.select_for_update().select_related('owner')
                    .filter(clinic=clinic, id=conversation_id).first())
    if conversation is None:
        raise LookupError('Conversation not found or you do not have access to it')
    if conversation.status in HIDDEN_STATUSES:
        raise ValueError(f'Cannot assign conversation with status: {conversation.status}')

    previous = conversation.owner_id
    if owner is not None and previous == owner.id:
        return {'conversationId': conversation.id, 'ownerId': owner.id, 'previousOwnerId': previous,
                'changed': False, 'conversation': serialize_conversation(conversation)}

    conversation.owner = owner
    if owner is not None:
        conversation.status = 'open'
    conversation.save(update_fields=['owner', 'status', 'updated_at'])
    if owner is not None and owner != user:
        notify(owner, f'Conversation with {conversation.phone} assigned to you', type='conversation',
               related_id=conversation.id)
    log_action(user=user, action='conversation_assign' if owner else 'conversation_unassign',
               object_type='conversation', object_id=conversation.id, clinic=clinic,
               detail={'previousOwnerId': previous, 'ownerId': owner.id if owner else None})
    return {'conversationId': conversation.id, 'ownerId': owner.id if owner else None, 'previousOwnerId': previous,
            'changed': True, 'conversation': serialize_conversation(conversation)}
