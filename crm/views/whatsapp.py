import json
import logging

import requests
from django.http import HttpResponse
from rest_framework.decorators import api_view, authentication_classes, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated

from crm.permissions import HasRole, IsClinicSide, ModulePermission
from crm.serializers.whatsapp import (
    AssignConversationSerializer,
    ConversationQuerySerializer,
    SendWhatsAppSerializer,
)
from crm.services import whatsapp as wa
from crm.throttles import WebhookThrottle
from crm.views.base import fail, ok, service_errors, tenant

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([WebhookThrottle])
def webhook(request):
    """Cloud API webhook: subscription handshake and event delivery."""
    if request.method == 'GET':
        qp = request.query_params
        challenge = wa.verify_subscription(qp.get('hub.mode'), qp.get('hub.verify_token'), qp.get('hub.challenge'))
        if challenge is None:
            return HttpResponse('Forbidden', status=403, content_type='text/plain')
        return HttpResponse(challenge, status=200, content_type='text/plain')

    body = request.body
    if not wa.signature_valid(body, request.headers.get('X-Hub-Signature-256')):
        logger.warning("whatsapp webhook with bad signature from %s", request.META.get('REMOTE_ADDR'))
        return fail('Invalid signature', 403)
    try:
        payload = json.loads(body or b'{}')
    except ValueError:
        return fail('Invalid JSON body')
    if not isinstance(payload, dict):
        return fail('Invalid JSON body')
    handled = wa.process_webhook(payload)
    return ok(**handled)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('whatsapp_chat', 'create')])
@service_errors
def send_whatsapp(request):
    s = SendWhatsAppSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    clinic = tenant(request)
    try:
        msg = wa.send_text(request.user, clinic, vd['to'], vd['message'], client_id=vd.get('id'))
    except (RuntimeError, requests.RequestException) as e:
        logger.warning("whatsapp send failed for clinic %s: %s", clinic.id, e)
        return fail(str(e), 502)
    return ok('Message sent', data=wa.message_frame(msg))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('whatsapp_chat', 'read')])
@service_errors
def conversations(request):
    clinic = tenant(request)
    q = ConversationQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    items, pagination = wa.list_conversations(
        clinic, status=vd.get('status') or 'all', search=vd.get('search'),
        page=vd.get('page'), limit=vd.get('limit'),
    )
    return ok('Conversations Found.', conversations=items, pagination=pagination)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('whatsapp_chat', 'read')])
@service_errors
def conversation_messages(request, conversation_id):
    clinic = tenant(request)
    return ok(messages=wa.conversation_messages(clinic, conversation_id))


@api_view(['POST'])
@permission_classes([
    IsAuthenticated,
    HasRole('admin', 'clinic', 'agent', 'doctor'),
    ModulePermission('whatsapp_chat', 'update'),
])
@service_errors
def assign_conversation(request, conversation_id):
    """Assign a conversation to ``ownerId``, or unassign it when no owner is given."""
    clinic = tenant(request)
    s = AssignConversationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    result = wa.assign_conversation(request.user, clinic, conversation_id, s.validated_data.get('ownerId'))
    if not result['changed']:
        return ok('Conversation already assigned to this agent', data=result)
    message = 'Conversation assigned successfully' if result['ownerId'] else 'Conversation unassigned successfully'
    return ok(message, data=result)
