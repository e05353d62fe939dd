import json

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.db.models import Q

from crm.models import Conversation, Lead
from crm.services.tenancy import TenancyError, resolve_clinic
from crm.services.whatsapp import group_for, normalize_phone

CHAT_ROLES = {"admin", "clinic", "agent", "doctor", "doctorStaff", "staff"}


async def _ws_error(ws, code: int, message: str, *, close: bool = False):
    """
    Uniform error frame.
    Codes: 4xxx client errors, 5xxx server errors.
    """
    payload = {"type": "error", "code": code, "message": message}
    try:
        await ws.send(json.dumps(payload))
    finally:
        if close:
            await ws.close(code=code)


def _phone_visible(user, phone: str) -> bool:
    """Whether ``phone`` is a lead or conversation of the user's clinic."""
    try:
        clinic = resolve_clinic(user)
    except TenancyError:
        return False
    if clinic is None:
        return True
    return (
        Lead.objects.filter(clinic=clinic).filter(Q(phone=phone) | Q(phone=f"+{phone}")).exists()
        or Conversation.objects.filter(clinic=clinic, phone=phone).exists()
    )


class WhatsAppChatConsumer(AsyncWebsocketConsumer):
    """Relays WhatsApp traffic of one phone number to an open chat window.

    The client names the phone in its first frame, ``{"phoneNumber": ...}``,
    and may switch to another phone by sending a new one.
    """

    async def connect(self):
        user = self.scope.get("user")
        if not (user and user.is_authenticated):
            await self.close(code=4001)
            return
        if getattr(user, "role", None) not in CHAT_ROLES:
            await self.close(code=4003)
            return
        self.group_name = None
        await self.accept()

    async def disconnect(self, close_code):
        if getattr(self, "group_name", None):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return
        try:
            data = json.loads(text_data)
        except ValueError:
            await _ws_error(self, 4000, "invalid_json")
            return
        if not isinstance(data, dict):
            await _ws_error(self, 4001, "invalid_payload")
            return

        phone = normalize_phone(data.get("phoneNumber"))
        if not phone:
            await _ws_error(self, 4002, "phone_required")
            return
        if len(phone) > 20:
            await _ws_error(self, 4005, "invalid_phone")
            return

        visible = await sync_to_async(_phone_visible)(self.scope["user"], phone)
        if not visible:
            await _ws_error(self, 4004, "phone_not_found")
            return

        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
        self.group_name = group_for(phone)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.send(json.dumps({"type": "subscribed", "phoneNumber": phone}))

    # event: {"type": "whatsapp.message", "payload": {id, from, to, text, timestamp, status}}
    async def whatsapp_message(self, event):
        await self.send(json.dumps(event.get("payload", {})))
