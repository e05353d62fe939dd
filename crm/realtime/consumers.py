import json

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from crm.models import Notification
from crm.services.notifications import group_for


class NotificationConsumer(AsyncWebsocketConsumer):
    """Pushes the authenticated user's notifications as they are created."""

    async def connect(self):
        user = self.scope.get("user")
        if not (user and user.is_authenticated):
            await self.close(code=4001)
            return
        self.group_name = group_for(user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        unread = await sync_to_async(
            Notification.objects.filter(user_id=user.id, is_read=False).count
        )()
        await self.send(json.dumps({"type": "welcome", "unreadCount": unread}))

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        if text_data == "ping":
            await self.send("pong")

    # event: {"type": "notification.push", "payload": {...}}
    async def notification_push(self, event):
        await self.send(json.dumps({"type": "notification", **event.get("payload", {})}))
