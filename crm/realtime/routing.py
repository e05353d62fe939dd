from django.urls import path

from crm.realtime.chat_consumers import WhatsAppChatConsumer
from crm.realtime.consumers import NotificationConsumer

websocket_urlpatterns = [
    path("ws/notifications/", NotificationConsumer.as_asgi()),
    path("ws/whatsapp/", WhatsAppChatConsumer.as_asgi()),
]
