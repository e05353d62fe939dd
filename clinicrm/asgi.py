"""
ASGI config for the clinic CRM project.

Wires both HTTP (Django) and WebSocket (Channels).
Django must be configured before any Django-dependent module is imported.
"""
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "clinicrm.settings")

import django  # noqa: E402
django.setup()  # noqa: E402

from django.core.asgi import get_asgi_application  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from crm.realtime.auth import TokenAuthMiddlewareStack  # noqa: E402
from crm.realtime.routing import websocket_urlpatterns  # noqa: E402

django_asgi_app = get_asgi_application()

application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": AllowedHostsOriginValidator(
        TokenAuthMiddlewareStack(URLRouter(websocket_urlpatterns))
    ),
})
