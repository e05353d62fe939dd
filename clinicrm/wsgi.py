"""
WSGI config for the clinic CRM project.

Exposes the WSGI callable as ``application``; WebSocket traffic needs the
ASGI entry point in ``clinicrm.asgi`` instead.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'clinicrm.settings')

application = get_wsgi_application()
