"""
WSGI config for the Django application.

HTTP only: the REST API and the gateway webhook work, the notifications
WebSocket needs the ASGI entry point in asgi.py.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
