"""
WSGI entrypoint for the EMR backend.

Serves the REST API only; WebSocket notifications need the ASGI
application in ``emr.asgi``.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'emr.settings')

application = get_wsgi_application()
