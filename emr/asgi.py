"""
ASGI entrypoint for the EMR backend.

HTTP requests go to Django; ``ws/notifications/`` streams a user's
notifications through Channels.  Settings must be configured and Django
set up before the consumer (which imports models) is loaded.
"""
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "emr.settings")

import django  # noqa: E402
django.setup()  # noqa: E402

from channels.auth import AuthMiddlewareStack  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from django.core.asgi import get_asgi_application  # noqa: E402
from django.urls import path  # noqa: E402

from core.realtime.consumers import NotificationsConsumer  # noqa: E402

websocket_urlpatterns = [
    path("ws/notifications/", NotificationsConsumer.as_asgi()),
]

application = ProtocolTypeRouter({
    "http": get_asgi_application(),
    "websocket": AuthMiddlewareStack(URLRouter(websocket_urlpatterns)),
})
