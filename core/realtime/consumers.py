import json
from urllib.parse import parse_qs

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

from core.models import User
from core.services.notifications import group_name, unread_count


def _user_from_token(raw: str):
    try:
        token = AccessToken(raw)
    except TokenError:
        return None
    return User.objects.filter(id=token.get("user_id"), is_active=True).first()


class NotificationsConsumer(AsyncWebsocketConsumer):
    """Per-user notification stream.

    Authenticates via the session (AuthMiddlewareStack) or a ``?token=``
    JWT access token, then joins ``notifications.<user_id>``.
    """

    async def connect(self):
        user = self.scope.get("user") or AnonymousUser()
        if not user.is_authenticated:
            raw = parse_qs(self.scope.get("query_string", b"").decode()).get("token", [""])[0]
            user = await sync_to_async(_user_from_token)(raw) if raw else None
        if user is None or not user.is_authenticated:
            await self.close(code=4001)
            return
        self.user_id = user.id
        self.group_name = group_name(user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        count = await sync_to_async(unread_count)(user)
        await self.send(json.dumps({"type": "welcome", "unreadCount": count}))

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return
        try:
            data = json.loads(text_data)
        except ValueError:
            await self.send(json.dumps({"type": "error", "code": 4000, "message": "invalid_json"}))
            return
        if isinstance(data, dict) and data.get("type") == "ping":
            await self.send(json.dumps({"type": "pong"}))

    async def notification_created(self, event):
        await self.send(json.dumps(event))

    notification_updated = notification_created
    notification_deleted = notification_created
    notification_count = notification_created
