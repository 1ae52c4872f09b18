import logging
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db.models import Q

from core.models import Notification, User

logger = logging.getLogger(__name__)


def group_name(user_id: int) -> str:
    return f"notifications.{user_id}"


def serialize_notification(n: Notification) -> dict:
    return {
        'id': n.id,
        'userId': n.user_id,
        'title': n.title,
        'message': n.message,
        'type': n.type,
        'priority': n.priority,
        'isRead': n.is_read,
        'isDismissed': n.is_dismissed,
        'relatedTask': n.related_task_id,
        'relatedPatient': n.related_patient_id,
        'link': n.link,
        'createdAt': n.created_at.isoformat() if n.created_at else None,
    }


def unread_q() -> Q:
    return Q(is_read=False, is_dismissed=False)


def unread_count(user: User) -> int:
    return Notification.objects.filter(unread_q(), user=user).count()


def notify(user: User, *, title: str, message: str, type: str = 'other', priority: str = 'medium',
           related_task=None, related_patient=None, link: str = '') -> Notification:
    """Persist a notification and push it to the recipient's websocket group."""
    n = Notification.objects.create(
        user=user, title=title, message=message, type=type, priority=priority,
        related_task=related_task, related_patient=related_patient, link=link,
    )
    push(n)
    return n


def push(n: Notification, *, event: str = 'notification.created') -> None:
    """Send ``n`` to its owner's sockets; ``notification.updated`` after read/dismiss."""
    _send(n.user, {"type": event, "notification": serialize_notification(n)})


def push_count(user: User, *, event: str = 'notification.count', **extra) -> None:
    """Refresh the unread badge after deletes and bulk updates."""
    _send(user, {"type": event, **extra})


def _send(user: User, payload: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    payload["unreadCount"] = unread_count(user)
    try:
        async_to_sync(channel_layer.group_send)(group_name(user.id), payload)
    except Exception:
        logger.exception("failed to push %s to user %s", payload["type"], user.id)


def mark_all_read(user: User, *, type: Optional[str] = None) -> int:
    qs = Notification.objects.filter(user=user, is_read=False)
    if type:
        qs = qs.filter(type=type)
    return qs.update(is_read=True)
