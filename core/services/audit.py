"""Audit trail for staff and public actions on patient-facing records."""
from typing import Any, Dict, Optional

from django.db import models

from core.models import AuditEvent, User


def log_action(*, user: Optional[User], action: str, obj: Optional[models.Model] = None,
               object_type: Optional[str] = None, object_id: Optional[int] = None,
               detail: Optional[Dict[str, Any]] = None) -> AuditEvent:
    """Record ``action``; ``obj`` fills ``object_type``/``object_id`` from the instance."""
    if obj is not None:
        object_type = object_type or obj._meta.model_name
        object_id = object_id or obj.pk
    return AuditEvent.objects.create(
        user=user if user is not None and user.pk else None,
        action=action,
        object_type=object_type,
        object_id=object_id,
        detail=detail or {},
    )


def client_ip(request) -> Optional[str]:
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')
