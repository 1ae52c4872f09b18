"""
Notification inbox views.

Every user only ever sees and changes their own notifications.
"""
from __future__ import annotations

from rest_framework import serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import Notification, Task, User
from core.services.notifications import mark_all_read, push, push_count, serialize_notification, unread_count


class NotificationQuerySerializer(serializers.Serializer):
    isRead = serializers.BooleanField(required=False, allow_null=True, default=None)
    isDismissed = serializers.BooleanField(required=False, allow_null=True, default=None)
    type = serializers.ChoiceField(choices=[c for c, _ in Notification.TYPE_CHOICES], required=False)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=500, default=50)


def _own(user: User, pk: int) -> Notification:
    n = Notification.objects.filter(pk=pk).first()
    if n is None:
        raise NotFound('Notification not found')
    if n.user_id != user.id:
        raise PermissionDenied('Access denied')
    return n


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notifications_list(request):
    q = NotificationQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    f = q.validated_data
    qs = Notification.objects.filter(user=request.user)
    if f['isRead'] is not None:
        qs = qs.filter(is_read=f['isRead'])
    if f['isDismissed'] is not None:
        qs = qs.filter(is_dismissed=f['isDismissed'])
    if f.get('type'):
        qs = qs.filter(type=f['type'])
    items = qs.order_by('-created_at', '-id')[:f['limit']]
    return Response({
        'notifications': [serialize_notification(n) for n in items],
        'unreadCount': unread_count(request.user),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notifications_unread_count(request):
    return Response({'count': unread_count(request.user)})


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def notification_read(request, pk: int):
    n = _own(request.user, pk)
    n.is_read = True
    n.save(update_fields=['is_read'])
    if n.related_task_id:
        Task.objects.filter(pk=n.related_task_id, assigned_to=request.user).update(notification_read=True)
    push(n, event='notification.updated')
    return Response(serialize_notification(n))


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def notification_dismiss(request, pk: int):
    n = _own(request.user, pk)
    n.is_dismissed = True
    n.save(update_fields=['is_dismissed'])
    push(n, event='notification.updated')
    return Response(serialize_notification(n))


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def notifications_mark_all_read(request):
    count = mark_all_read(request.user, type=request.query_params.get('type') or None)
    push_count(request.user)
    return Response({'message': 'All notifications marked as read', 'count': count})


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def notification_delete(request, pk: int):
    n = _own(request.user, pk)
    n.delete()
    push_count(request.user, event='notification.deleted', notificationId=pk)
    return Response({'message': 'Notification deleted successfully'})
