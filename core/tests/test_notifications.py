import pytest

from core.models import Notification, Task
from core.services.notifications import group_name, notify, unread_count

pytestmark = pytest.mark.django_db


def _notify(user, **extra):
    return notify(user, title=extra.pop('title', 'Hello'), message='Body', **extra)


def test_list_and_unread_count(client_for, doctor):
    _notify(doctor)
    _notify(doctor, type='system')
    read = _notify(doctor)
    read.is_read = True
    read.save()
    client = client_for(doctor)
    r = client.get('/api/notifications')
    assert r.status_code == 200
    assert len(r.data['notifications']) == 3
    assert r.data['unreadCount'] == 2
    assert client.get('/api/notifications/unread-count').data == {'count': 2}
    assert len(client.get('/api/notifications?isRead=false').data['notifications']) == 2
    assert len(client.get('/api/notifications?type=system').data['notifications']) == 1


def test_dismissed_are_not_unread(doctor):
    n = _notify(doctor)
    n.is_dismissed = True
    n.save()
    assert unread_count(doctor) == 0


def test_mark_read_updates_task_flag(client_for, admin, doctor, patient):
    task = Task.objects.create(title='t', assigned_to=doctor, assigned_by=admin, patient=patient)
    n = _notify(doctor, type='task', related_task=task)
    r = client_for(doctor).put(f'/api/notifications/{n.id}/read')
    assert r.status_code == 200
    assert r.data['isRead'] is True
    task.refresh_from_db()
    assert task.notification_read is True


def test_dismiss_and_delete(client_for, doctor):
    client = client_for(doctor)
    n = _notify(doctor)
    assert client.put(f'/api/notifications/{n.id}/dismiss').data['isDismissed'] is True
    assert client.delete(f'/api/notifications/{n.id}').status_code == 200
    assert not Notification.objects.filter(pk=n.id).exists()
    assert client.delete(f'/api/notifications/{n.id}').status_code == 404


def test_other_users_notifications_are_forbidden(client_for, doctor, other_doctor):
    n = _notify(doctor)
    assert client_for(other_doctor).put(f'/api/notifications/{n.id}/read').status_code == 403
    assert client_for(other_doctor).get('/api/notifications').data['notifications'] == []


def test_mark_all_read(client_for, doctor, other_doctor):
    _notify(doctor)
    _notify(doctor, type='system')
    _notify(other_doctor)
    r = client_for(doctor).put('/api/notifications/mark-all-read')
    assert r.data['count'] == 2
    assert unread_count(doctor) == 0
    assert unread_count(other_doctor) == 1


def test_notify_pushes_to_user_group(doctor, monkeypatch):
    sent = []

    class Layer:
        async def group_send(self, group, payload):
            sent.append((group, payload))

    monkeypatch.setattr('core.services.notifications.get_channel_layer', lambda: Layer())
    n = _notify(doctor, title='Ping')
    assert sent[0][0] == group_name(doctor.id) == f'notifications.{doctor.id}'
    assert sent[0][1]['type'] == 'notification.created'
    assert sent[0][1]['notification']['id'] == n.id
    assert sent[0][1]['unreadCount'] == 1
