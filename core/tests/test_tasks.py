import pytest

from core.models import AuditEvent, Notification, Task

pytestmark = pytest.mark.django_db


def _create(client, assignee, patient, **extra):
    body = {'title': 'Review MRI', 'assignedTo': assignee.id, 'patient': patient.id, **extra}
    return client.post('/api/tasks', body, format='json')


def test_create_task_notifies_assignee(client_for, doctor, other_doctor, patient):
    r = _create(client_for(doctor), other_doctor, patient, priority='high')
    assert r.status_code == 201, r.data
    assert r.data['assignedBy']['id'] == doctor.id
    assert r.data['assignedTo'] == {'id': other_doctor.id, 'name': 'Olga Other', 'email': 'doc2@example.com'}
    assert r.data['notificationSent'] is True
    n = Notification.objects.get(user=other_doctor)
    assert n.title == 'New Task Assigned'
    assert n.type == 'task'
    assert n.priority == 'high'
    assert n.related_task_id == r.data['id']


def test_create_validates_references(client_for, doctor, other_doctor, patient):
    client = client_for(doctor)
    missing_user = client.post('/api/tasks', {'title': 't', 'assignedTo': 9999, 'patient': patient.id}, format='json')
    assert missing_user.status_code == 400
    no_title = client.post('/api/tasks', {'title': '  ', 'assignedTo': other_doctor.id, 'patient': patient.id},
                           format='json')
    assert no_title.status_code == 400
    foreign = client_for(other_doctor).post('/api/tasks', {'title': 't', 'assignedTo': doctor.id,
                                                           'patient': patient.id}, format='json')
    assert foreign.status_code == 403


def test_visibility(client_for, admin, doctor, other_doctor, patient):
    _create(client_for(doctor), doctor, patient)
    assert len(client_for(admin).get('/api/tasks').data) == 1
    assert len(client_for(doctor).get('/api/tasks').data) == 1
    assert client_for(other_doctor).get('/api/tasks').data == []


def test_list_filters(client_for, doctor, patient):
    client = client_for(doctor)
    _create(client, doctor, patient, priority='low', title='Call insurer')
    _create(client, doctor, patient, priority='high', status='in-progress')
    assert len(client.get('/api/tasks?priority=high').data) == 1
    assert len(client.get('/api/tasks?status=in-progress').data) == 1
    assert [t['title'] for t in client.get('/api/tasks?search=insurer').data] == ['Call insurer']
    assert client.get('/api/tasks?status=bogus').status_code == 400


def test_my_tasks_orders_by_priority(client_for, doctor, patient):
    client = client_for(doctor)
    for prio in ('low', 'high', 'medium'):
        _create(client, doctor, patient, priority=prio, title=prio)
    assert [t['title'] for t in client.get('/api/tasks/my-tasks').data] == ['high', 'medium', 'low']


def test_reassignment_notifies_new_assignee(client_for, admin, doctor, other_doctor, patient):
    task_id = _create(client_for(admin), doctor, patient).data['id']
    r = client_for(admin).put(f'/api/tasks/{task_id}', {'assignedTo': other_doctor.id}, format='json')
    assert r.status_code == 200
    assert Notification.objects.filter(user=other_doctor, title='Task Assigned to You').count() == 1


def test_completion_notifies_assigner_once(client_for, admin, doctor, patient):
    task_id = _create(client_for(admin), doctor, patient).data['id']
    client = client_for(doctor)
    r = client.put(f'/api/tasks/{task_id}', {'status': 'completed'}, format='json')
    assert r.status_code == 200
    assert r.data['completedAt'] is not None
    first_completed = r.data['completedAt']
    client.put(f'/api/tasks/{task_id}', {'status': 'completed', 'title': 'Renamed'}, format='json')
    assert Notification.objects.filter(user=admin, title='Task Completed').count() == 1
    assert Task.objects.get(pk=task_id).completed_at.isoformat() == first_completed


def test_completing_own_task_sends_no_completion_notice(client_for, doctor, patient):
    task_id = _create(client_for(doctor), doctor, patient).data['id']
    client_for(doctor).put(f'/api/tasks/{task_id}', {'status': 'completed'}, format='json')
    assert not Notification.objects.filter(title='Task Completed').exists()


def test_only_assigner_or_admin_deletes(client_for, admin, doctor, other_doctor, patient):
    task_id = _create(client_for(admin), doctor, patient).data['id']
    assert client_for(doctor).delete(f'/api/tasks/{task_id}').status_code == 403
    assert client_for(other_doctor).get(f'/api/tasks/{task_id}').status_code == 403
    assert client_for(admin).delete(f'/api/tasks/{task_id}').status_code == 200
    assert not Task.objects.filter(pk=task_id).exists()
    assert client_for(admin).get(f'/api/tasks/{task_id}').status_code == 404


def test_create_and_delete_are_audited(client_for, doctor, patient):
    task_id = _create(client_for(doctor), doctor, patient).data['id']
    client_for(doctor).delete(f'/api/tasks/{task_id}')
    actions = list(AuditEvent.objects.filter(object_type='task', object_id=task_id)
                   .order_by('id').values_list('action', flat=True))
    assert actions == ['task_create', 'task_delete']
