import pytest

from core.models import FormResponse, FormTemplate
from core.services.forms import normalize_items

pytestmark = pytest.mark.django_db


@pytest.fixture
def template(doctor):
    return FormTemplate.objects.create(title='Pain survey', created_by=doctor, items=normalize_items([
        {'id': 'reason', 'type': 'text', 'questionText': 'Reason for visit', 'isRequired': True},
        {'id': 'level', 'type': 'dropdown', 'questionText': 'Pain level', 'options': ['Low', 'High']},
    ]))


def _submit(client, template, patient, **extra):
    body = {'formTemplate': template.id, 'patient': patient.id, **extra}
    return client.post('/api/form-responses', body, format='json')


def test_submission_persists_answers(client_for, doctor, template, patient):
    r = _submit(client_for(doctor), template, patient, status='completed', responses=[
        {'questionId': 'reason', 'answer': 'Neck pain'},
        {'questionId': 'level', 'answer': 'High'},
    ])
    assert r.status_code == 201, r.data
    assert r.data['completedAt'] is not None
    stored = FormResponse.objects.get(pk=r.data['id'])
    assert stored.status == 'completed'
    assert [a['answer'] for a in stored.responses] == ['Neck pain', 'High']
    assert stored.responses[0]['questionText'] == 'Reason for visit'


def test_incomplete_may_skip_required(client_for, doctor, template, patient):
    r = _submit(client_for(doctor), template, patient, responses=[{'questionId': 'level', 'answer': 'Low'}])
    assert r.status_code == 201
    assert r.data['status'] == 'incomplete'
    assert r.data['completedAt'] is None


def test_completed_enforces_required(client_for, doctor, template, patient):
    r = _submit(client_for(doctor), template, patient, status='completed', responses=[])
    assert r.status_code == 400
    assert 'reason' in r.data['error']['message']['responses']


def test_submission_checks_references(client_for, doctor, other_doctor, template, patient):
    client = client_for(doctor)
    missing = client.post('/api/form-responses', {'formTemplate': 999}, format='json')
    assert missing.status_code == 400
    template.is_active = False
    template.save()
    assert _submit(client, template, patient).status_code == 400
    template.is_active = True
    template.save()
    assert _submit(client_for(other_doctor), template, patient).status_code == 403
    assert client.post('/api/form-responses', {'formTemplate': template.id, 'patient': 999},
                       format='json').status_code == 404


def test_update_to_completed_then_reviewed(client_for, admin, doctor, template, patient):
    rid = _submit(client_for(doctor), template, patient).data['id']
    client = client_for(doctor)
    failed = client.put(f'/api/form-responses/{rid}', {'status': 'completed'}, format='json')
    assert failed.status_code == 400
    done = client.put(f'/api/form-responses/{rid}', {
        'status': 'completed', 'responses': [{'questionId': 'reason', 'answer': 'Follow-up'}],
    }, format='json')
    assert done.status_code == 200, done.data
    completed_at = done.data['completedAt']
    reviewed = client_for(admin).put(f'/api/form-responses/{rid}', {'status': 'reviewed'}, format='json')
    assert reviewed.status_code == 200
    assert reviewed.data['reviewedBy']['id'] == admin.id
    assert reviewed.data['reviewedAt'] is not None
    assert reviewed.data['completedAt'] == completed_at


def test_list_is_scoped_and_filtered(client_for, admin, doctor, other_doctor, template, patient):
    _submit(client_for(doctor), template, patient)
    _submit(client_for(doctor), template, patient, status='completed',
            responses=[{'questionId': 'reason', 'answer': 'x'}])
    assert len(client_for(doctor).get('/api/form-responses').data) == 2
    assert len(client_for(doctor).get('/api/form-responses?status=completed').data) == 1
    assert len(client_for(admin).get(f'/api/form-responses?patient={patient.id}').data) == 2
    assert client_for(other_doctor).get('/api/form-responses').data == []


def test_only_admin_deletes(client_for, admin, doctor, template, patient):
    rid = _submit(client_for(doctor), template, patient).data['id']
    assert client_for(doctor).delete(f'/api/form-responses/{rid}').status_code == 403
    assert client_for(admin).delete(f'/api/form-responses/{rid}').status_code == 200
    assert not FormResponse.objects.filter(pk=rid).exists()
