import pytest

from core.models import FormTemplate

pytestmark = pytest.mark.django_db

ITEMS = [
    {'id': 'reason', 'type': 'text', 'questionText': 'Reason for visit', 'isRequired': True},
    {'id': 'smoker', 'type': 'radio', 'questionText': 'Do you smoke?', 'options': ['Yes', 'No']},
]


def _template(user, **extra):
    defaults = {'title': 'Intake', 'created_by': user, 'items': ITEMS}
    defaults.update(extra)
    return FormTemplate.objects.create(**defaults)


def test_create_normalizes_items(client_for, doctor):
    r = client_for(doctor).post('/api/form-templates', {'title': 'New patient', 'items': ITEMS}, format='json')
    assert r.status_code == 201, r.data
    assert r.data['createdBy']['id'] == doctor.id
    assert r.data['isPublic'] is False
    assert [i['id'] for i in r.data['items']] == ['reason', 'smoker']
    assert r.data['items'][0]['isRequired'] is True


def test_create_rejects_bad_items(client_for, doctor):
    r = client_for(doctor).post('/api/form-templates', {'title': 'Bad', 'items': [{'type': 'dropdown',
                                                                                   'questionText': 'Pick'}]},
                                format='json')
    assert r.status_code == 400
    assert '0' in r.data['error']['message']['items']


def test_doctors_see_own_and_public(client_for, admin, doctor, other_doctor):
    _template(doctor, title='Mine')
    _template(other_doctor, title='Shared', is_public=True)
    _template(other_doctor, title='Private')
    titles = {t['title'] for t in client_for(doctor).get('/api/form-templates').data}
    assert titles == {'Mine', 'Shared'}
    assert len(client_for(admin).get('/api/form-templates').data) == 3
    assert len(client_for(admin).get('/api/form-templates?isPublic=true').data) == 1
    assert len(client_for(admin).get(f'/api/form-templates?createdBy={other_doctor.id}').data) == 2
    assert len(client_for(admin).get('/api/form-templates?search=shar').data) == 1


def test_detail_access(client_for, doctor, other_doctor):
    private = _template(other_doctor)
    public = _template(other_doctor, is_public=True)
    client = client_for(doctor)
    assert client.get(f'/api/form-templates/{private.id}').status_code == 403
    assert client.get(f'/api/form-templates/{public.id}').status_code == 200
    assert client.put(f'/api/form-templates/{public.id}', {'title': 'Mine now'}, format='json').status_code == 403
    assert client.delete(f'/api/form-templates/{public.id}').status_code == 403
    assert client.get('/api/form-templates/9999').status_code == 404


def test_owner_updates_and_deletes(client_for, doctor):
    t = _template(doctor)
    client = client_for(doctor)
    r = client.put(f'/api/form-templates/{t.id}', {'title': 'Renamed', 'isActive': False}, format='json')
    assert r.status_code == 200
    t.refresh_from_db()
    assert t.title == 'Renamed'
    assert t.is_active is False
    assert t.items == ITEMS
    assert client.delete(f'/api/form-templates/{t.id}').status_code == 200
    assert not FormTemplate.objects.filter(pk=t.id).exists()


def test_duplicate_is_private_copy(client_for, doctor, other_doctor):
    source = _template(other_doctor, title='Shared', is_public=True)
    r = client_for(doctor).post(f'/api/form-templates/{source.id}/duplicate')
    assert r.status_code == 201
    assert r.data['title'] == 'Shared (Copy)'
    assert r.data['isPublic'] is False
    assert r.data['createdBy']['id'] == doctor.id
    assert len(r.data['items']) == 2
    assert {i['id'] for i in r.data['items']}.isdisjoint({'reason', 'smoker'})
