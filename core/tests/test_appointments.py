import pytest

from core.models import Appointment

pytestmark = pytest.mark.django_db


def _book(client, patient, **extra):
    body = {'patient': patient.id, 'date': '2025-03-10', 'startTime': '09:00', 'endTime': '09:30', **extra}
    return client.post('/api/appointments', body, format='json')


def test_doctor_books_own_appointment(client_for, doctor, patient):
    r = _book(client_for(doctor), patient, colorCode='#0b8043', notes='Bring x-rays')
    assert r.status_code == 201, r.data
    assert r.data['doctor']['id'] == doctor.id
    assert r.data['startTime'] == '09:00'
    assert r.data['status'] == 'scheduled'
    assert r.data['type'] == 'followup'


def test_time_and_color_validation(client_for, doctor, patient):
    client = client_for(doctor)
    assert _book(client, patient, endTime='08:00').status_code == 400
    assert _book(client, patient, colorCode='green').status_code == 400
    appt_id = _book(client, patient).data['id']
    r = client.put(f'/api/appointments/{appt_id}', {'endTime': '08:30'}, format='json')
    assert r.status_code == 400


def test_doctor_cannot_book_for_colleague(client_for, admin, doctor, other_doctor, patient):
    assert _book(client_for(doctor), patient, doctor=other_doctor.id).status_code == 403
    r = _book(client_for(admin), patient, doctor=other_doctor.id)
    assert r.status_code == 201
    assert r.data['doctor']['id'] == other_doctor.id


def test_admin_must_name_the_doctor(client_for, admin, patient):
    r = _book(client_for(admin), patient)
    assert r.status_code == 400
    assert 'doctor' in r.data['error']['message']
    assert _book(client_for(admin), patient, doctor=admin.id).status_code == 400
    assert not Appointment.objects.exists()


def test_list_defaults_to_own_and_filters(client_for, admin, doctor, other_doctor, patient):
    _book(client_for(doctor), patient)
    _book(client_for(doctor), patient, date='2025-04-01')
    _book(client_for(admin), patient, doctor=other_doctor.id)
    assert len(client_for(doctor).get('/api/appointments').data) == 2
    assert len(client_for(admin).get('/api/appointments').data) == 3
    assert len(client_for(admin).get(f'/api/appointments?doctor={other_doctor.id}').data) == 1
    ranged = client_for(doctor).get('/api/appointments?startDate=2025-03-15&endDate=2025-04-30').data
    assert [a['date'] for a in ranged] == ['2025-04-01']


def test_cancel_and_complete(client_for, doctor, other_doctor, patient):
    client = client_for(doctor)
    appt_id = _book(client, patient).data['id']
    r = client.patch(f'/api/appointments/{appt_id}/cancel', {'notes': 'Patient sick'}, format='json')
    assert r.status_code == 200
    assert r.data['appointment']['status'] == 'cancelled'
    assert r.data['appointment']['notes'] == 'Patient sick'
    assert client.patch(f'/api/appointments/{appt_id}/complete').data['appointment']['status'] == 'completed'
    assert client_for(other_doctor).patch(f'/api/appointments/{appt_id}/cancel').status_code == 403


def test_update_and_delete(client_for, doctor, patient):
    client = client_for(doctor)
    appt_id = _book(client, patient).data['id']
    r = client.put(f'/api/appointments/{appt_id}', {'status': 'confirmed', 'startTime': '08:00'}, format='json')
    assert r.status_code == 200
    assert r.data['status'] == 'confirmed'
    assert r.data['startTime'] == '08:00'
    assert client.delete(f'/api/appointments/{appt_id}').status_code == 200
    assert not Appointment.objects.filter(pk=appt_id).exists()
