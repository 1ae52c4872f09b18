import pytest

from core.models import AuditEvent, Patient, Visit

pytestmark = pytest.mark.django_db


def _initial(client, patient, **extra):
    body = {'chiefComplaint': 'Low back pain', 'date': '2025-03-10T09:00:00',
            'vitals': {'bp': '120/80', 'pulse': '72'}, 'painLocation': ['lumbar'], **extra}
    return client.post(f'/api/patients/{patient.id}/visits/initial', body, format='json')


def test_initial_visit_records_findings(client_for, doctor, patient):
    r = _initial(client_for(doctor), patient, gaitDevice='<b>cane</b>', unknownKey='dropped')
    assert r.status_code == 201, r.data
    assert r.data['visitType'] == 'initial'
    assert r.data['chiefComplaint'] == 'Low back pain'
    assert r.data['vitals'] == {'bp': '120/80', 'pulse': '72'}
    assert r.data['gaitDevice'] == 'cane'
    assert 'unknownKey' not in r.data
    assert r.data['doctor']['id'] == doctor.id
    visit = Visit.objects.get(pk=r.data['id'])
    assert visit.details['painLocation'] == ['lumbar']
    assert AuditEvent.objects.filter(action='visit_initial', object_id=visit.id).exists()


def test_initial_visit_needs_a_chief_complaint(client_for, doctor, patient):
    r = client_for(doctor).post(f'/api/patients/{patient.id}/visits/initial', {'notes': 'x'}, format='json')
    assert r.status_code == 400
    assert r.data['error']['message']['fields'] == {'chiefComplaint': 'required'}
    assert not Visit.objects.exists()


def test_finding_shapes_are_checked(client_for, doctor, patient):
    r = _initial(client_for(doctor), patient, vitals='120/80', oriented='yes')
    assert r.status_code == 400
    assert r.data['error']['message']['fields'] == {'vitals': 'must be an object', 'oriented': 'must be true or false'}


def test_unknown_visit_type(client_for, doctor, patient):
    r = client_for(doctor).post(f'/api/patients/{patient.id}/visits/annual', {}, format='json')
    assert r.status_code == 400


def test_followup_links_to_an_earlier_visit_of_the_same_patient(client_for, doctor, patient):
    client = client_for(doctor)
    first = _initial(client, patient).data['id']
    r = client.post(f'/api/patients/{patient.id}/visits/followup',
                    {'previousVisit': first, 'areasImproving': True, 'romPercent': 40}, format='json')
    assert r.status_code == 201, r.data
    assert r.data['previousVisit'] == first
    assert r.data['areasImproving'] is True
    assert 'romPercent' not in r.data

    other = Patient.objects.create(first_name='Bo', last_name='Diaz', assigned_doctor=doctor)
    r = client.post(f'/api/patients/{other.id}/visits/followup', {'previousVisit': first}, format='json')
    assert r.status_code == 404


def test_discharge_moves_patient_to_discharged(client_for, doctor, patient):
    r = client_for(doctor).post(f'/api/patients/{patient.id}/visits/discharge',
                                {'prognosis': 'Good', 'romPercent': 85, 'homeCare': ['stretching']}, format='json')
    assert r.status_code == 201, r.data
    assert r.data['romPercent'] == 85
    patient.refresh_from_db()
    assert patient.status == Patient.STATUS_DISCHARGED


def test_visit_history_is_newest_first(client_for, doctor, patient):
    client = client_for(doctor)
    _initial(client, patient, date='2025-01-05')
    _initial(client, patient, date='2025-02-05')
    r = client.get(f'/api/patients/{patient.id}/visits')
    assert r.status_code == 200
    assert [v['date'][:10] for v in r.data] == ['2025-02-05', '2025-01-05']


def test_invalid_visit_date(client_for, doctor, patient):
    r = _initial(client_for(doctor), patient, date='2025-03-10junk')
    assert r.status_code == 400


def test_other_doctors_cannot_see_visits(client_for, doctor, other_doctor, admin, patient):
    visit_id = _initial(client_for(doctor), patient).data['id']
    assert client_for(other_doctor).get(f'/api/visits/{visit_id}').status_code == 403
    assert client_for(other_doctor).get(f'/api/patients/{patient.id}/visits').status_code == 403
    assert client_for(other_doctor).post(f'/api/patients/{patient.id}/visits/initial',
                                         {'chiefComplaint': 'x'}, format='json').status_code == 403
    assert client_for(admin).get(f'/api/visits/{visit_id}').status_code == 200
    assert client_for(doctor).get('/api/visits/999999').status_code == 404
