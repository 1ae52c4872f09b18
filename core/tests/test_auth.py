import pytest
from django.core.management import call_command

from core.models import AuditEvent, User
from core.throttles import LoginRateThrottle

pytestmark = pytest.mark.django_db

PASSWORD = 'Str0ng-Passw0rd!'


def test_login_returns_jwt_and_legacy_token(client_for, doctor):
    r = client_for().post('/api/auth/login', {'username': 'doctor1', 'password': PASSWORD}, format='json')
    assert r.status_code == 200
    assert r.data['jwt_access'] and r.data['jwt_refresh'] and r.data['token']
    assert r.data['role'] == 'doctor'
    assert r.data['user']['doctorId'] == 'D-001'
    assert AuditEvent.objects.filter(action='login', user=doctor).exists()


def test_both_token_kinds_authenticate(client_for, doctor):
    data = client_for().post('/api/auth/login', {'username': 'doctor1', 'password': PASSWORD}, format='json').data
    jwt_client = client_for()
    jwt_client.credentials(HTTP_AUTHORIZATION=f"Bearer {data['jwt_access']}")
    assert jwt_client.get('/api/auth/me').data['username'] == 'doctor1'
    legacy = client_for()
    legacy.credentials(HTTP_AUTHORIZATION=f"Token {data['token']}")
    assert legacy.get('/api/auth/me').data['username'] == 'doctor1'


def test_login_failure_is_401(client_for, doctor):
    r = client_for().post('/api/auth/login', {'username': 'doctor1', 'password': 'wrong'}, format='json')
    assert r.status_code == 401
    assert r.data['error']['message'] == 'Invalid credentials'


def test_role_cannot_be_escalated_at_login(client_for, doctor):
    r = client_for().post('/api/auth/login', {'username': 'doctor1', 'password': PASSWORD, 'role': 'admin'},
                          format='json')
    assert r.status_code == 200
    doctor.refresh_from_db()
    assert doctor.role == 'doctor'


def test_refresh_and_logout(client_for, doctor):
    data = client_for().post('/api/auth/login', {'username': 'doctor1', 'password': PASSWORD}, format='json').data
    refreshed = client_for().post('/api/auth/refresh', {'refresh': data['jwt_refresh']}, format='json')
    assert refreshed.status_code == 200
    assert refreshed.data['jwt_access']
    out = client_for(doctor).post('/api/auth/logout', {'refresh': data['jwt_refresh']}, format='json')
    assert out.data == {'ok': True, 'blacklisted': 1}
    again = client_for().post('/api/auth/refresh', {'refresh': data['jwt_refresh']}, format='json')
    assert again.status_code == 401


def test_register_doctor_requires_doctor_id(client_for):
    body = {'username': 'newdoc', 'email': 'new@example.com', 'password': PASSWORD, 'role': 'doctor'}
    r = client_for().post('/api/auth/register', body, format='json')
    assert r.status_code == 400
    assert 'doctorId' in r.data['error']['message']
    body['doctorId'] = 'D-100'
    r = client_for().post('/api/auth/register', body, format='json')
    assert r.status_code == 201, r.data
    assert User.objects.get(username='newdoc').doctor_id == 'D-100'
    dup = client_for().post('/api/auth/register', body, format='json')
    assert dup.status_code == 400


def test_only_admins_create_admin_accounts(client_for, admin, doctor):
    body = {'username': 'boss', 'email': 'boss@example.com', 'password': PASSWORD, 'role': 'admin'}
    assert client_for().post('/api/auth/register', body, format='json').status_code == 403
    assert client_for(doctor).post('/api/auth/register', body, format='json').status_code == 403
    assert not User.objects.filter(username='boss').exists()
    r = client_for(admin).post('/api/auth/register', body, format='json')
    assert r.status_code == 201
    assert r.data['role'] == 'admin'


def test_doctors_list_is_admin_only(client_for, admin, doctor, other_doctor):
    assert client_for(doctor).get('/api/auth/doctors').status_code == 403
    r = client_for(admin).get('/api/auth/doctors')
    assert [d['username'] for d in r.data] == ['doctor1', 'doctor2']


def test_update_profile_checks_email(client_for, doctor, other_doctor):
    client = client_for(doctor)
    assert client.put('/api/auth/update-profile', {'email': 'doc2@example.com'}, format='json').status_code == 400
    r = client.put('/api/auth/update-profile', {'firstName': 'Daniel', 'specialization': 'Chiropractic'},
                   format='json')
    assert r.status_code == 200
    doctor.refresh_from_db()
    assert doctor.first_name == 'Daniel'
    assert doctor.specialization == 'Chiropractic'


def test_change_password(client_for, doctor):
    client = client_for(doctor)
    wrong = client.put('/api/auth/change-password', {'currentPassword': 'nope', 'newPassword': 'An0ther-Pass!'},
                       format='json')
    assert wrong.status_code == 401
    short = client.put('/api/auth/change-password', {'currentPassword': PASSWORD, 'newPassword': 'short'},
                       format='json')
    assert short.status_code == 400
    ok = client.put('/api/auth/change-password', {'currentPassword': PASSWORD, 'newPassword': 'An0ther-Pass!'},
                    format='json')
    assert ok.status_code == 200
    doctor.refresh_from_db()
    assert doctor.check_password('An0ther-Pass!')


def test_notification_preferences(client_for, doctor):
    client = client_for(doctor)
    assert client.get('/api/auth/notification-preferences').data == {
        'emailNotifications': True, 'appointmentReminders': True, 'systemUpdates': False, 'marketingEmails': False,
    }
    r = client.put('/api/auth/notification-preferences', {'systemUpdates': True}, format='json')
    assert r.data['systemUpdates'] is True
    assert r.data['emailNotifications'] is True
    assert client.put('/api/auth/notification-preferences', {'sms': True}, format='json').status_code == 400


def test_login_is_throttled(client_for, doctor, monkeypatch):
    monkeypatch.setitem(LoginRateThrottle.THROTTLE_RATES, 'login', '2/min')
    client = client_for()
    codes = [client.post('/api/auth/login', {'username': 'doctor1', 'password': 'x'}, format='json').status_code
             for _ in range(3)]
    assert codes == [401, 401, 429]


def test_health(client_for):
    r = client_for().get('/api/health')
    assert r.status_code == 200
    assert r.data == {'ok': True, 'db': True}


def test_ensure_test_users_is_idempotent():
    call_command('ensure_test_users')
    call_command('ensure_test_users')
    assert User.objects.filter(username__in=['admin1', 'doctor1']).count() == 2
    assert User.objects.get(username='admin1').role == 'admin'
    assert User.objects.get(username='doctor1').check_password('123456')
