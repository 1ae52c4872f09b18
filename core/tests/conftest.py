import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from core.models import Patient, User

PASSWORD = 'Str0ng-Passw0rd!'


@pytest.fixture(autouse=True)
def _reset_throttles():
    # throttle history lives in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def _app_settings(settings):
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    settings.CLIENT_BASE_URL = 'https://emr.example.com'
    settings.FORM_TOKEN_TTL_DAYS = 7


@pytest.fixture
def admin(db):
    return User.objects.create_user(username='admin1', password=PASSWORD, role=User.ROLE_ADMIN,
                                    email='admin@example.com', first_name='Alice', last_name='Admin')


@pytest.fixture
def doctor(db):
    return User.objects.create_user(username='doctor1', password=PASSWORD, role=User.ROLE_DOCTOR,
                                    email='doc@example.com', first_name='Dan', last_name='Doctor',
                                    doctor_id='D-001')


@pytest.fixture
def other_doctor(db):
    return User.objects.create_user(username='doctor2', password=PASSWORD, role=User.ROLE_DOCTOR,
                                    email='doc2@example.com', first_name='Olga', last_name='Other',
                                    doctor_id='D-002')


@pytest.fixture
def client_for():
    def make(user=None):
        client = APIClient()
        if user is not None:
            client.force_authenticate(user=user)
        return client
    return make


@pytest.fixture
def patient(doctor):
    return Patient.objects.create(first_name='Ana', last_name='Lopez', email='ana@example.com',
                                  phone='555-123-4567', assigned_doctor=doctor)


@pytest.fixture
def intake_document():
    return {
        'preferredLanguage': 'english',
        'firstName': 'Ana',
        'lastName': 'Lopez',
        'dateOfBirth': '1990-04-02',
        'gender': 'female',
        'email': 'ana@example.com',
        'phone': '555-123-4567',
        'address': {'street': '1 Main St', 'city': 'Miami', 'state': 'FL', 'zipCode': '33101', 'country': 'USA'},
        'medicalHistory': {'allergies': ['Penicillin']},
    }
