import datetime

import pytest
import requests
from django.utils import timezone

from core.models import Appointment, CalendarConnection
from core.services import calendar

pytestmark = pytest.mark.django_db


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.content = b'' if payload is None else b'{}'
        self.text = '' if payload is None else str(payload)

    def json(self):
        return self._payload


@pytest.fixture
def google(monkeypatch):
    calls = []
    replies = []

    def fake_request(method, url, json=None, data=None, headers=None, timeout=None):
        calls.append({'method': method, 'url': url, 'json': json, 'data': data, 'headers': headers})
        reply = replies.pop(0) if replies else FakeResponse(200, {'id': f'evt{len(calls)}'})
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(requests, 'request', fake_request)
    return calls, replies


@pytest.fixture
def appointment(doctor, patient):
    return Appointment.objects.create(patient=patient, doctor=doctor, date=datetime.date(2025, 3, 10),
                                      start_time=datetime.time(9), end_time=datetime.time(9, 30),
                                      color_code='#0B8043', notes='')


@pytest.fixture
def connected(doctor):
    return CalendarConnection.objects.create(user=doctor, access_token='ya29.token', refresh_token='r1')


def test_color_mapping():
    assert calendar.color_id_for('#0b8043') == '2'
    assert calendar.color_id_for('#DC2127') == '4'
    assert calendar.color_id_for('#123456') == '1'
    assert calendar.color_id_for(None) == '1'


def test_build_event(appointment, settings):
    settings.GOOGLE_CALENDAR_TIMEZONE = 'America/Chicago'
    event = calendar.build_event(appointment)
    assert event['summary'] == 'Appointment: Ana Lopez'
    assert event['description'] == 'No additional notes'
    assert event['start'] == {'dateTime': '2025-03-10T09:00:00', 'timeZone': 'America/Chicago'}
    assert event['end']['dateTime'] == '2025-03-10T09:30:00'
    assert event['colorId'] == '2'
    assert event['extendedProperties']['private']['appointmentId'] == str(appointment.id)


def test_connect_status_disconnect(client_for, doctor):
    client = client_for(doctor)
    assert client.get('/api/google-calendar/status').data == {'connected': False}
    r = client.post('/api/google-calendar/connect', {'accessToken': 'abc', 'refreshToken': 'def'}, format='json')
    assert r.status_code == 200
    status = client.get('/api/google-calendar/status').data
    assert status['connected'] is True
    assert status['hasRefreshToken'] is True
    assert 'abc' not in str(status)
    assert client.delete('/api/google-calendar/disconnect').status_code == 200
    assert not CalendarConnection.objects.filter(user=doctor).exists()


def test_sync_requires_connection(client_for, doctor, appointment, google):
    r = client_for(doctor).post(f'/api/google-calendar/sync/{appointment.id}')
    assert r.status_code == 400
    assert r.data['error']['message'] == 'Google Calendar not connected'
    assert google[0] == []


def _expire(conn):
    conn.expiry_date = int((timezone.now() - datetime.timedelta(minutes=5)).timestamp() * 1000)
    conn.save()


def test_expired_token_is_refreshed_before_sync(client_for, doctor, appointment, connected, google, settings):
    settings.GOOGLE_TOKEN_URL = 'https://oauth.example.com/token'
    calls, replies = google
    _expire(connected)
    replies.append(FakeResponse(200, {'access_token': 'ya29.fresh', 'expires_in': 3599}))
    r = client_for(doctor).post(f'/api/google-calendar/sync/{appointment.id}')
    assert r.status_code == 200, r.data
    assert calls[0]['url'] == 'https://oauth.example.com/token'
    assert calls[0]['data']['grant_type'] == 'refresh_token'
    assert calls[0]['data']['refresh_token'] == 'r1'
    assert calls[1]['headers']['Authorization'] == 'Bearer ya29.fresh'
    connected.refresh_from_db()
    assert connected.access_token == 'ya29.fresh'
    assert connected.refresh_token == 'r1'
    assert not connected.is_expired()


def test_failed_refresh_is_a_calendar_error(client_for, doctor, appointment, connected, google):
    calls, replies = google
    _expire(connected)
    replies.append(FakeResponse(400, {'error': 'invalid_grant'}))
    r = client_for(doctor).post(f'/api/google-calendar/sync/{appointment.id}')
    assert r.status_code == 502
    assert r.data['error']['code'] == 'calendar_error'
    assert len(calls) == 1


def test_expired_token_without_refresh_token(client_for, doctor, appointment, connected, google):
    connected.refresh_token = ''
    _expire(connected)
    r = client_for(doctor).post(f'/api/google-calendar/sync/{appointment.id}')
    assert r.status_code == 502
    assert google[0] == []


def test_sync_update_delete(client_for, doctor, appointment, connected, google):
    calls, replies = google
    client = client_for(doctor)
    url = f'/api/google-calendar/sync/{appointment.id}'

    assert client.put(url).status_code == 400

    r = client.post(url)
    assert r.status_code == 200, r.data
    assert r.data['eventId'] == 'evt1'
    assert calls[0]['method'] == 'POST'
    assert calls[0]['url'] == 'https://www.googleapis.com/calendar/v3/calendars/primary/events'
    assert calls[0]['headers']['Authorization'] == 'Bearer ya29.token'
    appointment.refresh_from_db()
    assert appointment.google_calendar_event_id == 'evt1'

    assert client.put(url).status_code == 200
    assert calls[1]['method'] == 'PUT'
    assert calls[1]['url'].endswith('/events/evt1')

    replies.append(FakeResponse(204))
    assert client.delete(url).status_code == 200
    assert calls[2]['method'] == 'DELETE'
    appointment.refresh_from_db()
    assert appointment.google_calendar_event_id == ''


def test_api_error_surfaces_as_502(client_for, doctor, appointment, connected, google):
    google[1].append(FakeResponse(403, {'error': {'message': 'Insufficient Permission'}}))
    r = client_for(doctor).post(f'/api/google-calendar/sync/{appointment.id}')
    assert r.status_code == 502
    assert 'Insufficient Permission' in r.data['error']['message']


def test_sync_all_skips_and_reports(client_for, doctor, patient, appointment, connected, google):
    calls, replies = google
    make = dict(patient=patient, doctor=doctor, date=datetime.date(2025, 3, 11),
                start_time=datetime.time(10), end_time=datetime.time(11))
    Appointment.objects.create(status='cancelled', **make)
    Appointment.objects.create(google_calendar_event_id='already', **make)
    failing = Appointment.objects.create(**make)
    replies.extend([FakeResponse(200, {'id': 'ok-1'}), requests.ConnectionError('offline')])

    r = client_for(doctor).post('/api/google-calendar/sync-all')
    assert r.status_code == 200, r.data
    assert r.data['synced'] == 1
    assert r.data['failed'] == 1
    by_id = {item['appointmentId']: item for item in r.data['results']}
    assert by_id[appointment.id] == {'appointmentId': appointment.id, 'success': True, 'eventId': 'ok-1'}
    assert by_id[failing.id]['success'] is False
    assert len(calls) == 2
