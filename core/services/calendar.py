"""
Google Calendar synchronisation for appointments.

Events are written to the user's calendar through the Calendar v3 REST
API using the access token stored in :class:`CalendarConnection`.  The
OAuth consent flow happens outside this service; callers hand us tokens
through the ``connect`` endpoint and expired access tokens are renewed
with the stored refresh token.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from core.exceptions import CalendarError
from core.models import Appointment, CalendarConnection, User

logger = logging.getLogger(__name__)

DEFAULT_COLOR_ID = '1'

_COLOR_GROUPS = [
    ('1', ['#4285f4', '#5484ed', '#0000ff', '#1a73e8']),   # blue
    ('2', ['#0b8043', '#51b749', '#00ff00', '#7ae7bf']),   # green
    ('4', ['#8e24aa', '#a32929', '#dc2127', '#ff0000']),   # red
    ('6', ['#f4511e', '#ff7537', '#ffad46', '#ffa500']),   # orange
    ('5', ['#ffff00', '#fbd75b', '#ffbc00']),              # yellow
    ('7', ['#46bdc6', '#33b679']),                         # turquoise
    ('8', ['#e1e1e1', '#9e9e9e', '#616161']),              # gray
    ('9', ['#3f51b5', '#5c6bc0']),                         # bold blue
    ('10', ['#0f9d58']),                                   # bold green
    ('11', ['#d50000', '#db4437']),                        # bold red
]
COLOR_IDS: Dict[str, str] = {}
for _color_id, _hexes in _COLOR_GROUPS:
    for _hex in _hexes:
        COLOR_IDS.setdefault(_hex, _color_id)

SKIPPED_STATUSES = ('cancelled', 'no-show')


def color_id_for(hex_color: Optional[str]) -> str:
    return COLOR_IDS.get((hex_color or '').strip().lower(), DEFAULT_COLOR_ID)


def serialize_connection(conn: Optional[CalendarConnection]) -> Dict[str, Any]:
    if conn is None:
        return {'connected': False}
    return {
        'connected': True,
        'expired': conn.is_expired(),
        'expiryDate': conn.expiry_date,
        'hasRefreshToken': bool(conn.refresh_token),
        'connectedAt': conn.connected_at.isoformat() if conn.connected_at else None,
    }


def connect(user: User, *, access_token: str, refresh_token: str = '', expiry_date: Optional[int] = None) -> CalendarConnection:
    conn, _ = CalendarConnection.objects.update_or_create(
        user=user,
        defaults={'access_token': access_token, 'refresh_token': refresh_token or '', 'expiry_date': expiry_date},
    )
    logger.info("calendar connected for user %s", user.id)
    return conn


def disconnect(user: User) -> bool:
    deleted, _ = CalendarConnection.objects.filter(user=user).delete()
    return bool(deleted)


def get_connection(user: User) -> CalendarConnection:
    conn = CalendarConnection.objects.filter(user=user).first()
    if conn is None:
        raise ValidationError('Google Calendar not connected')
    if conn.is_expired():
        conn = refresh_access_token(conn)
    return conn


def refresh_access_token(conn: CalendarConnection) -> CalendarConnection:
    """Exchange the stored refresh token for a new access token."""
    if not conn.refresh_token:
        raise CalendarError('Google Calendar access token expired, reconnect the calendar')
    try:
        resp = requests.request(
            'POST',
            settings.GOOGLE_TOKEN_URL,
            data={
                'client_id': settings.GOOGLE_CLIENT_ID,
                'client_secret': settings.GOOGLE_CLIENT_SECRET,
                'refresh_token': conn.refresh_token,
                'grant_type': 'refresh_token',
            },
            timeout=settings.GOOGLE_CALENDAR_TIMEOUT,
        )
    except requests.RequestException as exc:
        raise CalendarError(f"Token refresh failed: {exc}") from exc
    try:
        body = resp.json() if resp.content else {}
    except ValueError:
        body = {}
    if resp.status_code >= 400 or not body.get('access_token'):
        logger.warning("token refresh for user %s rejected (%s)", conn.user_id, resp.status_code)
        raise CalendarError('Google Calendar access token expired and could not be refreshed, reconnect the calendar',
                            status_code=resp.status_code)
    conn.access_token = body['access_token']
    conn.expiry_date = int(timezone.now().timestamp() * 1000) + int(body.get('expires_in') or 3600) * 1000
    if body.get('refresh_token'):
        conn.refresh_token = body['refresh_token']
    conn.save(update_fields=['access_token', 'refresh_token', 'expiry_date'])
    logger.info("calendar access token refreshed for user %s", conn.user_id)
    return conn


def build_event(appointment: Appointment) -> Dict[str, Any]:
    tz = settings.GOOGLE_CALENDAR_TIMEZONE
    start = datetime.combine(appointment.date, appointment.start_time)
    end = datetime.combine(appointment.date, appointment.end_time)
    return {
        'summary': f"Appointment: {appointment.patient.full_name()}",
        'description': appointment.notes or 'No additional notes',
        'start': {'dateTime': start.isoformat(), 'timeZone': tz},
        'end': {'dateTime': end.isoformat(), 'timeZone': tz},
        'colorId': color_id_for(appointment.color_code),
        'extendedProperties': {'private': {'appointmentId': str(appointment.id)}},
    }


def _events_url(event_id: str = '') -> str:
    base = f"{settings.GOOGLE_CALENDAR_API_URL.rstrip('/')}/calendars/{settings.GOOGLE_CALENDAR_ID}/events"
    return f"{base}/{event_id}" if event_id else base


def _call(conn: CalendarConnection, method: str, url: str, payload: Optional[dict] = None) -> Dict[str, Any]:
    try:
        resp = requests.request(
            method,
            url,
            json=payload,
            headers={'Authorization': f"Bearer {conn.access_token}"},
            timeout=settings.GOOGLE_CALENDAR_TIMEOUT,
        )
    except requests.RequestException as exc:
        raise CalendarError(f"Calendar request failed: {exc}") from exc
    if resp.status_code >= 400:
        try:
            message = resp.json().get('error', {}).get('message') or resp.text
        except ValueError:
            message = resp.text
        raise CalendarError(f"Calendar API error {resp.status_code}: {message}", status_code=resp.status_code)
    if resp.status_code == 204 or not resp.content:
        return {}
    return resp.json()


def sync_appointment(user: User, appointment: Appointment) -> Dict[str, Any]:
    conn = get_connection(user)
    event = _call(conn, 'POST', _events_url(), build_event(appointment))
    appointment.google_calendar_event_id = event.get('id', '')
    appointment.save(update_fields=['google_calendar_event_id', 'updated_at'])
    logger.info("appointment %s synced as event %s", appointment.id, appointment.google_calendar_event_id)
    return event


def update_appointment_event(user: User, appointment: Appointment) -> Dict[str, Any]:
    if not appointment.google_calendar_event_id:
        raise ValidationError('Appointment is not synced with Google Calendar')
    conn = get_connection(user)
    return _call(conn, 'PUT', _events_url(appointment.google_calendar_event_id), build_event(appointment))


def delete_appointment_event(user: User, appointment: Appointment) -> None:
    if not appointment.google_calendar_event_id:
        raise ValidationError('Appointment is not synced with Google Calendar')
    conn = get_connection(user)
    _call(conn, 'DELETE', _events_url(appointment.google_calendar_event_id))
    with transaction.atomic():
        appointment.google_calendar_event_id = ''
        appointment.save(update_fields=['google_calendar_event_id', 'updated_at'])


def sync_all(user: User, appointments) -> List[Dict[str, Any]]:
    """Sync every unsynced, still active appointment; failures are reported per item."""
    get_connection(user)
    results = []
    for appt in appointments:
        if appt.status in SKIPPED_STATUSES or appt.google_calendar_event_id:
            continue
        try:
            event = sync_appointment(user, appt)
        except CalendarError as exc:
            logger.warning("sync of appointment %s failed: %s", appt.id, exc.message)
            results.append({'appointmentId': appt.id, 'success': False, 'error': exc.message})
        else:
            results.append({'appointmentId': appt.id, 'success': True, 'eventId': event.get('id')})
    return results
