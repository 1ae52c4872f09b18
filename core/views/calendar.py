"""
Google Calendar connection and appointment sync endpoints.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import Appointment, CalendarConnection
from core.permissions import IsStaffRole
from core.serializers.calendar import CalendarConnectSerializer
from core.services import calendar as svc
from core.views.appointments import get_appointment_for


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def calendar_status(request):
    conn = CalendarConnection.objects.filter(user=request.user).first()
    return Response(svc.serialize_connection(conn))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def calendar_connect(request):
    s = CalendarConnectSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    conn = svc.connect(
        request.user,
        access_token=vd['accessToken'],
        refresh_token=vd['refreshToken'],
        expiry_date=vd.get('expiryDate'),
    )
    return Response({'message': 'Google Calendar connected', **svc.serialize_connection(conn)})


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def calendar_disconnect(request):
    removed = svc.disconnect(request.user)
    return Response({'message': 'Google Calendar disconnected' if removed else 'Google Calendar was not connected'})


@api_view(['POST', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def calendar_sync(request, appointment_id: int):
    appointment = get_appointment_for(request.user, appointment_id)
    if request.method == 'POST':
        event = svc.sync_appointment(request.user, appointment)
        return Response({'message': 'Appointment synced to Google Calendar', 'eventId': event.get('id'),
                         'htmlLink': event.get('htmlLink')})
    if request.method == 'PUT':
        event = svc.update_appointment_event(request.user, appointment)
        return Response({'message': 'Google Calendar event updated', 'eventId': event.get('id')})
    svc.delete_appointment_event(request.user, appointment)
    return Response({'message': 'Google Calendar event deleted'})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def calendar_sync_all(request):
    user = request.user
    qs = Appointment.objects.select_related('patient', 'doctor').order_by('date', 'start_time')
    if not user.is_admin:
        qs = qs.filter(doctor=user)
    results = svc.sync_all(user, qs)
    synced = sum(1 for r in results if r['success'])
    return Response({
        'message': f"Synced {synced} of {len(results)} appointments",
        'synced': synced,
        'failed': len(results) - synced,
        'results': results,
    })
