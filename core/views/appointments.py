"""
Appointment scheduling views.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import Appointment, User
from core.permissions import IsStaffRole
from core.serializers.appointment import AppointmentNoteSerializer, AppointmentQuerySerializer, AppointmentSerializer
from core.services.patients import get_patient_for


def serialize_appointment(a: Appointment) -> dict:
    return {
        'id': a.id,
        'patient': {'id': a.patient_id, 'name': a.patient.full_name()},
        'doctor': {'id': a.doctor_id, 'name': a.doctor.display_name()},
        'date': a.date.isoformat(),
        'startTime': a.start_time.strftime('%H:%M'),
        'endTime': a.end_time.strftime('%H:%M'),
        'type': a.type,
        'status': a.status,
        'colorCode': a.color_code,
        'notes': a.notes,
        'googleCalendarEventId': a.google_calendar_event_id or None,
        'createdAt': a.created_at.isoformat() if a.created_at else None,
        'updatedAt': a.updated_at.isoformat() if a.updated_at else None,
    }


def get_appointment_for(user: User, pk: int) -> Appointment:
    a = Appointment.objects.select_related('patient', 'doctor').filter(pk=pk).first()
    if a is None:
        raise NotFound('Appointment not found')
    if not user.is_admin and a.doctor_id != user.id:
        raise PermissionDenied('Access denied')
    return a


def _resolve_doctor(user: User, doctor_id) -> User:
    if user.is_admin:
        if doctor_id is None:
            raise ValidationError({'doctor': 'Doctor is required when an administrator books'})
    elif doctor_id is None or doctor_id == user.id:
        return user
    else:
        raise PermissionDenied('Doctors can only schedule their own appointments')
    doctor = User.objects.filter(pk=doctor_id, role=User.ROLE_DOCTOR, is_active=True).first()
    if doctor is None:
        raise ValidationError({'doctor': 'Doctor not found'})
    return doctor


def _set_status(request, pk: int, new_status: str, message: str) -> Response:
    a = get_appointment_for(request.user, pk)
    s = AppointmentNoteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    a.status = new_status
    if s.validated_data.get('notes'):
        a.notes = s.validated_data['notes']
    a.save()
    return Response({'message': message, 'appointment': serialize_appointment(a)})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def appointments_list(request):
    user: User = request.user
    if request.method == 'POST':
        s = AppointmentSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        patient = get_patient_for(user, vd['patient'])
        a = Appointment.objects.create(
            patient=patient,
            doctor=_resolve_doctor(user, vd.get('doctor')),
            date=vd['date'],
            start_time=vd['startTime'],
            end_time=vd['endTime'],
            type=vd['type'],
            status=vd['status'],
            color_code=vd['colorCode'],
            notes=vd['notes'],
        )
        return Response(serialize_appointment(a), status=status.HTTP_201_CREATED)
    q = AppointmentQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    f = q.validated_data
    qs = Appointment.objects.select_related('patient', 'doctor')
    if user.is_admin:
        if 'doctor' in f:
            qs = qs.filter(doctor_id=f['doctor'])
    else:
        qs = qs.filter(doctor=user)
    if 'patient' in f:
        qs = qs.filter(patient_id=f['patient'])
    if 'status' in f:
        qs = qs.filter(status=f['status'])
    if 'startDate' in f:
        qs = qs.filter(date__gte=f['startDate'])
    if 'endDate' in f:
        qs = qs.filter(date__lte=f['endDate'])
    return Response([serialize_appointment(a) for a in qs.order_by('date', 'start_time')])


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def appointment_detail(request, pk: int):
    user: User = request.user
    a = get_appointment_for(user, pk)
    if request.method == 'GET':
        return Response(serialize_appointment(a))
    if request.method == 'DELETE':
        a.delete()
        return Response({'message': 'Appointment deleted successfully'})
    s = AppointmentSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    if 'patient' in vd:
        a.patient = get_patient_for(user, vd['patient'])
    if 'doctor' in vd:
        a.doctor = _resolve_doctor(user, vd['doctor'])
    for key, attr in (('date', 'date'), ('startTime', 'start_time'), ('endTime', 'end_time'), ('type', 'type'),
                      ('status', 'status'), ('colorCode', 'color_code'), ('notes', 'notes')):
        if key in vd:
            setattr(a, attr, vd[key])
    if a.end_time <= a.start_time:
        raise ValidationError({'endTime': 'end time must be after start time'})
    a.save()
    return Response(serialize_appointment(a))


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsStaffRole])
def appointment_cancel(request, pk: int):
    return _set_status(request, pk, 'cancelled', 'Appointment cancelled')


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsStaffRole])
def appointment_complete(request, pk: int):
    return _set_status(request, pk, 'completed', 'Appointment completed')
