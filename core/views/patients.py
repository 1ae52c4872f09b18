"""
Patient management views.

Staff (admins and doctors) manage patient documents; doctors are scoped
to the patients assigned to them.  The two public endpoints at the end
serve the emailed intake form and accept its submission.
"""
from __future__ import annotations

import math

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from core import intake
from core.models import FormToken, User
from core.permissions import IsStaffRole
from core.serializers.patient import FieldChangesSerializer, PatientListQuerySerializer, SendFormSerializer
from core.services import patients as svc
from core.throttles import PublicFormRateThrottle


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def patients_list(request):
    user: User = request.user
    if request.method == 'POST':
        patient = svc.create_patient(user, request.data)
        return Response(svc.serialize_patient(patient), status=status.HTTP_201_CREATED)
    q = PatientListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    page, limit = q.validated_data['page'], q.validated_data['limit']
    qs = svc.search_patients(user, q.validated_data['search'])
    total = qs.count()
    start = (page - 1) * limit
    return Response({
        'patients': [svc.serialize_patient_summary(p) for p in qs[start:start + limit]],
        'totalPages': math.ceil(total / limit) if total else 0,
        'currentPage': page,
        'totalPatients': total,
    })


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def patient_detail(request, pk: int):
    user: User = request.user
    patient = svc.get_patient_for(user, pk)
    if request.method == 'GET':
        return Response(svc.serialize_patient(patient))
    if request.method == 'PUT':
        patient = svc.update_patient(user, patient, request.data)
        return Response(svc.serialize_patient(patient))
    svc.delete_patient(user, patient)
    return Response({'message': 'Patient deleted successfully'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsStaffRole])
def patient_fields(request, pk: int):
    """Update individual answers addressed by dotted path.

    Body: ``{"changes": {"medicalHistory.allergies[0]": "Penicillin"}}``
    """
    s = FieldChangesSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    patient = svc.get_patient_for(request.user, pk)
    patient = svc.patch_fields(request.user, patient, s.validated_data['changes'])
    return Response(svc.serialize_patient(patient))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def send_to_client(request):
    s = SendFormSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    patient = svc.get_patient_for(request.user, vd['patientId']) if vd.get('patientId') else None
    token, link, email_error = svc.send_form_to_client(
        request.user,
        email=vd['email'],
        client_name=vd['name'],
        language=vd['language'],
        instructions=vd['instructions'],
        patient=patient,
    )
    body = {'formLink': link, 'token': token.token, 'emailSent': email_error is None}
    if email_error is not None:
        body.update({'message': 'Form token created but email failed to send', 'error': email_error})
        return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    body['message'] = 'Form link sent successfully'
    return Response(body)


@api_view(['GET'])
@permission_classes([AllowAny])
@throttle_classes([PublicFormRateThrottle])
def public_form(request, token: str):
    ft: FormToken = svc.get_open_token(token)
    return Response({
        'clientName': ft.client_name,
        'email': ft.email,
        'language': ft.language,
        'status': ft.status,
        'expiresAt': ft.expires_at.isoformat(),
    })


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([PublicFormRateThrottle])
def public_form_submission(request, token: str):
    patient = svc.submit_public_form(token, request.data)
    return Response({
        'message': 'Patient information submitted successfully',
        'patient': {'id': patient.id, 'name': patient.full_name()},
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([AllowAny])
def intake_schema(request):
    language = request.query_params.get('lang') or 'english'
    if language not in intake.LANGUAGES:
        language = 'english'
    doctors = None
    user = request.user
    if user is not None and user.is_authenticated:
        doctors = [
            {'value': str(d.id), 'label': d.display_name()}
            for d in User.objects.filter(role=User.ROLE_DOCTOR, is_active=True).order_by('last_name', 'first_name')
        ]
    return Response({
        'language': language,
        'sections': intake.localized_sections(language, doctors=doctors),
        'defaults': intake.default_document(),
    })
