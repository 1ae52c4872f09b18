"""
Form response views.

A response records a patient's answers to a form template.  Answers are
checked against the template on every write; completing a response also
requires every mandatory question to be answered.
"""
from __future__ import annotations

from django.db import models, transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import FormResponse, FormTemplate, User
from core.permissions import IsStaffRole
from core.serializers.form import (
    FormResponseCreateSerializer,
    FormResponseQuerySerializer,
    FormResponseUpdateSerializer,
)
from core.services.forms import validate_answers
from core.services.patients import get_patient_for


def _serialize(r: FormResponse) -> dict:
    return {
        'id': r.id,
        'formTemplate': {'id': r.form_template_id, 'title': r.form_template.title},
        'patient': {'id': r.patient_id, 'name': r.patient.full_name()} if r.patient_id else None,
        'respondent': r.respondent or {},
        'responses': r.responses or [],
        'status': r.status,
        'completedAt': r.completed_at.isoformat() if r.completed_at else None,
        'reviewedBy': {'id': r.reviewed_by_id, 'name': r.reviewed_by.display_name()} if r.reviewed_by_id else None,
        'reviewedAt': r.reviewed_at.isoformat() if r.reviewed_at else None,
        'createdAt': r.created_at.isoformat() if r.created_at else None,
        'updatedAt': r.updated_at.isoformat() if r.updated_at else None,
    }


def _scoped(user: User):
    qs = FormResponse.objects.select_related('form_template', 'patient', 'reviewed_by')
    if user.is_admin:
        return qs
    return qs.filter(models.Q(patient__assigned_doctor=user) | models.Q(patient__isnull=True, form_template__created_by=user))


def _get_response(user: User, pk: int) -> FormResponse:
    r = _scoped(user).filter(pk=pk).first()
    if r is None:
        if FormResponse.objects.filter(pk=pk).exists():
            raise PermissionDenied('Access denied')
        raise NotFound('Form response not found')
    return r


def _apply_status(r: FormResponse, new_status: str, user: User) -> None:
    now = timezone.now()
    if new_status in (FormResponse.STATUS_COMPLETED, FormResponse.STATUS_REVIEWED) and not r.completed_at:
        r.completed_at = now
    if new_status == FormResponse.STATUS_REVIEWED:
        r.reviewed_by = user
        r.reviewed_at = now
    r.status = new_status


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def responses_list(request):
    user: User = request.user
    if request.method == 'GET':
        q = FormResponseQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        f = q.validated_data
        qs = _scoped(user)
        if 'patient' in f:
            qs = qs.filter(patient_id=f['patient'])
        if 'formTemplate' in f:
            qs = qs.filter(form_template_id=f['formTemplate'])
        if 'status' in f:
            qs = qs.filter(status=f['status'])
        if 'startDate' in f:
            qs = qs.filter(created_at__date__gte=f['startDate'])
        if 'endDate' in f:
            qs = qs.filter(created_at__date__lte=f['endDate'])
        return Response([_serialize(r) for r in qs.order_by('-created_at', '-id')])
    s = FormResponseCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    template = FormTemplate.objects.filter(pk=vd['formTemplate']).first()
    if template is None:
        raise ValidationError({'formTemplate': 'Form template not found'})
    if not template.is_active:
        raise ValidationError({'formTemplate': 'Form template is inactive'})
    patient = get_patient_for(user, vd['patient']) if vd.get('patient') else None
    complete = vd['status'] == FormResponse.STATUS_COMPLETED
    answers = validate_answers(template.items or [], vd['responses'], complete=complete)
    with transaction.atomic():
        r = FormResponse(
            form_template=template,
            patient=patient,
            respondent=vd.get('respondent') or {},
            responses=answers,
        )
        _apply_status(r, vd['status'], user)
        r.save()
    return Response(_serialize(r), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def response_detail(request, pk: int):
    user: User = request.user
    if request.method == 'DELETE':
        if not user.is_admin:
            raise PermissionDenied('Only administrators can delete form responses')
        r = FormResponse.objects.filter(pk=pk).first()
        if r is None:
            raise NotFound('Form response not found')
        r.delete()
        return Response({'message': 'Form response deleted successfully'})
    r = _get_response(user, pk)
    if request.method == 'GET':
        return Response(_serialize(r))
    s = FormResponseUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    new_status = vd.get('status', r.status)
    complete = new_status in (FormResponse.STATUS_COMPLETED, FormResponse.STATUS_REVIEWED)
    raw = vd['responses'] if 'responses' in vd else r.responses
    answers = validate_answers(r.form_template.items or [], raw, complete=complete)
    with transaction.atomic():
        r.responses = answers
        if 'respondent' in vd:
            r.respondent = vd['respondent']
        if new_status != r.status:
            _apply_status(r, new_status, user)
        r.save()
    return Response(_serialize(r))
