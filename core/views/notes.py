"""
Clinical note views.

Create and update accept either JSON or ``multipart/form-data``; files
arrive under the ``attachments`` key.
"""
from __future__ import annotations

import math

from django.http import FileResponse
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import User
from core.permissions import IsStaffRole
from core.serializers.note import (
    SORT_FIELDS,
    GenerateNoteSerializer,
    NoteQuerySerializer,
    NoteSerializer,
    NoteTypeQuerySerializer,
)
from core.services import notes as svc
from core.services.patients import get_patient_for


def _uploads(request) -> list:
    return request.FILES.getlist('attachments') if request.FILES else []


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def notes_list(request):
    user: User = request.user
    if request.method == 'POST':
        s = NoteSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        patient = get_patient_for(user, s.validated_data['patientId'])
        note = svc.create_note(user, patient, s.validated_data, _uploads(request))
        return Response(svc.serialize_note(note), status=status.HTTP_201_CREATED)
    q = NoteQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    f = q.validated_data
    qs = svc.search_notes(user, patient=f.get('patient'), doctor=f.get('doctor'),
                          note_type=f.get('noteType'), search=f['search'])
    order = SORT_FIELDS[f['sortBy']]
    qs = qs.order_by(order if f['sortOrder'] == 'asc' else f"-{order}", '-id')
    page, limit = f['page'], f['limit']
    total = qs.count()
    start = (page - 1) * limit
    return Response({
        'notes': [svc.serialize_note(n) for n in qs[start:start + limit]],
        'pagination': {'total': total, 'page': page, 'limit': limit,
                       'pages': math.ceil(total / limit) if total else 0},
    })


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def note_detail(request, pk: int):
    user: User = request.user
    note = svc.get_note_for(user, pk)
    if request.method == 'GET':
        return Response(svc.serialize_note(note))
    if request.method == 'DELETE':
        svc.delete_note(user, note)
        return Response({'message': 'Note deleted successfully'})
    s = NoteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    note = svc.update_note(user, note, s.validated_data, _uploads(request))
    return Response(svc.serialize_note(svc.get_note_for(user, note.pk)))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def patient_notes(request, patient_id: int):
    user: User = request.user
    patient = get_patient_for(user, patient_id)
    q = NoteTypeQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = svc.search_notes(user, patient=patient.id, note_type=q.validated_data.get('noteType'))
    return Response([svc.serialize_note(n) for n in qs.order_by('-created_at', '-id')])


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def note_attachment(request, pk: int, attachment_id: int):
    note = svc.get_note_for(request.user, pk)
    a = svc.get_attachment(note, attachment_id)
    return FileResponse(a.file.open('rb'), as_attachment=True, filename=a.original_name, content_type=a.mimetype)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def note_generate(request):
    user: User = request.user
    s = GenerateNoteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    patient = get_patient_for(user, vd['patientId'])
    note = svc.generate_note(user, patient, note_type=vd['noteType'], visit_id=vd.get('visitId'),
                             prompt_data=vd['promptData'])
    return Response(svc.serialize_note(note), status=status.HTTP_201_CREATED)
