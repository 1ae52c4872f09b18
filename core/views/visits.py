"""
Visit views: the per-patient history and recording a new encounter.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import User
from core.permissions import IsStaffRole
from core.services import visits as svc
from core.services.patients import get_patient_for


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def patient_visits(request, pk: int):
    patient = get_patient_for(request.user, pk)
    return Response([svc.serialize_visit(v) for v in svc.patient_visits(patient)])


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def visit_create(request, pk: int, visit_type: str):
    user: User = request.user
    patient = get_patient_for(user, pk)
    visit = svc.create_visit(user, patient, visit_type, request.data)
    return Response(svc.serialize_visit(visit), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def visit_detail(request, pk: int):
    return Response(svc.serialize_visit(svc.get_visit_for(request.user, pk)))
