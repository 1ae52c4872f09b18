"""
Billing views: invoices, payments and the dashboard summary.
"""
from __future__ import annotations

import math

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import User
from core.permissions import IsStaffRole
from core.serializers.billing import InvoiceQuerySerializer, InvoiceSerializer, PaymentSerializer
from core.services import billing as svc
from core.services.patients import get_patient_for


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def invoices_list(request):
    user: User = request.user
    if request.method == 'POST':
        s = InvoiceSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        patient = get_patient_for(user, s.validated_data['patient'])
        invoice = svc.create_invoice(user, patient, s.validated_data)
        return Response({'message': 'Invoice created successfully', 'invoice': svc.serialize_invoice(invoice)},
                        status=status.HTTP_201_CREATED)
    q = InvoiceQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    f = q.validated_data
    qs = svc.scoped_invoices(user)
    if 'status' in f:
        qs = qs.filter(status=f['status'])
    if 'patient' in f:
        qs = qs.filter(patient_id=f['patient'])
    if 'startDate' in f:
        qs = qs.filter(date_issued__gte=f['startDate'])
    if 'endDate' in f:
        qs = qs.filter(date_issued__lte=f['endDate'])
    qs = qs.order_by('-date_issued', '-id')
    page, limit = f['page'], f['limit']
    total = qs.count()
    start = (page - 1) * limit
    return Response({
        'invoices': [svc.serialize_invoice(i) for i in qs[start:start + limit]],
        'totalPages': math.ceil(total / limit) if total else 0,
        'currentPage': page,
        'totalInvoices': total,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def invoice_count(request, patient_id: int):
    patient = get_patient_for(request.user, patient_id)
    return Response({'totalInvoices': patient.invoices.count()})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def billing_summary(request):
    return Response(svc.dashboard_summary(request.user))


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsStaffRole])
def invoice_detail(request, pk: int):
    user: User = request.user
    invoice = svc.get_invoice_for(user, pk)
    if request.method == 'GET':
        return Response(svc.serialize_invoice(invoice))
    s = InvoiceSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    invoice = svc.update_invoice(user, invoice, s.validated_data)
    return Response({'message': 'Invoice updated successfully', 'invoice': svc.serialize_invoice(invoice)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def invoice_payments(request, pk: int):
    user: User = request.user
    invoice = svc.get_invoice_for(user, pk)
    s = PaymentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    svc.record_payment(user, invoice, s.validated_data)
    return Response({'message': 'Payment recorded successfully', 'invoice': svc.serialize_invoice(invoice)})
