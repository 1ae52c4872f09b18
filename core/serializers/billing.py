from decimal import Decimal

import bleach
from rest_framework import serializers

from core.models import Invoice, Payment

STATUSES = [choice for choice, _ in Invoice.STATUS_CHOICES]
METHODS = [choice for choice, _ in Payment.METHOD_CHOICES]


def _money(**kwargs):
    return serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'), **kwargs)


class InvoiceQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUSES, required=False)
    patient = serializers.IntegerField(required=False)
    startDate = serializers.DateField(required=False)
    endDate = serializers.DateField(required=False)
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=200, default=10)


class InvoiceItemSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=500)
    code = serializers.CharField(required=False, allow_blank=True, max_length=32, default='')
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'), default=Decimal('1'))
    unitPrice = _money()

    def validate_description(self, v):
        return bleach.clean(v.strip(), strip=True)

    def validate_code(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class InvoiceSerializer(serializers.Serializer):
    patient = serializers.IntegerField()
    visit = serializers.IntegerField(required=False, allow_null=True)
    invoiceNumber = serializers.CharField(required=False, allow_blank=True, max_length=32, default='')
    dateIssued = serializers.DateField(required=False)
    dueDate = serializers.DateField()
    items = InvoiceItemSerializer(many=True, allow_empty=False)
    tax = _money(required=False, default=Decimal('0'))
    discount = _money(required=False, default=Decimal('0'))
    status = serializers.ChoiceField(choices=STATUSES, required=False, default=Invoice.STATUS_DRAFT)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_invoiceNumber(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def validate(self, attrs):
        issued, due = attrs.get('dateIssued'), attrs.get('dueDate')
        if issued is not None and due is not None and due < issued:
            raise serializers.ValidationError({'dueDate': 'due date must not be before the issue date'})
        return attrs


class PaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    method = serializers.ChoiceField(choices=METHODS, required=False, default='other')
    reference = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_reference(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), strip=True)
