"""
Invoices and payments.

Doctors only bill the patients assigned to them.  Amounts are kept as
``Decimal`` and rendered as two-decimal strings.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet, Sum
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from core.exceptions import Conflict
from core.models import CaseCounter, Invoice, Patient, Payment, User, Visit
from core.services.audit import log_action

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


def _money(value) -> str:
    return str(Decimal(value or 0).quantize(CENT))


def serialize_payment(p: Payment) -> Dict[str, Any]:
    return {
        'id': p.id,
        'amount': _money(p.amount),
        'date': p.date.isoformat(),
        'method': p.method,
        'reference': p.reference,
        'notes': p.notes,
    }


def serialize_invoice(inv: Invoice) -> Dict[str, Any]:
    payments = list(inv.payments.order_by('date', 'id'))
    paid = sum((p.amount for p in payments), Decimal('0'))
    return {
        'id': inv.id,
        'invoiceNumber': inv.invoice_number,
        'patient': {'id': inv.patient_id, 'name': inv.patient.full_name()},
        'visit': {'id': inv.visit_id, 'visitType': inv.visit.visit_type, 'date': inv.visit.date.isoformat()}
        if inv.visit_id else None,
        'dateIssued': inv.date_issued.isoformat(),
        'dueDate': inv.due_date.isoformat(),
        'items': inv.items,
        'subtotal': _money(inv.subtotal),
        'tax': _money(inv.tax),
        'discount': _money(inv.discount),
        'total': _money(inv.total),
        'amountPaid': _money(paid),
        'balance': _money(max(inv.total - paid, Decimal('0'))),
        'status': inv.status,
        'paymentHistory': [serialize_payment(p) for p in payments],
        'notes': inv.notes,
        'createdAt': inv.created_at.isoformat() if inv.created_at else None,
        'updatedAt': inv.updated_at.isoformat() if inv.updated_at else None,
    }


def scoped_invoices(user: User) -> QuerySet:
    qs = Invoice.objects.select_related('patient', 'visit')
    if user.is_admin:
        return qs
    return qs.filter(patient__assigned_doctor=user)


def get_invoice_for(user: User, pk: int) -> Invoice:
    inv = Invoice.objects.select_related('patient', 'visit').filter(pk=pk).first()
    if inv is None:
        raise NotFound('Invoice not found')
    if not user.is_admin and inv.patient.assigned_doctor_id != user.id:
        raise PermissionDenied('Access denied')
    return inv


def price_items(items) -> tuple:
    """Return ``(priced_items, subtotal)`` with each line's ``total`` computed."""
    priced, subtotal = [], Decimal('0')
    for item in items:
        line_total = (item['quantity'] * item['unitPrice']).quantize(CENT)
        subtotal += line_total
        priced.append({
            'description': item['description'],
            'code': item.get('code', ''),
            'quantity': format(item['quantity'].normalize(), 'f'),
            'unitPrice': _money(item['unitPrice']),
            'total': _money(line_total),
        })
    return priced, subtotal


def next_invoice_number(today: Optional[date] = None) -> str:
    today = today or timezone.localdate()
    prefix = today.strftime('%y%m')
    while True:
        candidate = f"INV-{prefix}-{CaseCounter.next_value(f'invoice-{prefix}'):04d}"
        if not Invoice.objects.filter(invoice_number=candidate).exists():
            return candidate


def _resolve_visit(patient: Patient, visit_id) -> Optional[Visit]:
    if visit_id is None:
        return None
    visit = Visit.objects.filter(pk=visit_id, patient=patient).first()
    if visit is None:
        raise NotFound('Visit not found')
    return visit


def _apply(inv: Invoice, vd: Dict[str, Any]) -> None:
    items, subtotal = price_items(vd['items'])
    inv.items = items
    inv.subtotal = subtotal
    inv.tax = vd.get('tax', inv.tax) or Decimal('0')
    inv.discount = vd.get('discount', inv.discount) or Decimal('0')
    inv.total = subtotal + inv.tax - inv.discount
    if inv.total < 0:
        raise ValidationError({'discount': 'discount cannot exceed subtotal plus tax'})
    for key, attr in (('dateIssued', 'date_issued'), ('dueDate', 'due_date'), ('status', 'status'),
                      ('notes', 'notes')):
        if key in vd:
            setattr(inv, attr, vd[key])


def create_invoice(user: User, patient: Patient, vd: Dict[str, Any]) -> Invoice:
    number = vd.get('invoiceNumber') or next_invoice_number()
    if Invoice.objects.filter(invoice_number=number).exists():
        raise Conflict(f"Invoice number '{number}' is already in use")
    inv = Invoice(patient=patient, visit=_resolve_visit(patient, vd.get('visit')), invoice_number=number)
    _apply(inv, vd)
    try:
        with transaction.atomic():
            inv.save()
            log_action(user=user, action='invoice_create', obj=inv, detail={'total': _money(inv.total)})
    except IntegrityError as exc:
        raise Conflict(f"Invoice number '{number}' is already in use") from exc
    logger.info("invoice %s created for patient %s", inv.invoice_number, patient.id)
    return inv


def update_invoice(user: User, inv: Invoice, vd: Dict[str, Any]) -> Invoice:
    if inv.status == Invoice.STATUS_PAID:
        raise ValidationError('Cannot update a paid invoice')
    if 'invoiceNumber' in vd and vd['invoiceNumber'] and vd['invoiceNumber'] != inv.invoice_number:
        if Invoice.objects.filter(invoice_number=vd['invoiceNumber']).exists():
            raise Conflict(f"Invoice number '{vd['invoiceNumber']}' is already in use")
        inv.invoice_number = vd['invoiceNumber']
    if 'visit' in vd:
        inv.visit = _resolve_visit(inv.patient, vd['visit'])
    _apply(inv, vd)
    if inv.due_date < inv.date_issued:
        raise ValidationError({'dueDate': 'due date must not be before the issue date'})
    inv.save()
    return inv


def record_payment(user: User, inv: Invoice, vd: Dict[str, Any]) -> Payment:
    if inv.status == Invoice.STATUS_CANCELLED:
        raise ValidationError('Cannot record a payment on a cancelled invoice')
    with transaction.atomic():
        payment = Payment.objects.create(invoice=inv, amount=vd['amount'], method=vd['method'],
                                         reference=vd['reference'], notes=vd['notes'])
        paid = inv.payments.aggregate(s=Sum('amount'))['s'] or Decimal('0')
        if paid >= inv.total:
            inv.status = Invoice.STATUS_PAID
        elif paid > 0:
            inv.status = Invoice.STATUS_PARTIAL
        inv.save(update_fields=['status', 'updated_at'])
        log_action(user=user, action='invoice_payment', obj=inv, detail={'amount': _money(payment.amount)})
    return payment


def dashboard_summary(user: User, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or timezone.localdate()
    qs = scoped_invoices(user)
    month = Q(date_issued__year=today.year, date_issued__month=today.month)
    billed = qs.filter(month).exclude(status=Invoice.STATUS_CANCELLED).aggregate(s=Sum('total'))['s']
    collected = Payment.objects.filter(invoice__in=qs, date__year=today.year, date__month=today.month) \
        .aggregate(s=Sum('amount'))['s']
    open_qs = qs.filter(status__in=Invoice.OPEN_STATUSES)
    open_total = open_qs.aggregate(s=Sum('total'))['s'] or Decimal('0')
    open_paid = Payment.objects.filter(invoice__in=open_qs).aggregate(s=Sum('amount'))['s'] or Decimal('0')
    counts: Dict[str, int] = {}
    for status in qs.values_list('status', flat=True):
        counts[status] = counts.get(status, 0) + 1
    return {
        'billedThisMonth': _money(billed),
        'collectedThisMonth': _money(collected),
        'outstanding': _money(max(open_total - open_paid, Decimal('0'))),
        'statusCounts': counts,
    }


def mark_overdue(today: Optional[date] = None) -> int:
    today = today or timezone.localdate()
    return Invoice.objects.filter(
        status__in=(Invoice.STATUS_SENT, Invoice.STATUS_PARTIAL), due_date__lt=today,
    ).update(status=Invoice.STATUS_OVERDUE, updated_at=timezone.now())
