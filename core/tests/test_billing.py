import datetime
from decimal import Decimal

import pytest
from django.core.management import call_command
from django.utils import timezone

from core.models import AuditEvent, Invoice, Patient, Payment
from core.services import billing

pytestmark = pytest.mark.django_db


def _body(patient, **extra):
    return {
        'patient': patient.id,
        'dueDate': '2030-01-31',
        'items': [
            {'description': 'Initial exam', 'code': '99203', 'quantity': 1, 'unitPrice': '150.00'},
            {'description': 'Therapy unit', 'quantity': 3, 'unitPrice': '40.50'},
        ],
        'tax': '10.00',
        'discount': '5.00',
        **extra,
    }


def _invoice(patient, number, total='100.00', **extra):
    return Invoice.objects.create(patient=patient, invoice_number=number, due_date=datetime.date(2030, 1, 31),
                                  subtotal=Decimal(total), total=Decimal(total), **extra)


def test_create_invoice_computes_totals(client_for, doctor, patient):
    r = client_for(doctor).post('/api/billing', _body(patient), format='json')
    assert r.status_code == 201, r.data
    inv = r.data['invoice']
    assert inv['items'][1] == {'description': 'Therapy unit', 'code': '', 'quantity': '3',
                               'unitPrice': '40.50', 'total': '121.50'}
    assert inv['subtotal'] == '271.50'
    assert inv['total'] == '276.50'
    assert inv['balance'] == '276.50'
    assert inv['status'] == 'draft'
    assert inv['invoiceNumber'].startswith(f"INV-{timezone.localdate():%y%m}-")
    assert AuditEvent.objects.filter(action='invoice_create', object_id=inv['id']).exists()


def test_generated_numbers_are_sequential(doctor, patient):
    today = datetime.date(2025, 3, 10)
    first = billing.next_invoice_number(today)
    _invoice(patient, 'INV-2503-0002')
    assert first == 'INV-2503-0001'
    assert billing.next_invoice_number(today) == 'INV-2503-0003'


def test_duplicate_invoice_number_is_a_conflict(client_for, doctor, patient):
    _invoice(patient, 'INV-1')
    r = client_for(doctor).post('/api/billing', _body(patient, invoiceNumber='INV-1'), format='json')
    assert r.status_code == 409
    assert r.data['error']['code'] == 'conflict'
    assert Invoice.objects.count() == 1


@pytest.mark.parametrize('change', [
    {'items': []},
    {'items': [{'description': 'x', 'unitPrice': '-1'}]},
    {'discount': '1000.00'},
    {'dateIssued': '2030-02-01'},
])
def test_invalid_invoices(client_for, doctor, patient, change):
    r = client_for(doctor).post('/api/billing', _body(patient, **change), format='json')
    assert r.status_code == 400
    assert not Invoice.objects.exists()


def test_doctors_bill_only_their_patients(client_for, doctor, other_doctor, admin, patient):
    r = client_for(other_doctor).post('/api/billing', _body(patient), format='json')
    assert r.status_code == 403
    inv = _invoice(patient, 'INV-9')
    assert client_for(other_doctor).get(f'/api/billing/{inv.id}').status_code == 403
    assert client_for(other_doctor).get('/api/billing').data['totalInvoices'] == 0
    assert client_for(other_doctor).get(f'/api/billing/count/{patient.id}').status_code == 403
    assert client_for(doctor).get(f'/api/billing/count/{patient.id}').data == {'totalInvoices': 1}
    assert client_for(admin).get('/api/billing').data['totalInvoices'] == 1


def test_list_filters(client_for, doctor, patient):
    _invoice(patient, 'A', status='sent', date_issued=datetime.date(2025, 1, 10))
    _invoice(patient, 'B', status='paid', date_issued=datetime.date(2025, 2, 10))
    _invoice(patient, 'C', status='sent', date_issued=datetime.date(2025, 3, 10))
    client = client_for(doctor)
    r = client.get('/api/billing', {'status': 'sent'})
    assert [i['invoiceNumber'] for i in r.data['invoices']] == ['C', 'A']
    r = client.get('/api/billing', {'startDate': '2025-02-01', 'endDate': '2025-02-28'})
    assert [i['invoiceNumber'] for i in r.data['invoices']] == ['B']
    r = client.get('/api/billing', {'limit': 2, 'page': 2})
    assert r.data['totalPages'] == 2
    assert r.data['currentPage'] == 2
    assert [i['invoiceNumber'] for i in r.data['invoices']] == ['A']


def test_payments_move_status(client_for, doctor, patient):
    inv = _invoice(patient, 'INV-P', total='100.00', status='sent')
    client = client_for(doctor)
    r = client.post(f'/api/billing/{inv.id}/payments', {'amount': '40.00', 'method': 'cash'}, format='json')
    assert r.status_code == 200, r.data
    assert r.data['invoice']['status'] == 'partial'
    assert r.data['invoice']['balance'] == '60.00'
    r = client.post(f'/api/billing/{inv.id}/payments', {'amount': '60.00', 'method': 'credit'}, format='json')
    assert r.data['invoice']['status'] == 'paid'
    assert [p['amount'] for p in r.data['invoice']['paymentHistory']] == ['40.00', '60.00']
    assert client.post(f'/api/billing/{inv.id}/payments', {'amount': '0'}, format='json').status_code == 400


def test_paid_and_cancelled_invoices_are_locked(client_for, doctor, patient):
    paid = _invoice(patient, 'PAID', status='paid')
    cancelled = _invoice(patient, 'CXL', status='cancelled')
    client = client_for(doctor)
    r = client.put(f'/api/billing/{paid.id}', _body(patient), format='json')
    assert r.status_code == 400
    assert r.data['error']['message'] == 'Cannot update a paid invoice'
    r = client.post(f'/api/billing/{cancelled.id}/payments', {'amount': '5.00'}, format='json')
    assert r.status_code == 400
    assert not Payment.objects.exists()


def test_update_reprices_items(client_for, doctor, patient):
    inv = _invoice(patient, 'INV-U')
    r = client_for(doctor).put(f'/api/billing/{inv.id}', _body(patient, tax='0', discount='0', status='sent'),
                               format='json')
    assert r.status_code == 200, r.data
    assert r.data['invoice']['total'] == '271.50'
    assert r.data['invoice']['status'] == 'sent'
    assert r.data['invoice']['invoiceNumber'] == 'INV-U'


def test_dashboard_summary(client_for, doctor, patient):
    today = timezone.localdate()
    sent = _invoice(patient, 'S', total='200.00', status='sent', date_issued=today)
    _invoice(patient, 'P', total='50.00', status='paid', date_issued=today)
    _invoice(patient, 'X', total='75.00', status='cancelled', date_issued=today)
    Payment.objects.create(invoice=sent, amount=Decimal('20.00'))
    other = Patient.objects.create(first_name='Zed', last_name='Other')
    _invoice(other, 'O', total='999.00', status='sent', date_issued=today)

    r = client_for(doctor).get('/api/billing/summary/dashboard')
    assert r.status_code == 200
    assert r.data == {
        'billedThisMonth': '250.00',
        'collectedThisMonth': '20.00',
        'outstanding': '180.00',
        'statusCounts': {'sent': 1, 'paid': 1, 'cancelled': 1},
    }


def test_mark_overdue_invoices_command(patient):
    past = datetime.date(2020, 1, 1)
    late = Invoice.objects.create(patient=patient, invoice_number='L', due_date=past, status='sent',
                                  date_issued=past)
    draft = Invoice.objects.create(patient=patient, invoice_number='D', due_date=past, status='draft',
                                   date_issued=past)
    call_command('mark_overdue_invoices')
    late.refresh_from_db()
    draft.refresh_from_db()
    assert late.status == 'overdue'
    assert draft.status == 'draft'
