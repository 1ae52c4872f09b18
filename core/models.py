"""
Database models for the practice EMR backend.

These models capture the core concepts of the system: staff users,
patients and their intake documents, tasks and notifications, the
form builder (templates, responses and emailed intake tokens),
appointments and their calendar connection, clinical visits and notes,
and billing.  Nested patient sections are stored as JSON so that the
intake wizard can address them with dotted paths.
"""
from __future__ import annotations

import os
import uuid
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone


DEFAULT_NOTIFICATION_PREFERENCES = {
    'emailNotifications': True,
    'appointmentReminders': True,
    'systemUpdates': False,
    'marketingEmails': False,
}


def _default_notification_preferences() -> dict:
    return dict(DEFAULT_NOTIFICATION_PREFERENCES)


class User(AbstractUser):
    """Staff account.

    Roles mirror the front-end roles: 'admin' sees everything, 'doctor'
    is limited to the patients assigned to them.
    """
    ROLE_ADMIN = 'admin'
    ROLE_DOCTOR = 'doctor'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_DOCTOR, 'Doctor'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_DOCTOR, db_index=True)
    doctor_id = models.CharField(max_length=50, unique=True, null=True, blank=True)
    specialization = models.CharField(max_length=255, blank=True)
    notification_preferences = models.JSONField(default=_default_notification_preferences, blank=True)

    @property
    def is_admin(self) -> bool:
        return self.role == self.ROLE_ADMIN

    @property
    def is_doctor(self) -> bool:
        return self.role == self.ROLE_DOCTOR

    def display_name(self) -> str:
        return self.get_full_name() or self.username

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Patient(models.Model):
    """A patient record.

    Scalar demographics live in columns; the nested sections captured by
    the intake wizard (address, insurance, medical history, ...) are JSON
    documents.  Wizard answers without a dedicated column go to ``extra``.
    """
    STATUS_ACTIVE = 'active'
    STATUS_PENDING = 'pending'
    STATUS_DISCHARGED = 'discharged'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_PENDING, 'Pending review'),
        (STATUS_DISCHARGED, 'Discharged'),
    ]
    VIA_STAFF = 'staff'
    VIA_PUBLIC_FORM = 'public_form'
    VIA_CHOICES = [
        (VIA_STAFF, 'Staff'),
        (VIA_PUBLIC_FORM, 'Public form'),
    ]
    LANGUAGE_CHOICES = [
        ('english', 'English'),
        ('spanish', 'Spanish'),
    ]

    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)
    date_of_birth = models.CharField(max_length=32, blank=True)
    gender = models.CharField(max_length=32, blank=True)
    marital_status = models.CharField(max_length=32, blank=True)
    email = models.EmailField(blank=True, db_index=True)
    phone = models.CharField(max_length=32, blank=True)
    preferred_language = models.CharField(max_length=10, choices=LANGUAGE_CHOICES, default='english')

    address = models.JSONField(default=dict, blank=True)
    emergency_contact = models.JSONField(default=dict, blank=True)
    insurance = models.JSONField(default=dict, blank=True)
    attorney = models.JSONField(default=dict, blank=True)
    medical_history = models.JSONField(default=dict, blank=True)
    subjective = models.JSONField(default=dict, blank=True)
    extra = models.JSONField(default=dict, blank=True)

    assigned_doctor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='patients',
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    created_via = models.CharField(max_length=20, choices=VIA_CHOICES, default=VIA_STAFF)
    form_token = models.CharField(max_length=64, blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['assigned_doctor', 'updated_at'], name='core_patien_assigne_7c1f0e_idx'),
            models.Index(fields=['last_name', 'first_name'], name='core_patien_last_na_4b2a9d_idx'),
        ]

    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return f"{self.full_name()} (#{self.pk})"


class CaseCounter(models.Model):
    """Named sequence behind attorney case numbers (``P-001``) and invoice numbers."""
    name = models.CharField(max_length=50, unique=True)
    value = models.PositiveIntegerField(default=0)

    @classmethod
    def next_value(cls, name: str) -> int:
        with transaction.atomic():
            cls.objects.get_or_create(name=name)
            cls.objects.filter(name=name).update(value=F('value') + 1)
            return cls.objects.get(name=name).value

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


PRIORITY_CHOICES = [
    ('low', 'Low'),
    ('medium', 'Medium'),
    ('high', 'High'),
]


class Task(models.Model):
    """A work item assigned by one staff member to another about a patient.

    ``completed_at`` is stamped the first time the status becomes
    ``completed`` and is never overwritten afterwards.
    """
    STATUS_PENDING = 'pending'
    STATUS_IN_PROGRESS = 'in-progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
    ]
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium', db_index=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    due_date = models.DateTimeField(null=True, blank=True)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='tasks_assigned',
    )
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='tasks_created',
    )
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='tasks')
    notification_sent = models.BooleanField(default=False)
    notification_read = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        if self.status == self.STATUS_COMPLETED and not self.completed_at:
            self.completed_at = timezone.now()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.title} (#{self.id})"


class Notification(models.Model):
    TYPE_CHOICES = [
        ('task', 'Task'),
        ('appointment', 'Appointment'),
        ('system', 'System'),
        ('other', 'Other'),
    ]
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    title = models.CharField(max_length=255)
    message = models.TextField()
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='other')
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    is_read = models.BooleanField(default=False)
    is_dismissed = models.BooleanField(default=False)
    related_task = models.ForeignKey(Task, null=True, blank=True, on_delete=models.CASCADE, related_name='notifications')
    related_patient = models.ForeignKey(
        Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='notifications'
    )
    link = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['user', 'is_read'], name='core_notifi_user_id_5d8e21_idx'),
            models.Index(fields=['user', 'is_dismissed'], name='core_notifi_user_id_a93c07_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.title} -> {self.user_id}"


class FormTemplate(models.Model):
    """A questionnaire built with the form builder.

    ``items`` is the list of typed questions interpreted by
    :mod:`core.services.forms`.
    """
    LANGUAGE_CHOICES = [
        ('english', 'English'),
        ('spanish', 'Spanish'),
        ('bilingual', 'Bilingual'),
    ]
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='form_templates')
    is_active = models.BooleanField(default=True)
    is_public = models.BooleanField(default=False)
    language = models.CharField(max_length=10, choices=LANGUAGE_CHOICES, default='english')
    items = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.title


class FormResponse(models.Model):
    STATUS_INCOMPLETE = 'incomplete'
    STATUS_COMPLETED = 'completed'
    STATUS_REVIEWED = 'reviewed'
    STATUS_CHOICES = [
        (STATUS_INCOMPLETE, 'Incomplete'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_REVIEWED, 'Reviewed'),
    ]
    form_template = models.ForeignKey(FormTemplate, on_delete=models.CASCADE, related_name='responses')
    patient = models.ForeignKey(Patient, null=True, blank=True, on_delete=models.CASCADE, related_name='form_responses')
    respondent = models.JSONField(default=dict, blank=True)
    responses = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_INCOMPLETE)
    completed_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='reviewed_responses'
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"response {self.id} to {self.form_template_id}"


class FormToken(models.Model):
    """A single-use link emailed to a prospective patient."""
    STATUS_SENT = 'sent'
    STATUS_COMPLETED = 'completed'
    STATUS_EXPIRED = 'expired'
    STATUS_CHOICES = [
        (STATUS_SENT, 'Sent'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_EXPIRED, 'Expired'),
    ]
    LANGUAGE_CHOICES = [
        ('english', 'English'),
        ('spanish', 'Spanish'),
    ]
    token = models.CharField(max_length=64, unique=True)
    email = models.EmailField()
    client_name = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='form_tokens')
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    language = models.CharField(max_length=10, choices=LANGUAGE_CHOICES, default='english')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SENT)
    completed_at = models.DateTimeField(null=True, blank=True)
    patient = models.ForeignKey(Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='form_tokens')

    @property
    def expires_at(self):
        return self.created_at + timedelta(days=settings.FORM_TOKEN_TTL_DAYS)

    def is_expired(self, now=None) -> bool:
        if self.status == self.STATUS_EXPIRED:
            return True
        return (now or timezone.now()) >= self.expires_at

    def __str__(self) -> str:
        return f"form token for {self.email} ({self.status})"


class Appointment(models.Model):
    TYPE_CHOICES = [
        ('initial', 'Initial Visit'),
        ('followup', 'Follow-up'),
        ('discharge', 'Discharge'),
        ('consultation', 'Consultation'),
        ('other', 'Other'),
    ]
    STATUS_CHOICES = [
        ('scheduled', 'Scheduled'),
        ('confirmed', 'Confirmed'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
        ('no-show', 'No Show'),
    ]
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='appointments')
    doctor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='appointments')
    date = models.DateField(db_index=True)
    start_time = models.TimeField()
    end_time = models.TimeField()
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='followup')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='scheduled', db_index=True)
    color_code = models.CharField(max_length=16, blank=True)
    notes = models.TextField(blank=True)
    google_calendar_event_id = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=['doctor', 'date', 'start_time'], name='core_appoin_doctor__e2b4f6_idx')]

    def __str__(self) -> str:
        return f"appt {self.id} {self.date} {self.start_time:%H:%M}"


class CalendarConnection(models.Model):
    """Google Calendar credentials stored for a staff user."""
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='calendar')
    access_token = models.TextField()
    refresh_token = models.TextField(blank=True)
    # milliseconds since epoch, as issued by Google's token endpoint
    expiry_date = models.BigIntegerField(null=True, blank=True)
    connected_at = models.DateTimeField(auto_now=True)

    def is_expired(self, now=None) -> bool:
        if not self.expiry_date:
            return False
        now = now or timezone.now()
        return now.timestamp() * 1000 >= self.expiry_date

    def __str__(self) -> str:
        return f"calendar for {self.user_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='core_audite_action_1f3b5c_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='core_audite_object__8d2e47_idx'),
        ]


class Visit(models.Model):
    """A clinical encounter.

    Initial, follow-up and discharge visits share the columns below; the
    exam findings that differ per visit type are kept in ``details``.
    A discharge visit moves the patient to ``discharged``.
    """
    TYPE_INITIAL = 'initial'
    TYPE_FOLLOWUP = 'followup'
    TYPE_DISCHARGE = 'discharge'
    TYPE_CHOICES = [
        (TYPE_INITIAL, 'Initial'),
        (TYPE_FOLLOWUP, 'Follow-up'),
        (TYPE_DISCHARGE, 'Discharge'),
    ]
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='visits')
    doctor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='visits')
    visit_type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    date = models.DateTimeField(default=timezone.now)
    notes = models.TextField(blank=True)
    chief_complaint = models.CharField(max_length=500, blank=True)
    previous_visit = models.ForeignKey('self', null=True, blank=True, on_delete=models.SET_NULL, related_name='followups')
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=['patient', 'date'], name='core_visit_patient_3a91c4_idx')]

    def __str__(self) -> str:
        return f"{self.visit_type} visit {self.id} for patient {self.patient_id}"


class Note(models.Model):
    TYPE_CHOICES = [
        ('Progress', 'Progress'),
        ('Consultation', 'Consultation'),
        ('Pre-Operative', 'Pre-Operative'),
        ('Post-Operative', 'Post-Operative'),
        ('Legal', 'Legal'),
        ('Other', 'Other'),
    ]
    title = models.CharField(max_length=255)
    content = models.TextField()
    note_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='Progress', db_index=True)
    color_code = models.CharField(max_length=16, default='#FFFFFF')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='clinical_notes')
    doctor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='clinical_notes')
    visit = models.ForeignKey(Visit, null=True, blank=True, on_delete=models.SET_NULL, related_name='clinical_notes')
    # [{"code": "M54.5", "description": "Low back pain"}]
    diagnosis_codes = models.JSONField(default=list, blank=True)
    treatment_codes = models.JSONField(default=list, blank=True)
    is_ai_generated = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=['patient', 'created_at'], name='core_note_patient_6b0d2e_idx')]

    def __str__(self) -> str:
        return self.title


def _note_upload(instance, filename: str) -> str:
    ext = os.path.splitext(filename)[1]
    return f"notes/{timezone.localdate():%Y/%m}/{uuid.uuid4().hex}{ext}"


class NoteAttachment(models.Model):
    note = models.ForeignKey(Note, on_delete=models.CASCADE, related_name='attachments')
    file = models.FileField(upload_to=_note_upload, max_length=512)
    original_name = models.CharField(max_length=255)
    mimetype = models.CharField(max_length=100)
    size = models.PositiveIntegerField(default=0)
    uploaded_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.original_name


class Invoice(models.Model):
    """A bill for a patient.

    Line items are stored as JSON with their computed ``total``;
    ``subtotal`` and ``total`` are recomputed whenever the items change.
    """
    STATUS_DRAFT = 'draft'
    STATUS_SENT = 'sent'
    STATUS_PARTIAL = 'partial'
    STATUS_PAID = 'paid'
    STATUS_OVERDUE = 'overdue'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SENT, 'Sent'),
        (STATUS_PARTIAL, 'Partially paid'),
        (STATUS_PAID, 'Paid'),
        (STATUS_OVERDUE, 'Overdue'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    OPEN_STATUSES = (STATUS_DRAFT, STATUS_SENT, STATUS_PARTIAL, STATUS_OVERDUE)

    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='invoices')
    visit = models.ForeignKey(Visit, null=True, blank=True, on_delete=models.SET_NULL, related_name='invoices')
    invoice_number = models.CharField(max_length=32, unique=True)
    date_issued = models.DateField(default=timezone.localdate, db_index=True)
    due_date = models.DateField()
    items = models.JSONField(default=list, blank=True)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.invoice_number


class Payment(models.Model):
    METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('credit', 'Credit card'),
        ('insurance', 'Insurance'),
        ('other', 'Other'),
    ]
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    date = models.DateTimeField(default=timezone.now)
    method = models.CharField(max_length=10, choices=METHOD_CHOICES, default='other')
    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)

    def __str__(self) -> str:
        return f"{self.amount} on {self.invoice_id}"
