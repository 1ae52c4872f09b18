"""
Patient document service.

A patient is exchanged with the front-end as a nested camelCase
document (the shape the intake wizard writes with dotted paths).  This
module maps that document onto :class:`~core.models.Patient` columns and
JSON sections, scopes access by role, and runs the public intake form
workflow (token issue, email, submission).
"""
import copy
import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

import bleach
from django.conf import settings
from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from core import intake
from core.models import CaseCounter, FormToken, Patient, User
from core.paths import apply_changes
from core.services import mail
from core.services.audit import log_action
from core.services.notifications import notify

logger = logging.getLogger(__name__)

CASE_COUNTER = 'caseNumber'

SCALAR_FIELDS = {
    'firstName': 'first_name',
    'lastName': 'last_name',
    'dateOfBirth': 'date_of_birth',
    'gender': 'gender',
    'maritalStatus': 'marital_status',
    'email': 'email',
    'phone': 'phone',
    'preferredLanguage': 'preferred_language',
}
SECTION_FIELDS = {
    'address': 'address',
    'emergencyContact': 'emergency_contact',
    'insurance': 'insurance',
    'attorney': 'attorney',
    'medicalHistory': 'medical_history',
    'subjective': 'subjective',
}
READ_ONLY_KEYS = {
    'id', 'assignedDoctor', 'assignedDoctorName', 'status', 'createdVia', 'formToken',
    'submittedAt', 'createdAt', 'updatedAt',
}
SANITIZED_FIELDS = ('first_name', 'last_name')


def content_document(p: Patient) -> Dict[str, Any]:
    """The editable part of the patient document."""
    doc: Dict[str, Any] = copy.deepcopy(p.extra or {})
    for key, column in SCALAR_FIELDS.items():
        doc[key] = getattr(p, column)
    for key, column in SECTION_FIELDS.items():
        doc[key] = copy.deepcopy(getattr(p, column) or {})
    return doc


def serialize_patient(p: Patient) -> Dict[str, Any]:
    doc = content_document(p)
    doc.update({
        'id': p.id,
        'assignedDoctor': p.assigned_doctor_id,
        'assignedDoctorName': p.assigned_doctor.display_name() if p.assigned_doctor else None,
        'status': p.status,
        'createdVia': p.created_via,
        'submittedAt': p.submitted_at.isoformat() if p.submitted_at else None,
        'createdAt': p.created_at.isoformat() if p.created_at else None,
        'updatedAt': p.updated_at.isoformat() if p.updated_at else None,
    })
    return doc


def serialize_patient_summary(p: Patient) -> Dict[str, Any]:
    return {
        'id': p.id,
        'firstName': p.first_name,
        'lastName': p.last_name,
        'dateOfBirth': p.date_of_birth,
        'gender': p.gender,
        'email': p.email,
        'phone': p.phone,
        'status': p.status,
        'assignedDoctor': p.assigned_doctor_id,
        'assignedDoctorName': p.assigned_doctor.display_name() if p.assigned_doctor else None,
        'updatedAt': p.updated_at.isoformat() if p.updated_at else None,
    }


def _write_document(p: Patient, doc: Dict[str, Any]) -> None:
    extra = {}
    for key, value in doc.items():
        if key in SCALAR_FIELDS:
            column = SCALAR_FIELDS[key]
            value = '' if value is None else str(value)
            if column in SANITIZED_FIELDS:
                value = bleach.clean(value.strip(), strip=True)
            setattr(p, column, value)
        elif key in SECTION_FIELDS:
            if value is not None and not isinstance(value, dict):
                raise ValidationError({key: 'must be an object'})
            setattr(p, SECTION_FIELDS[key], value or {})
        elif key not in READ_ONLY_KEYS:
            extra[key] = value
    p.extra = extra
    if p.preferred_language not in dict(Patient.LANGUAGE_CHOICES):
        p.preferred_language = 'english'


def _assign_case_number(p: Patient) -> None:
    attorney = p.attorney or {}
    if attorney.get('name') and not attorney.get('caseNumber'):
        value = CaseCounter.next_value(CASE_COUNTER)
        p.attorney = {**attorney, 'caseNumber': f"P-{value:03d}"}


def _raise_if_invalid(errors: Dict[str, str]) -> None:
    if errors:
        raise ValidationError({'fields': errors})


def scoped_patients(user: User) -> QuerySet:
    qs = Patient.objects.select_related('assigned_doctor')
    if user.is_admin:
        return qs
    return qs.filter(assigned_doctor=user)


def get_patient_for(user: User, pk) -> Patient:
    p = Patient.objects.select_related('assigned_doctor').filter(pk=pk).first()
    if p is None:
        raise NotFound('Patient not found')
    if not user.is_admin and p.assigned_doctor_id != user.id:
        raise PermissionDenied('Access denied')
    return p


def search_patients(user: User, search: str = '') -> QuerySet:
    qs = scoped_patients(user)
    search = (search or '').strip()
    if search:
        qs = qs.filter(
            Q(first_name__icontains=search) | Q(last_name__icontains=search) | Q(email__icontains=search)
        )
    return qs.order_by('-updated_at', '-id')


def _resolve_doctor(user: User, value: Any) -> Optional[User]:
    if user.is_doctor:
        return user
    if value in (None, ''):
        return None
    doctor = User.objects.filter(pk=value, role=User.ROLE_DOCTOR, is_active=True).first()
    if doctor is None:
        raise ValidationError({'assignedDoctor': 'unknown doctor'})
    return doctor


def create_patient(user: User, doc: Dict[str, Any]) -> Patient:
    if not isinstance(doc, dict):
        raise ValidationError('patient document must be an object')
    _raise_if_invalid(intake.validate_intake(doc))
    with transaction.atomic():
        p = Patient(created_via=Patient.VIA_STAFF)
        _write_document(p, doc)
        p.assigned_doctor = _resolve_doctor(user, doc.get('assignedDoctor'))
        if doc.get('status') in dict(Patient.STATUS_CHOICES):
            p.status = doc['status']
        _assign_case_number(p)
        p.save()
    log_action(user=user, action='patient_create', object_type='patient', object_id=p.id)
    return p


def update_patient(user: User, p: Patient, doc: Dict[str, Any]) -> Patient:
    """Merge a full or partial document into the stored one."""
    if not isinstance(doc, dict):
        raise ValidationError('patient document must be an object')
    merged = content_document(p)
    merged.update({k: v for k, v in doc.items() if k not in READ_ONLY_KEYS})
    _raise_if_invalid(intake.validate_intake(merged, require=False))
    with transaction.atomic():
        _write_document(p, merged)
        if user.is_admin and 'assignedDoctor' in doc:
            p.assigned_doctor = _resolve_doctor(user, doc['assignedDoctor'])
        status_val = doc.get('status')
        if status_val is not None:
            if status_val not in dict(Patient.STATUS_CHOICES):
                raise ValidationError({'status': 'invalid status'})
            p.status = status_val
        _assign_case_number(p)
        p.save()
    log_action(user=user, action='patient_update', object_type='patient', object_id=p.id)
    return p


def patch_fields(user: User, p: Patient, changes: Any) -> Patient:
    """Apply ``{path: value}`` changes addressed into the patient document."""
    if not isinstance(changes, dict) or not changes:
        raise ValidationError({'changes': 'expected a non-empty object of {path: value}'})
    for path in changes:
        head = path.split('.', 1)[0].split('[', 1)[0]
        if head in READ_ONLY_KEYS:
            raise ValidationError({path: 'read-only field'})
    updated = apply_changes(content_document(p), changes)
    _raise_if_invalid(intake.validate_intake(updated, require=False))
    with transaction.atomic():
        _write_document(p, updated)
        _assign_case_number(p)
        p.save()
    log_action(user=user, action='patient_patch', object_type='patient', object_id=p.id,
               detail={'paths': sorted(changes)})
    return p


def delete_patient(user: User, p: Patient) -> None:
    pid = p.id
    p.delete()
    log_action(user=user, action='patient_delete', object_type='patient', object_id=pid)


# ---------------------------------------------------------------------
# Public intake form
# ---------------------------------------------------------------------
def form_link(token: str, language: str) -> str:
    base = settings.CLIENT_BASE_URL
    if not base:
        raise ValidationError('CLIENT_BASE_URL is not configured')
    return f"{base}/patients/form/{token}?lang={language}"


def issue_form_token(user: User, *, email: str, client_name: str = '', language: str = 'english',
                     patient: Optional[Patient] = None) -> FormToken:
    return FormToken.objects.create(
        token=secrets.token_hex(32),
        email=email,
        client_name=client_name or 'Valued Patient',
        created_by=user,
        language=language,
        patient=patient,
    )


def send_form_to_client(user: User, *, email: str, client_name: str = '', language: str = 'english',
                        instructions: str = '', patient: Optional[Patient] = None) -> Tuple[FormToken, str, Optional[str]]:
    """Create a token and email its link. Returns ``(token, link, email_error)``."""
    form_link("", language)
    token = issue_form_token(user, email=email, client_name=client_name, language=language, patient=patient)
    link = form_link(token.token, language)
    log_action(user=user, action='form_link_sent', object_type='form_token', object_id=token.id,
               detail={'email': email, 'language': language})
    try:
        mail.send_form_link(email=email, client_name=token.client_name, link=link,
                            language=language, instructions=instructions)
    except Exception as exc:
        logger.exception("sending form link to %s failed", email)
        return token, link, str(exc)
    return token, link, None


def expire_stale_tokens(now=None) -> int:
    """Mark every unanswered token past its lifetime as expired."""
    cutoff = (now or timezone.now()) - timedelta(days=settings.FORM_TOKEN_TTL_DAYS)
    count = FormToken.objects.filter(status=FormToken.STATUS_SENT, created_at__lte=cutoff).update(
        status=FormToken.STATUS_EXPIRED
    )
    if count:
        logger.info("expired %d stale form tokens", count)
    return count


def get_open_token(raw: str) -> FormToken:
    token = FormToken.objects.select_related('created_by').filter(token=raw).first() if raw else None
    if token is None:
        raise ValidationError('Invalid or expired token')
    if token.status == FormToken.STATUS_COMPLETED:
        raise ValidationError('This form has already been submitted')
    if token.is_expired():
        if token.status != FormToken.STATUS_EXPIRED:
            token.status = FormToken.STATUS_EXPIRED
            token.save(update_fields=['status'])
        raise ValidationError('Invalid or expired token')
    return token


def submit_public_form(raw_token: str, doc: Any) -> Patient:
    if not isinstance(doc, dict):
        raise ValidationError('patient document must be an object')
    token = get_open_token(raw_token)
    _raise_if_invalid(intake.validate_intake(doc, public=True))
    with transaction.atomic():
        locked = FormToken.objects.select_for_update().get(pk=token.pk)
        if locked.status == FormToken.STATUS_COMPLETED:
            raise ValidationError('This form has already been submitted')
        p = Patient(
            created_via=Patient.VIA_PUBLIC_FORM,
            status=Patient.STATUS_PENDING,
            form_token=locked.token,
            submitted_at=timezone.now(),
            assigned_doctor=token.created_by,
        )
        _write_document(p, doc)
        if 'preferredLanguage' not in doc:
            p.preferred_language = locked.language
        _assign_case_number(p)
        p.save()
        locked.status = FormToken.STATUS_COMPLETED
        locked.completed_at = timezone.now()
        locked.patient = p
        locked.save(update_fields=['status', 'completed_at', 'patient'])
    logger.info("public intake submitted: patient %s via token %s", p.id, locked.id)
    log_action(user=None, action='public_form_submit', object_type='patient', object_id=p.id,
               detail={'tokenId': locked.id})
    notify(
        token.created_by,
        title='New Patient Form Submitted',
        message=f"{p.full_name()} completed the intake form and is pending review.",
        type='system',
        related_patient=p,
        link=f"/patients/{p.id}",
    )
    mail.send_submission_confirmation(email=p.email, first_name=p.first_name, language=p.preferred_language)
    return p
