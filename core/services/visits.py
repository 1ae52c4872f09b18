"""
Clinical visits.

Every visit type records its own exam findings.  The accepted keys and
their JSON shapes are listed per type below; keys outside the list are
ignored, matching how the visit forms post their whole state.
"""
import logging
from datetime import datetime, time
from typing import Any, Dict

import bleach
from django.db import transaction
from django.utils.dateparse import parse_datetime, parse_date
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from core.models import Patient, User, Visit
from core.services.audit import log_action

logger = logging.getLogger(__name__)

_TEXT, _LIST, _OBJECT, _FLAG, _NUMBER = 'text', 'list', 'object', 'flag', 'number'

_TREATMENT_FIELDS = {
    'muscleStrength': _LIST, 'strength': _OBJECT, 'tenderness': _OBJECT, 'spasm': _OBJECT,
    'ortho': _OBJECT, 'arom': _OBJECT,
    'chiropracticAdjustment': _LIST, 'chiropracticOther': _TEXT,
    'acupuncture': _LIST, 'acupunctureOther': _TEXT,
    'physiotherapy': _LIST, 'rehabilitationExercises': _LIST,
    'durationFrequency': _OBJECT, 'diagnosticUltrasound': _TEXT, 'disabilityDuration': _TEXT,
    'nerveStudy': _LIST, 'restrictions': _OBJECT, 'otherNotes': _TEXT, 'imaging': _OBJECT,
}

DETAIL_FIELDS: Dict[str, Dict[str, str]] = {
    Visit.TYPE_INITIAL: {
        **_TREATMENT_FIELDS,
        'vitals': _OBJECT, 'grip': _OBJECT,
        'appearance': _LIST, 'appearanceOther': _TEXT, 'orientation': _OBJECT,
        'posture': _LIST, 'gait': _LIST, 'gaitDevice': _TEXT,
        'dtr': _LIST, 'dtrOther': _TEXT,
        'dermatomes': _LIST, 'dermatomesHypoArea': _TEXT, 'dermatomesHyperArea': _TEXT,
        'oriented': _FLAG, 'neuroNote': _TEXT, 'coordination': _FLAG,
        'romberg': _LIST, 'rombergNotes': _TEXT, 'pronatorDrift': _TEXT,
        'neuroTests': _LIST, 'walkTests': _LIST, 'painLocation': _LIST, 'radiatingTo': _TEXT,
        'jointDysfunction': _LIST, 'jointOther': _TEXT, 'referrals': _LIST,
        'lumbarTouchingToesMovement': _OBJECT, 'cervicalAROMCheckmarks': _OBJECT,
    },
    Visit.TYPE_FOLLOWUP: {
        **_TREATMENT_FIELDS,
        'areas': _TEXT, 'areasImproving': _FLAG, 'areasExacerbated': _FLAG, 'areasSame': _FLAG,
        'musclePalpation': _TEXT, 'painRadiating': _TEXT,
        'romWnlNoPain': _FLAG, 'romWnlWithPain': _FLAG, 'romImproved': _FLAG,
        'romDecreased': _FLAG, 'romSame': _FLAG,
        'orthos': _OBJECT, 'activitiesCausePain': _TEXT, 'activitiesCausePainOther': _TEXT,
        'treatmentPlan': _OBJECT, 'overallResponse': _OBJECT, 'referrals': _TEXT,
        'diagnosticStudy': _OBJECT, 'homeCare': _TEXT,
    },
    Visit.TYPE_DISCHARGE: {
        'areasImproving': _FLAG, 'areasExacerbated': _FLAG, 'areasSame': _FLAG,
        'musclePalpation': _TEXT, 'painRadiating': _TEXT, 'romPercent': _NUMBER,
        'orthos': _OBJECT, 'activitiesCausePain': _TEXT, 'otherNotes': _TEXT,
        'prognosis': _TEXT, 'diagnosticStudy': _OBJECT, 'futureMedicalCare': _LIST,
        'croftCriteria': _TEXT, 'amaDisability': _TEXT, 'homeCare': _LIST, 'referralsNotes': _TEXT,
    },
}

_SHAPE_MESSAGES = {
    _TEXT: 'must be a string',
    _LIST: 'must be a list',
    _OBJECT: 'must be an object',
    _FLAG: 'must be true or false',
    _NUMBER: 'must be a number',
}


def _shape_ok(kind: str, value: Any) -> bool:
    if kind == _TEXT:
        return isinstance(value, str)
    if kind == _LIST:
        return isinstance(value, list)
    if kind == _OBJECT:
        return isinstance(value, dict)
    if kind == _FLAG:
        return isinstance(value, bool)
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def extract_details(visit_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Pick the exam findings for ``visit_type`` out of ``data``; raise on bad shapes."""
    details: Dict[str, Any] = {}
    errors: Dict[str, str] = {}
    for key, kind in DETAIL_FIELDS[visit_type].items():
        value = data.get(key)
        if value is None:
            continue
        if not _shape_ok(kind, value):
            errors[key] = _SHAPE_MESSAGES[kind]
            continue
        details[key] = bleach.clean(value, strip=True) if kind == _TEXT else value
    if errors:
        raise ValidationError({'fields': errors})
    return details


def _parse_visit_date(value: Any):
    if value in (None, ''):
        return timezone.now()
    if isinstance(value, str):
        try:
            parsed = parse_datetime(value)
            if parsed is None:
                day = parse_date(value)
                parsed = datetime.combine(day, time.min) if day else None
        except ValueError:
            parsed = None
        if parsed is not None:
            return timezone.make_aware(parsed) if timezone.is_naive(parsed) else parsed
    raise ValidationError({'date': 'invalid date, expected an ISO 8601 date or datetime'})


def serialize_visit(v: Visit) -> Dict[str, Any]:
    data = dict(v.details or {})
    data.update({
        'id': v.id,
        'visitType': v.visit_type,
        'patient': {'id': v.patient_id, 'name': v.patient.full_name()},
        'doctor': {'id': v.doctor_id, 'name': v.doctor.display_name()},
        'date': v.date.isoformat(),
        'notes': v.notes,
        'createdAt': v.created_at.isoformat() if v.created_at else None,
        'updatedAt': v.updated_at.isoformat() if v.updated_at else None,
    })
    if v.visit_type == Visit.TYPE_INITIAL:
        data['chiefComplaint'] = v.chief_complaint
    if v.visit_type == Visit.TYPE_FOLLOWUP:
        data['previousVisit'] = v.previous_visit_id
    return data


def patient_visits(patient: Patient):
    return patient.visits.select_related('patient', 'doctor').order_by('-date', '-id')


def get_visit_for(user: User, pk: int) -> Visit:
    v = Visit.objects.select_related('patient', 'doctor').filter(pk=pk).first()
    if v is None:
        raise NotFound('Visit not found')
    if not user.is_admin and v.doctor_id != user.id and v.patient.assigned_doctor_id != user.id:
        raise PermissionDenied('Access denied')
    return v


def create_visit(user: User, patient: Patient, visit_type: str, data: Any) -> Visit:
    if visit_type not in DETAIL_FIELDS:
        raise ValidationError('Invalid visit type')
    if not isinstance(data, dict):
        raise ValidationError('visit must be an object')
    details = extract_details(visit_type, data)
    visit = Visit(
        patient=patient,
        doctor=user,
        visit_type=visit_type,
        date=_parse_visit_date(data.get('date')),
        notes=bleach.clean(str(data.get('notes') or '').strip(), strip=True),
        details=details,
    )
    if visit_type == Visit.TYPE_INITIAL:
        complaint = data.get('chiefComplaint')
        if not isinstance(complaint, str) or not complaint.strip():
            raise ValidationError({'fields': {'chiefComplaint': 'required'}})
        visit.chief_complaint = bleach.clean(complaint.strip(), strip=True)
    elif visit_type == Visit.TYPE_FOLLOWUP:
        previous_id = data.get('previousVisit')
        previous = None
        if isinstance(previous_id, int) and not isinstance(previous_id, bool):
            previous = Visit.objects.filter(pk=previous_id, patient=patient).first()
        if previous is None:
            raise NotFound('Previous visit not found')
        visit.previous_visit = previous
    with transaction.atomic():
        visit.save()
        if visit_type == Visit.TYPE_DISCHARGE and patient.status != Patient.STATUS_DISCHARGED:
            patient.status = Patient.STATUS_DISCHARGED
            patient.save(update_fields=['status', 'updated_at'])
    log_action(user=user, action=f'visit_{visit_type}', obj=visit, detail={'patient': patient.id})
    logger.info("%s visit %s recorded for patient %s", visit_type, visit.id, patient.id)
    return visit
