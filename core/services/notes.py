"""
Clinical notes and their file attachments.

Doctors see and edit the notes they wrote; administrators see all of
them.  ``generate_note`` drafts a note through an OpenAI-compatible
chat completions endpoint from the patient's chart and, optionally,
one of their visits.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

import requests
from django.conf import settings
from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from core.exceptions import NoteGenerationError
from core.models import Note, NoteAttachment, Patient, User, Visit
from core.services.audit import log_action

logger = logging.getLogger(__name__)

ALLOWED_MIMETYPES = {
    'image/jpeg', 'image/png', 'image/gif', 'image/webp',
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'text/plain',
}

_NOTE_KINDS = {
    'Progress': ('medical documentation assistant', 'medical progress note'),
    'Consultation': ('medical documentation assistant', 'medical consultation note'),
    'Legal': ('medical-legal documentation assistant', 'medical-legal narrative'),
    'Pre-Operative': ('medical documentation assistant', 'pre-operative note'),
    'Post-Operative': ('medical documentation assistant', 'post-operative note'),
}


def serialize_attachment(a: NoteAttachment) -> Dict[str, Any]:
    return {
        'id': a.id,
        'originalName': a.original_name,
        'mimetype': a.mimetype,
        'size': a.size,
        'uploadedAt': a.uploaded_at.isoformat() if a.uploaded_at else None,
        'url': f"/api/notes/{a.note_id}/attachments/{a.id}",
    }


def serialize_note(n: Note) -> Dict[str, Any]:
    return {
        'id': n.id,
        'title': n.title,
        'content': n.content,
        'noteType': n.note_type,
        'colorCode': n.color_code,
        'patient': {'id': n.patient_id, 'name': n.patient.full_name(), 'dateOfBirth': n.patient.date_of_birth},
        'doctor': {'id': n.doctor_id, 'name': n.doctor.display_name()},
        'visit': {'id': n.visit_id, 'visitType': n.visit.visit_type, 'date': n.visit.date.isoformat()}
        if n.visit_id else None,
        'diagnosisCodes': n.diagnosis_codes,
        'treatmentCodes': n.treatment_codes,
        'attachments': [serialize_attachment(a) for a in n.attachments.all()],
        'isAiGenerated': n.is_ai_generated,
        'createdAt': n.created_at.isoformat() if n.created_at else None,
        'updatedAt': n.updated_at.isoformat() if n.updated_at else None,
    }


def scoped_notes(user: User) -> QuerySet:
    qs = Note.objects.select_related('patient', 'doctor', 'visit').prefetch_related('attachments')
    return qs if user.is_admin else qs.filter(doctor=user)


def search_notes(user: User, *, patient=None, doctor=None, note_type=None, search: str = '') -> QuerySet:
    qs = scoped_notes(user)
    if patient is not None:
        qs = qs.filter(patient_id=patient)
    if doctor is not None and user.is_admin:
        qs = qs.filter(doctor_id=doctor)
    if note_type:
        qs = qs.filter(note_type=note_type)
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(content__icontains=search))
    return qs


def get_note_for(user: User, pk: int) -> Note:
    n = Note.objects.select_related('patient', 'doctor', 'visit').filter(pk=pk).first()
    if n is None:
        raise NotFound('Note not found')
    if not user.is_admin and n.doctor_id != user.id:
        raise PermissionDenied('Access denied')
    return n


def resolve_visit(patient: Patient, visit_id: Optional[int]) -> Optional[Visit]:
    if visit_id is None:
        return None
    visit = Visit.objects.filter(pk=visit_id, patient=patient).first()
    if visit is None:
        raise NotFound('Visit not found')
    return visit


def _check_uploads(files: List, existing: int = 0) -> None:
    if existing + len(files) > settings.NOTE_ATTACHMENT_MAX_FILES:
        raise ValidationError({'attachments': f"At most {settings.NOTE_ATTACHMENT_MAX_FILES} files per note"})
    for f in files:
        if f.size > settings.NOTE_ATTACHMENT_MAX_BYTES:
            raise ValidationError({'attachments': f"{f.name} is too large"})
        if f.content_type not in ALLOWED_MIMETYPES:
            raise ValidationError({'attachments': f"Invalid file type: {f.content_type}"})


def _attach(note: Note, files: Iterable) -> None:
    for f in files:
        NoteAttachment.objects.create(note=note, file=f, original_name=f.name[:255],
                                      mimetype=f.content_type, size=f.size)


def create_note(user: User, patient: Patient, vd: Dict[str, Any], files: List) -> Note:
    visit = resolve_visit(patient, vd.get('visitId'))
    _check_uploads(files)
    with transaction.atomic():
        note = Note.objects.create(
            title=vd['title'],
            content=vd['content'],
            note_type=vd['noteType'],
            color_code=vd['colorCode'],
            patient=patient,
            doctor=user,
            visit=visit,
            diagnosis_codes=vd['diagnosisCodes'],
            treatment_codes=vd['treatmentCodes'],
        )
        _attach(note, files)
        log_action(user=user, action='note_create', obj=note, detail={'patient': patient.id})
    return note


def update_note(user: User, note: Note, vd: Dict[str, Any], files: List) -> Note:
    if 'visitId' in vd:
        note.visit = resolve_visit(note.patient, vd['visitId'])
    for key, attr in (('title', 'title'), ('content', 'content'), ('noteType', 'note_type'),
                      ('colorCode', 'color_code'), ('diagnosisCodes', 'diagnosis_codes'),
                      ('treatmentCodes', 'treatment_codes')):
        if key in vd:
            setattr(note, attr, vd[key])
    removed = list(note.attachments.filter(id__in=vd.get('removeAttachments') or []))
    _check_uploads(files, existing=note.attachments.count() - len(removed))
    with transaction.atomic():
        note.save()
        for a in removed:
            a.delete()
        _attach(note, files)
    for a in removed:
        a.file.delete(save=False)
    return note


def delete_note(user: User, note: Note) -> None:
    stored = [a.file for a in note.attachments.all()]
    with transaction.atomic():
        log_action(user=user, action='note_delete', obj=note, detail={'title': note.title})
        note.delete()
    for f in stored:
        f.delete(save=False)


def get_attachment(note: Note, attachment_id: int) -> NoteAttachment:
    a = note.attachments.filter(pk=attachment_id).first()
    if a is None:
        raise NotFound('Attachment not found')
    return a


def _joined(values) -> str:
    if isinstance(values, list):
        return ', '.join(str(v) for v in values if v not in (None, ''))
    return str(values or '')


def build_prompt(patient: Patient, visit: Optional[Visit], note_type: str, prompt_data: str = ''):
    """Return ``(system_prompt, user_prompt)`` for drafting a note of ``note_type``."""
    role, kind = _NOTE_KINDS.get(note_type, ('medical documentation assistant', 'medical note'))
    system = (f"You are a {role} that helps create professional, accurate "
              f"{kind.replace('medical ', '')}s based on provided clinical data.")
    lines = [f"Generate a professional {kind} based on the following patient data:", '',
             'Patient Information:',
             f"- Name: {patient.full_name()}",
             f"- DOB: {patient.date_of_birth or 'Unknown'}",
             f"- Gender: {patient.gender or 'Unknown'}"]

    history = patient.medical_history or {}
    history_lines = [f"- {label}: {_joined(history.get(key))}"
                     for key, label in (('allergies', 'Allergies'), ('medications', 'Medications'),
                                        ('conditions', 'Conditions'), ('surgeries', 'Surgeries'))
                     if _joined(history.get(key))]
    if history_lines:
        lines += ['', 'Medical History:'] + history_lines

    subjective = patient.subjective or {}
    complaint_lines = [f"- {label}: {_joined(subjective.get(key))}"
                       for key, label in (('bodyPart', 'Body Parts'), ('severity', 'Severity'),
                                          ('quality', 'Quality'), ('timing', 'Timing'), ('notes', 'Notes'))
                       if _joined(subjective.get(key))]
    if complaint_lines:
        lines += ['', 'Subjective Complaints:'] + complaint_lines

    if visit is not None:
        details = visit.details or {}
        lines += ['', 'Visit Information:', f"- Visit Type: {visit.visit_type}",
                  f"- Date: {timezone.localtime(visit.date).date().isoformat()}"]
        if visit.chief_complaint:
            lines.append(f"- Chief Complaint: {visit.chief_complaint}")
        vitals = details.get('vitals') or {}
        for key, label in (('height', 'Height'), ('weight', 'Weight'), ('bp', 'Blood Pressure'), ('pulse', 'Pulse')):
            if vitals.get(key):
                lines.append(f"- {label}: {vitals[key]}")
        for key, label in (('painLocation', 'Pain Location'), ('radiatingTo', 'Radiating To'),
                           ('areas', 'Areas'), ('musclePalpation', 'Muscle Palpation'),
                           ('prognosis', 'Prognosis'), ('futureMedicalCare', 'Future Medical Care'),
                           ('homeCare', 'Home Care')):
            if _joined(details.get(key)):
                lines.append(f"- {label}: {_joined(details.get(key))}")
        if visit.notes:
            lines.append(f"- Additional Notes: {visit.notes}")

    if prompt_data:
        lines += ['', 'Additional Information:', prompt_data]
    lines += ['', f"Please generate a well-structured, professional {kind} in paragraph format that "
                  f"incorporates all relevant information. Include appropriate medical terminology."]
    return system, '\n'.join(lines)


def _complete(system: str, prompt: str) -> str:
    if not settings.NOTE_GENERATION_API_KEY:
        raise NoteGenerationError('Note generation is not configured')
    try:
        resp = requests.post(
            settings.NOTE_GENERATION_API_URL,
            json={
                'model': settings.NOTE_GENERATION_MODEL,
                'messages': [{'role': 'system', 'content': system}, {'role': 'user', 'content': prompt}],
                'temperature': 0.3,
                'max_tokens': 1500,
            },
            headers={'Authorization': f"Bearer {settings.NOTE_GENERATION_API_KEY}"},
            timeout=settings.NOTE_GENERATION_TIMEOUT,
        )
    except requests.RequestException as exc:
        raise NoteGenerationError(f"Note generation request failed: {exc}") from exc
    if resp.status_code >= 400:
        raise NoteGenerationError(f"Note generation service returned {resp.status_code}")
    try:
        text = resp.json()['choices'][0]['message']['content']
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise NoteGenerationError('Note generation service returned an unexpected response') from exc
    if not isinstance(text, str) or not text.strip():
        raise NoteGenerationError('Note generation service returned an empty note')
    return text.strip()


def generate_note(user: User, patient: Patient, *, note_type: str, visit_id: Optional[int] = None,
                  prompt_data: str = '') -> Note:
    visit = resolve_visit(patient, visit_id)
    system, prompt = build_prompt(patient, visit, note_type, prompt_data)
    content = _complete(system, prompt)
    title = f"{note_type} Note - {patient.full_name()} - {timezone.localdate().isoformat()}"
    note = Note.objects.create(title=title[:255], content=content, note_type=note_type, patient=patient,
                               doctor=user, visit=visit, is_ai_generated=True)
    log_action(user=user, action='note_generate', obj=note, detail={'patient': patient.id})
    logger.info("drafted %s note %s for patient %s", note_type, note.id, patient.id)
    return note
