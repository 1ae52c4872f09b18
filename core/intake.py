"""
Patient intake wizard schema.

The wizard is described as ordered sections of typed questions.  Each
question carries an English and a Spanish label and the dotted path its
answer is written to inside the patient document (see
:mod:`core.paths`).  The same schema drives the localized payload served
to the front-end and the server-side validation of submitted documents.
"""
from __future__ import annotations

import copy
import re
from django.utils.dateparse import parse_date, parse_datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .paths import get_path, set_path

QUESTION_TYPES = (
    'text', 'textarea', 'select', 'radio', 'checkbox', 'date',
    'email', 'tel', 'number', 'address', 'array', 'nested',
)
CONTAINER_TYPES = ('address', 'nested')
LANGUAGES = ('english', 'spanish')
PUBLIC_REQUIRED = ('firstName', 'lastName', 'email')

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
PHONE_RE = re.compile(r'^[0-9+()\-.\s]{7,20}$')


def _opt(value: str, label: str, spanish: str) -> Dict[str, str]:
    return {'value': value, 'label': label, 'spanishLabel': spanish}


def _q(qid: str, qtype: str, label: str, spanish: str, path: Optional[str] = None, **extra) -> Dict[str, Any]:
    question = {'id': qid, 'type': qtype, 'label': label, 'spanishLabel': spanish}
    if path is not None:
        question['path'] = path
    question.update(extra)
    return question


YES_NO = [_opt('yes', 'Yes', 'Sí'), _opt('no', 'No', 'No')]


def _address(prefix: str, id_prefix: str = '', *, country: bool = True) -> List[Dict[str, Any]]:
    def key(name: str) -> str:
        return f"{id_prefix}{name[0].upper()}{name[1:]}" if id_prefix else name

    fields = [
        _q(key('street'), 'text', 'Street Address', 'Dirección', f'{prefix}.street'),
        _q(key('city'), 'text', 'City', 'Ciudad', f'{prefix}.city'),
        _q(key('state'), 'text', 'State', 'Estado', f'{prefix}.state'),
        _q(key('zipCode'), 'text', 'Zip Code', 'Código Postal', f'{prefix}.zipCode'),
    ]
    if country:
        fields.append(_q(key('country'), 'text', 'Country', 'País', f'{prefix}.country', defaultValue='USA'))
    return fields


INTAKE_SECTIONS: List[Dict[str, Any]] = [
    {
        'id': 'language',
        'title': 'Language Preference',
        'spanishTitle': 'Preferencia de Idioma',
        'questions': [
            _q('preferredLanguage', 'radio', 'Please select your preferred language',
               'Por favor seleccione su idioma preferido', 'preferredLanguage', required=True,
               options=[_opt('english', 'English', 'Inglés'), _opt('spanish', 'Spanish', 'Español')]),
        ],
    },
    {
        'id': 'personalInfo',
        'title': 'Personal Information',
        'spanishTitle': 'Información Personal',
        'questions': [
            _q('firstName', 'text', 'First Name', 'Nombre', 'firstName', required=True,
               placeholder='Enter your first name', spanishPlaceholder='Ingrese su nombre'),
            _q('lastName', 'text', 'Last Name', 'Apellido', 'lastName', required=True,
               placeholder='Enter your last name', spanishPlaceholder='Ingrese su apellido'),
            _q('dateOfBirth', 'date', 'Date of Birth', 'Fecha de Nacimiento', 'dateOfBirth', required=True),
            _q('gender', 'select', 'Gender', 'Género', 'gender', required=True, options=[
                _opt('male', 'Male', 'Masculino'),
                _opt('female', 'Female', 'Femenino'),
                _opt('non-binary', 'Non-binary', 'No binario'),
                _opt('other', 'Other', 'Otro'),
            ]),
            _q('maritalStatus', 'select', 'Marital Status', 'Estado Civil', 'maritalStatus', options=[
                _opt('single', 'Single', 'Soltero/a'),
                _opt('married', 'Married', 'Casado/a'),
                _opt('divorced', 'Divorced', 'Divorciado/a'),
                _opt('widowed', 'Widowed', 'Viudo/a'),
                _opt('separated', 'Separated', 'Separado/a'),
            ]),
        ],
    },
    {
        'id': 'contactInfo',
        'title': 'Contact Information',
        'spanishTitle': 'Información de Contacto',
        'questions': [
            _q('email', 'email', 'Email Address', 'Correo Electrónico', 'email', required=True,
               placeholder='Enter your email address', spanishPlaceholder='Ingrese su correo electrónico'),
            _q('phone', 'tel', 'Phone Number', 'Número de Teléfono', 'phone', required=True,
               placeholder='Enter your phone number', spanishPlaceholder='Ingrese su número de teléfono'),
            _q('address', 'address', 'Address', 'Dirección', subQuestions=_address('address')),
        ],
    },
    {
        'id': 'emergencyContact',
        'title': 'Emergency Contact',
        'spanishTitle': 'Contacto de Emergencia',
        'questions': [
            _q('emergencyContactName', 'text', 'Emergency Contact Name', 'Nombre del Contacto de Emergencia',
               'emergencyContact.name'),
            _q('emergencyContactRelationship', 'text', 'Relationship to You', 'Relación con Usted',
               'emergencyContact.relationship'),
            _q('emergencyContactPhone', 'tel', 'Emergency Contact Phone', 'Teléfono del Contacto de Emergencia',
               'emergencyContact.phone'),
        ],
    },
    {
        'id': 'insurance',
        'title': 'Insurance Information',
        'spanishTitle': 'Información del Seguro',
        'questions': [
            _q('hasInsurance', 'radio', 'Do you have medical insurance?', '¿Tiene seguro médico?',
               'hasInsurance', options=YES_NO),
            _q('insuranceInfo', 'nested', 'Insurance Details', 'Detalles del Seguro', subQuestions=[
                _q('insuranceProvider', 'text', 'Insurance Provider', 'Proveedor de Seguro', 'insurance.provider'),
                _q('insurancePolicyNumber', 'text', 'Policy Number', 'Número de Póliza', 'insurance.policyNumber'),
                _q('insuranceGroupNumber', 'text', 'Group Number', 'Número de Grupo', 'insurance.groupNumber'),
            ]),
        ],
    },
    {
        'id': 'attorney',
        'title': 'Attorney Information',
        'spanishTitle': 'Información del Abogado',
        'questions': [
            _q('hasAttorney', 'radio', 'Do you have an attorney for this case?', '¿Tiene un abogado para este caso?',
               'hasAttorney', options=YES_NO),
            _q('attorneyInfo', 'nested', 'Attorney Details', 'Detalles del Abogado', subQuestions=[
                _q('attorneyName', 'text', 'Attorney Name', 'Nombre del Abogado', 'attorney.name'),
                _q('attorneyFirm', 'text', 'Law Firm', 'Bufete de Abogados', 'attorney.firm'),
                _q('attorneyPhone', 'tel', 'Attorney Phone', 'Teléfono del Abogado', 'attorney.phone'),
                _q('attorneyEmail', 'email', 'Attorney Email', 'Correo Electrónico del Abogado', 'attorney.email'),
                _q('attorneyAddress', 'address', 'Attorney Address', 'Dirección del Abogado',
                   subQuestions=_address('attorney.address', 'attorney', country=False)),
            ]),
        ],
    },
    {
        'id': 'medicalHistory',
        'title': 'Medical History',
        'spanishTitle': 'Historia Médica',
        'questions': [
            _q('allergies', 'array', 'Allergies', 'Alergias', 'medicalHistory.allergies', maxItems=10),
            _q('medications', 'array', 'Current Medications', 'Medicamentos Actuales',
               'medicalHistory.medications', maxItems=10),
            _q('conditions', 'array', 'Medical Conditions', 'Condiciones Médicas',
               'medicalHistory.conditions', maxItems=10),
            _q('surgeries', 'array', 'Past Surgeries', 'Cirugías Previas', 'medicalHistory.surgeries', maxItems=10),
            _q('familyHistory', 'array', 'Family Medical History', 'Historia Médica Familiar',
               'medicalHistory.familyHistory', maxItems=10),
        ],
    },
    {
        'id': 'injuryInfo',
        'title': 'Injury Information',
        'spanishTitle': 'Información de la Lesión',
        'questions': [
            _q('injuryDate', 'date', 'Date of Injury', 'Fecha de la Lesión', 'injuryDate'),
            _q('injuryDescription', 'textarea', 'Describe how the injury occurred',
               'Describa cómo ocurrió la lesión', 'injuryDescription'),
        ],
    },
    {
        'id': 'subjectiveInfo',
        'title': 'Subjective Information',
        'spanishTitle': 'Información Subjetiva',
        'questions': [
            _q('bodyParts', 'array', 'Affected Body Parts', 'Partes del Cuerpo Afectadas', 'subjective.bodyPart',
               maxItems=10, subQuestions=[
                   _q('part', 'text', 'Body Part', 'Parte del Cuerpo', 'part'),
                   _q('side', 'select', 'Side', 'Lado', 'side', options=[
                       _opt('left', 'Left', 'Izquierdo'),
                       _opt('right', 'Right', 'Derecho'),
                       _opt('both', 'Both', 'Ambos'),
                       _opt('n/a', 'N/A', 'N/A'),
                   ]),
               ]),
            _q('severity', 'select', 'Pain Severity (1-10)', 'Severidad del Dolor (1-10)', 'subjective.severity',
               options=[_opt(str(n), str(n), str(n)) for n in range(1, 11)]),
            _q('quality', 'checkbox', 'Pain Quality', 'Calidad del Dolor', 'subjective.quality', options=[
                _opt('sharp', 'Sharp', 'Agudo'),
                _opt('dull', 'Dull', 'Sordo'),
                _opt('aching', 'Aching', 'Dolorido'),
                _opt('burning', 'Burning', 'Ardiente'),
                _opt('throbbing', 'Throbbing', 'Pulsante'),
                _opt('stabbing', 'Stabbing', 'Punzante'),
                _opt('tingling', 'Tingling', 'Hormigueo'),
                _opt('numbness', 'Numbness', 'Entumecimiento'),
            ]),
            _q('timing', 'select', 'Timing', 'Frecuencia', 'subjective.timing', options=[
                _opt('constant', 'Constant', 'Constante'),
                _opt('intermittent', 'Intermittent', 'Intermitente'),
                _opt('worse-morning', 'Worse in the morning', 'Peor en la mañana'),
                _opt('worse-evening', 'Worse in the evening', 'Peor en la noche'),
                _opt('worse-activity', 'Worse with activity', 'Peor con actividad'),
                _opt('worse-rest', 'Worse with rest', 'Peor con descanso'),
            ]),
            _q('context', 'textarea', 'Context', 'Contexto', 'subjective.context'),
            _q('exacerbatedBy', 'checkbox', 'Exacerbated By', 'Exacerbado Por', 'subjective.exacerbatedBy', options=[
                _opt('sitting', 'Sitting', 'Sentarse'),
                _opt('standing', 'Standing', 'Estar de pie'),
                _opt('walking', 'Walking', 'Caminar'),
                _opt('bending', 'Bending', 'Inclinarse'),
                _opt('lifting', 'Lifting', 'Levantar'),
                _opt('twisting', 'Twisting', 'Torcer'),
                _opt('reaching', 'Reaching', 'Alcanzar'),
                _opt('pushing', 'Pushing', 'Empujar'),
                _opt('pulling', 'Pulling', 'Jalar'),
            ]),
            _q('symptoms', 'checkbox', 'Associated Symptoms', 'Síntomas Asociados', 'subjective.symptoms', options=[
                _opt('headache', 'Headache', 'Dolor de cabeza'),
                _opt('dizziness', 'Dizziness', 'Mareo'),
                _opt('nausea', 'Nausea', 'Náusea'),
                _opt('fatigue', 'Fatigue', 'Fatiga'),
                _opt('weakness', 'Weakness', 'Debilidad'),
                _opt('stiffness', 'Stiffness', 'Rigidez'),
                _opt('swelling', 'Swelling', 'Hinchazón'),
                _opt('limited-mobility', 'Limited mobility', 'Movilidad limitada'),
            ]),
            _q('radiatingTo', 'text', 'Radiating To', 'Irradiando A', 'subjective.radiatingTo'),
            # flag checkboxes store one boolean per option under flagPrefix
            _q('radiatingDirection', 'checkbox', 'Radiating Direction', 'Dirección de Irradiación',
               flagPrefix='subjective', options=[
                   _opt('radiatingRight', 'Right', 'Derecha'),
                   _opt('radiatingLeft', 'Left', 'Izquierda'),
               ]),
            _q('sciatica', 'checkbox', 'Sciatica', 'Ciática', flagPrefix='subjective', options=[
                _opt('sciaticaRight', 'Right', 'Derecha'),
                _opt('sciaticaLeft', 'Left', 'Izquierda'),
            ]),
            _q('notes', 'textarea', 'Additional Notes', 'Notas Adicionales', 'subjective.notes'),
        ],
    },
    {
        'id': 'doctorAssignment',
        'title': 'Doctor Assignment',
        'spanishTitle': 'Asignación de Doctor',
        'questions': [
            _q('assignedDoctor', 'select', 'Assigned Doctor', 'Doctor Asignado', 'assignedDoctor',
               required=True, optionsSource='doctors', options=[]),
        ],
    },
    {
        'id': 'review',
        'title': 'Review Information',
        'spanishTitle': 'Revisar Información',
        'questions': [],
    },
]


def _localize(question: Dict[str, Any], spanish: bool) -> Dict[str, Any]:
    out = {k: v for k, v in question.items() if k not in ('label', 'spanishLabel', 'placeholder',
                                                           'spanishPlaceholder', 'options', 'subQuestions')}
    out['label'] = question['spanishLabel'] if spanish else question['label']
    placeholder = question.get('spanishPlaceholder') if spanish else None
    placeholder = placeholder or question.get('placeholder')
    if placeholder:
        out['placeholder'] = placeholder
    if 'options' in question:
        out['options'] = [
            {'value': o['value'], 'label': o['spanishLabel'] if spanish else o['label']}
            for o in question['options']
        ]
    if 'subQuestions' in question:
        out['subQuestions'] = [_localize(q, spanish) for q in question['subQuestions']]
    return out


def localized_sections(language: str = 'english', doctors: Optional[List[Dict[str, str]]] = None) -> List[Dict[str, Any]]:
    """Return the wizard sections with labels resolved to ``language``.

    ``doctors`` (``[{'value', 'label'}]``) fills the dynamically sourced
    doctor options.
    """
    spanish = language == 'spanish'
    sections = []
    for section in INTAKE_SECTIONS:
        questions = []
        for question in section['questions']:
            loc = _localize(question, spanish)
            if question.get('optionsSource') == 'doctors':
                loc['options'] = list(doctors or [])
            questions.append(loc)
        sections.append({
            'id': section['id'],
            'title': section['spanishTitle'] if spanish else section['title'],
            'questions': questions,
        })
    return sections


def _join(prefix: str, path: str) -> str:
    return f'{prefix}.{path}' if prefix else path


def iter_fields(sections: Optional[List[Dict[str, Any]]] = None) -> Iterator[Tuple[Dict[str, Any], str]]:
    """Yield ``(question, absolute_path)`` for every answerable question.

    Address and nested groups are flattened into their sub-questions.
    Array questions are yielded whole; their sub-questions are relative to
    each array element.  Flag checkboxes yield one pseudo path per option.
    """
    for section in sections if sections is not None else INTAKE_SECTIONS:
        for question in section['questions']:
            yield from _iter_question(question, '')


def _iter_question(question: Dict[str, Any], prefix: str) -> Iterator[Tuple[Dict[str, Any], str]]:
    if question['type'] in CONTAINER_TYPES:
        for sub in question.get('subQuestions', []):
            yield from _iter_question(sub, prefix)
        return
    if question.get('flagPrefix'):
        for option in question['options']:
            yield question, _join(question['flagPrefix'], option['value'])
        return
    yield question, _join(prefix, question['path'])


def is_iso_date(value: Any) -> bool:
    """True for a whole ``YYYY-MM-DD`` string or a full ISO 8601 datetime."""
    if not isinstance(value, str):
        return False
    try:
        return (parse_date(value) or parse_datetime(value)) is not None
    except ValueError:
        return False


def _is_empty(value: Any) -> bool:
    return value is None or value == '' or value == [] or value == {}


def _check_value(question: Dict[str, Any], value: Any, path: str, errors: Dict[str, str]) -> None:
    qtype = question['type']
    if qtype in ('text', 'textarea'):
        if not isinstance(value, str):
            errors[path] = 'must be a string'
    elif qtype == 'email':
        if not isinstance(value, str) or not EMAIL_RE.match(value):
            errors[path] = 'invalid email address'
    elif qtype == 'tel':
        if not isinstance(value, str) or not PHONE_RE.match(value):
            errors[path] = 'invalid phone number'
    elif qtype == 'date':
        if not is_iso_date(value):
            errors[path] = 'invalid date, expected YYYY-MM-DD'
    elif qtype == 'number':
        if isinstance(value, bool):
            errors[path] = 'must be a number'
        elif not isinstance(value, (int, float)):
            try:
                float(value)
            except (TypeError, ValueError):
                errors[path] = 'must be a number'
    elif qtype in ('select', 'radio'):
        if question.get('optionsSource'):
            return
        allowed = {o['value'] for o in question.get('options', [])}
        if not isinstance(value, str) or value not in allowed:
            errors[path] = f"must be one of: {', '.join(sorted(allowed))}"
    elif qtype == 'checkbox':
        if question.get('flagPrefix'):
            if not isinstance(value, bool):
                errors[path] = 'must be true or false'
            return
        allowed = {o['value'] for o in question.get('options', [])}
        if not isinstance(value, list) or any(not isinstance(v, str) or v not in allowed for v in value):
            errors[path] = f"must be a list of: {', '.join(sorted(allowed))}"
    elif qtype == 'array':
        _check_array(question, value, path, errors)


def _check_array(question: Dict[str, Any], value: Any, path: str, errors: Dict[str, str]) -> None:
    if not isinstance(value, list):
        errors[path] = 'must be a list'
        return
    max_items = question.get('maxItems')
    if max_items and len(value) > max_items:
        errors[path] = f'at most {max_items} items allowed'
        return
    subs = question.get('subQuestions')
    for i, item in enumerate(value):
        item_path = f'{path}[{i}]'
        if not subs:
            if item is not None and not isinstance(item, str):
                errors[item_path] = 'must be a string'
            continue
        if item is None:
            continue
        if not isinstance(item, dict):
            errors[item_path] = 'must be an object'
            continue
        for sub in subs:
            sub_value = item.get(sub['path'])
            if not _is_empty(sub_value):
                _check_value(sub, sub_value, f"{item_path}.{sub['path']}", errors)


def validate_intake(document: Dict[str, Any], *, public: bool = False, require: bool = True) -> Dict[str, str]:
    """Validate a patient document against the intake schema.

    Returns ``{path: message}``; an empty dict means the document is valid.
    Staff documents must answer every question flagged ``required``
    (doctor assignment is resolved by the caller); public submissions only
    need the contact essentials.  ``require=False`` checks value shapes
    only, which is what partial field updates use.
    """
    errors: Dict[str, str] = {}
    if not isinstance(document, dict):
        return {'': 'document must be an object'}
    for question, path in iter_fields():
        value = get_path(document, path)
        if _is_empty(value):
            if not require:
                continue
            needed = path in PUBLIC_REQUIRED if public else (
                question.get('required') and not question.get('optionsSource')
            )
            if needed:
                errors[path] = 'this field is required'
            continue
        _check_value(question, value, path, errors)
    return errors


def default_document() -> Dict[str, Any]:
    """Empty document pre-filled with schema defaults."""
    doc: Dict[str, Any] = {}
    for question, path in iter_fields():
        if 'defaultValue' in question:
            set_path(doc, path, copy.deepcopy(question['defaultValue']))
    return doc
