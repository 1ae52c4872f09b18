"""
Form template interpreter.

A template is an ordered list of typed items built in the form builder.
This module validates and normalizes those items when a template is
saved, and checks patient answers against them when a response is
submitted.
"""
from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, List

import bleach
from rest_framework.exceptions import ValidationError

from core.intake import is_iso_date

ITEM_TYPES = (
    'blank', 'demographics', 'primaryInsurance', 'secondaryInsurance', 'allergies',
    'text', 'dropdown', 'checkbox', 'radio', 'date', 'matrix',
)
OPTION_TYPES = ('dropdown', 'checkbox', 'radio')
MATRIX_TYPES = ('matrix', 'allergies')
FIELD_GROUP_TYPES = {
    'demographics': 'demographicFields',
    'primaryInsurance': 'insuranceFields',
    'secondaryInsurance': 'insuranceFields',
}
COLUMN_TYPES = ('text', 'dropdown')
FIELD_TYPES = ('text', 'dropdown', 'date')

US_STATES = [
    'AK', 'AL', 'AR', 'AZ', 'CA', 'CO', 'CT', 'DC', 'DE', 'FL', 'GA', 'HI', 'IA', 'ID', 'IL', 'IN', 'KS',
    'KY', 'LA', 'MA', 'MD', 'ME', 'MI', 'MN', 'MO', 'MS', 'MT', 'NC', 'ND', 'NE', 'NH', 'NJ', 'NM', 'NV',
    'NY', 'OH', 'OK', 'OR', 'PA', 'RI', 'SC', 'SD', 'TN', 'TX', 'UT', 'VA', 'VT', 'WA', 'WI', 'WV', 'WY',
]


def _field(name: str, ftype: str = 'text', required: bool = False, options=None) -> Dict[str, Any]:
    return {'fieldName': name, 'fieldType': ftype, 'required': required, 'options': list(options or [])}


DEMOGRAPHIC_FIELDS = [
    _field('First Name', required=True),
    _field('Middle Initials'),
    _field('Last Name', required=True),
    _field('Date of Birth', 'date', True),
    _field('Gender', 'dropdown', True, ['Female', 'Male', 'Non-Binary']),
    _field('Sex', 'dropdown', True, ['Female', 'Male', 'Intersex']),
    _field('Marital Status', 'dropdown', False,
           ['Single', 'Married', 'Domestic Partner', 'Separated', 'Divorced', 'Widowed']),
    _field('Street Address', required=True),
    _field('Apt/Unit #'),
    _field('City', required=True),
    _field('State', 'dropdown', True, US_STATES),
    _field('Zip Code', required=True),
    _field('Mobile Phone', required=True),
    _field('Home Phone'),
    _field('Work Phone'),
    _field('Email', required=True),
    _field('Preferred contact method', 'dropdown', True, ['Mobile Phone', 'Home Phone', 'Work Phone', 'Email']),
]


def _insurance_fields(company_label: str) -> List[Dict[str, Any]]:
    return [
        _field(company_label, required=True),
        _field('Member ID / Policy #', required=True),
        _field('Group Number'),
        _field('Client Relationship to Insured', 'dropdown', True, ['Self', 'Spouse', 'Child', 'Other']),
        _field('Insured Name'),
        _field('Insured Phone #'),
        _field('Insured Date of Birth', 'date'),
        _field('Insured Sex', 'dropdown', False, ['Female', 'Male']),
        _field('Insured Street Address'),
        _field('Insured City'),
        _field('Insured State', 'dropdown', False, US_STATES),
        _field('Zip Code'),
    ]


DEFAULT_FIELDS = {
    'demographics': DEMOGRAPHIC_FIELDS,
    'primaryInsurance': _insurance_fields('Primary Insurance Company'),
    'secondaryInsurance': _insurance_fields('Secondary Insurance Company'),
}

ALLERGIES_MATRIX = {
    'rowHeader': '',
    'columnHeaders': ['Allergic To', 'Allergy Type', 'Reaction', 'Severity', 'Date of Onset', 'End Date'],
    'columnTypes': ['text', 'dropdown', 'dropdown', 'dropdown', 'text', 'text'],
    'rows': ['1', '2', '3'],
    'dropdownOptions': [
        [],
        ['Food', 'Medication', 'Environmental', 'Other'],
        ['Rash', 'Hives', 'Swelling', 'Anaphylaxis', 'GI Issues', 'Respiratory', 'Other'],
        ['Mild', 'Moderate', 'Severe', 'Life-threatening'],
        [],
        [],
    ],
    'displayTextBox': True,
}


def _clean(value: Any) -> str:
    return bleach.clean('' if value is None else str(value).strip(), strip=True)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [_clean(v) for v in value if _clean(v)]


def _normalize_matrix(item: Dict[str, Any], errors: List[str]) -> Dict[str, Any]:
    raw = item.get('matrix')
    if raw is None and item['type'] == 'allergies':
        raw = ALLERGIES_MATRIX
    if not isinstance(raw, dict):
        errors.append('matrix is required')
        return {}
    headers = _string_list(raw.get('columnHeaders'))
    rows = _string_list(raw.get('rows'))
    if not headers:
        errors.append('matrix.columnHeaders must not be empty')
    if not rows:
        errors.append('matrix.rows must not be empty')
    types = raw.get('columnTypes') or ['text'] * len(headers)
    if not isinstance(types, list):
        errors.append('matrix.columnTypes must be a list')
        types = ['text'] * len(headers)
    elif len(types) != len(headers):
        errors.append('matrix.columnTypes must align with columnHeaders')
    elif any(t not in COLUMN_TYPES for t in types):
        errors.append(f"matrix.columnTypes must be one of: {', '.join(COLUMN_TYPES)}")
    raw_options = raw.get('dropdownOptions') or []
    if not isinstance(raw_options, list):
        errors.append('matrix.dropdownOptions must be a list')
        raw_options = []
    options = [_string_list(o) for o in raw_options]
    options += [[] for _ in range(len(headers) - len(options))]
    options = options[:len(headers)]
    for idx, (ctype, opts) in enumerate(zip(types, options)):
        if ctype == 'dropdown' and not opts:
            errors.append(f'matrix column {idx} is a dropdown without options')
    return {
        'rowHeader': _clean(raw.get('rowHeader')),
        'columnHeaders': headers,
        'columnTypes': types,
        'rows': rows,
        'dropdownOptions': options,
        'displayTextBox': bool(raw.get('displayTextBox', False)),
    }


def _normalize_fields(item: Dict[str, Any], key: str, errors: List[str]) -> List[Dict[str, Any]]:
    raw = item.get(key)
    if raw is None:
        return copy.deepcopy(DEFAULT_FIELDS[item['type']])
    if not isinstance(raw, list) or not raw:
        errors.append(f'{key} must be a non-empty list')
        return []
    fields = []
    for f in raw:
        name = _clean(f.get('fieldName')) if isinstance(f, dict) else ''
        if not name:
            errors.append(f'{key} entries need a fieldName')
            continue
        ftype = f.get('fieldType') or 'text'
        if ftype not in FIELD_TYPES:
            errors.append(f'{name}: unknown fieldType {ftype!r}')
            continue
        opts = _string_list(f.get('options'))
        if ftype == 'dropdown' and not opts:
            errors.append(f'{name}: dropdown fields need options')
        fields.append(_field(name, ftype, bool(f.get('required', False)), opts))
    return fields


def normalize_items(items: Any) -> List[Dict[str, Any]]:
    """Validate template items and fill in defaults.

    Raises ``ValidationError({'items': {index: [messages]}})`` when any
    item is malformed.
    """
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError({'items': 'must be a list'})
    result: List[Dict[str, Any]] = []
    problems: Dict[str, List[str]] = {}
    seen_ids = set()
    for index, raw in enumerate(items):
        errors: List[str] = []
        if not isinstance(raw, dict):
            problems[str(index)] = ['item must be an object']
            continue
        itype = raw.get('type')
        if itype not in ITEM_TYPES:
            problems[str(index)] = [f"type must be one of: {', '.join(ITEM_TYPES)}"]
            continue
        text = _clean(raw.get('questionText'))
        if not text:
            errors.append('questionText is required')
        item_id = str(raw.get('id') or '').strip() or _new_id()
        if item_id in seen_ids:
            errors.append(f'duplicate id {item_id!r}')
        seen_ids.add(item_id)
        item: Dict[str, Any] = {
            'id': item_id,
            'type': itype,
            'questionText': text,
            'isRequired': bool(raw.get('isRequired', False)),
            'multipleLines': bool(raw.get('multipleLines', False)),
            'placeholder': _clean(raw.get('placeholder')),
            'instructions': _clean(raw.get('instructions')),
            'options': _string_list(raw.get('options')),
        }
        if itype in OPTION_TYPES and not item['options']:
            errors.append(f'{itype} questions need at least one option')
        if itype in MATRIX_TYPES:
            item['matrix'] = _normalize_matrix(raw, errors)
        if itype in FIELD_GROUP_TYPES:
            key = FIELD_GROUP_TYPES[itype]
            item[key] = _normalize_fields(raw, key, errors)
        if errors:
            problems[str(index)] = errors
        result.append(item)
    if problems:
        raise ValidationError({'items': problems})
    return result


def duplicate_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    copied = copy.deepcopy(items or [])
    for item in copied:
        item['id'] = _new_id()
    return copied


def _has_answer(response: Dict[str, Any]) -> bool:
    answer = response.get('answer')
    if response.get('matrixResponses'):
        return True
    if isinstance(answer, dict):
        return any(v not in (None, '') for v in answer.values())
    return answer not in (None, '', [])


def _check_fields(item: Dict[str, Any], answer: Any, complete: bool, errors: List[str]) -> None:
    if answer in (None, ''):
        answer = {}
    if not isinstance(answer, dict):
        errors.append('answer must be an object keyed by field name')
        return
    fields = {f['fieldName']: f for f in item.get(FIELD_GROUP_TYPES[item['type']], [])}
    for name, value in answer.items():
        field = fields.get(name)
        if field is None:
            errors.append(f'unknown field {name!r}')
        elif value in (None, ''):
            continue
        elif field['fieldType'] == 'dropdown' and value not in field['options']:
            errors.append(f'{name}: {value!r} is not an allowed option')
        elif field['fieldType'] == 'date' and not is_iso_date(value):
            errors.append(f'{name}: invalid date')
    if complete:
        for name, field in fields.items():
            if field['required'] and answer.get(name) in (None, ''):
                errors.append(f'{name} is required')


def _check_matrix(item: Dict[str, Any], response: Dict[str, Any], errors: List[str]) -> None:
    matrix = item.get('matrix') or {}
    cells = response.get('matrixResponses') or []
    if not isinstance(cells, list):
        errors.append('matrixResponses must be a list')
        return
    n_rows = len(matrix.get('rows', []))
    n_cols = len(matrix.get('columnHeaders', []))
    for cell in cells:
        if not isinstance(cell, dict):
            errors.append('matrix cells must be objects')
            continue
        row, col = cell.get('rowIndex'), cell.get('columnIndex')
        if not isinstance(row, int) or not 0 <= row < n_rows:
            errors.append(f'rowIndex {row!r} out of range')
            continue
        if not isinstance(col, int) or not 0 <= col < n_cols:
            errors.append(f'columnIndex {col!r} out of range')
            continue
        value = cell.get('value')
        if matrix['columnTypes'][col] == 'dropdown' and value not in (None, ''):
            if value not in matrix['dropdownOptions'][col]:
                errors.append(f'row {row} column {col}: {value!r} is not an allowed option')


def _check_answer(item: Dict[str, Any], response: Dict[str, Any], complete: bool, errors: List[str]) -> None:
    itype = item['type']
    answer = response.get('answer')
    if itype in MATRIX_TYPES:
        _check_matrix(item, response, errors)
        return
    if itype in FIELD_GROUP_TYPES:
        _check_fields(item, answer, complete, errors)
        return
    if answer in (None, '', []):
        return
    if itype in ('blank', 'text'):
        if not isinstance(answer, str):
            errors.append('answer must be a string')
    elif itype in ('dropdown', 'radio'):
        if answer not in item['options']:
            errors.append(f'{answer!r} is not an allowed option')
    elif itype == 'checkbox':
        if not isinstance(answer, list) or any(a not in item['options'] for a in answer):
            errors.append('answer must be a list of allowed options')
    elif itype == 'date':
        if not is_iso_date(answer):
            errors.append('invalid date, expected YYYY-MM-DD')


def validate_answers(items: List[Dict[str, Any]], responses: Any, *, complete: bool) -> List[Dict[str, Any]]:
    """Check ``responses`` against template ``items`` and return them normalized.

    Each response names its ``questionId``; the question type and text are
    copied from the template.  With ``complete=True`` every required
    item must be answered.
    """
    if responses is None:
        responses = []
    if not isinstance(responses, list):
        raise ValidationError({'responses': 'must be a list'})
    by_id = {item['id']: item for item in items}
    problems: Dict[str, List[str]] = {}
    normalized: List[Dict[str, Any]] = []
    answered = set()
    seen = set()
    for index, raw in enumerate(responses):
        if not isinstance(raw, dict):
            problems[str(index)] = ['response must be an object']
            continue
        qid = str(raw.get('questionId') or '')
        item = by_id.get(qid)
        if item is None:
            problems[str(index)] = [f'unknown questionId {qid!r}']
            continue
        if qid in seen:
            problems[str(index)] = [f'question {qid!r} answered twice']
            continue
        seen.add(qid)
        errors: List[str] = []
        _check_answer(item, raw, complete, errors)
        if errors:
            problems[str(index)] = errors
            continue
        entry = {
            'questionId': qid,
            'questionType': item['type'],
            'questionText': item['questionText'],
            'answer': raw.get('answer'),
        }
        if item['type'] in MATRIX_TYPES:
            entry['matrixResponses'] = raw.get('matrixResponses') or []
        if _has_answer(entry):
            answered.add(qid)
        normalized.append(entry)
    if complete:
        for item in items:
            if item.get('isRequired') and item['id'] not in answered:
                problems[item['id']] = ['this question is required']
    if problems:
        raise ValidationError({'responses': problems})
    return normalized
