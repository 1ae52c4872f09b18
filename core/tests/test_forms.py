import pytest
from rest_framework.exceptions import ValidationError

from core.services import forms


def _items():
    return forms.normalize_items([
        {'id': 'q1', 'type': 'text', 'questionText': 'Reason for visit', 'isRequired': True},
        {'id': 'q2', 'type': 'radio', 'questionText': 'Smoker?', 'options': ['Yes', 'No']},
        {'id': 'q3', 'type': 'allergies', 'questionText': 'Allergies'},
        {'id': 'q4', 'type': 'demographics', 'questionText': 'About you'},
    ])


def test_normalize_fills_defaults():
    items = _items()
    assert [i['id'] for i in items] == ['q1', 'q2', 'q3', 'q4']
    allergies = items[2]['matrix']
    assert allergies['columnHeaders'][0] == 'Allergic To'
    assert allergies['columnTypes'][1] == 'dropdown'
    assert len(items[3]['demographicFields']) == len(forms.DEMOGRAPHIC_FIELDS)


def test_normalize_assigns_ids_and_strips_markup():
    items = forms.normalize_items([{'type': 'text', 'questionText': '<div>Name</div>'}])
    assert len(items[0]['id']) == 12
    assert items[0]['questionText'] == 'Name'


def test_normalize_reports_problems_by_index():
    with pytest.raises(ValidationError) as exc:
        forms.normalize_items([
            {'type': 'text', 'questionText': 'ok'},
            {'type': 'dropdown', 'questionText': 'Pick'},
            {'type': 'nope', 'questionText': 'x'},
            {'type': 'matrix', 'questionText': 'Grid', 'matrix': {'columnHeaders': ['a'], 'rows': []}},
        ])
    problems = exc.value.detail['items']
    assert set(problems) == {'1', '2', '3'}


def test_normalize_rejects_duplicate_ids():
    with pytest.raises(ValidationError):
        forms.normalize_items([
            {'id': 'same', 'type': 'text', 'questionText': 'a'},
            {'id': 'same', 'type': 'text', 'questionText': 'b'},
        ])


def test_duplicate_items_gets_new_ids():
    items = _items()
    copied = forms.duplicate_items(items)
    assert {i['id'] for i in copied}.isdisjoint({i['id'] for i in items})
    assert [i['questionText'] for i in copied] == [i['questionText'] for i in items]


def test_validate_answers_normalizes_entries():
    out = forms.validate_answers(_items(), [
        {'questionId': 'q1', 'answer': 'Back pain'},
        {'questionId': 'q3', 'matrixResponses': [{'rowIndex': 0, 'columnIndex': 1, 'value': 'Food'}]},
    ], complete=True)
    assert out[0] == {'questionId': 'q1', 'questionType': 'text', 'questionText': 'Reason for visit',
                      'answer': 'Back pain'}
    assert out[1]['matrixResponses'][0]['value'] == 'Food'


def test_validate_answers_requires_mandatory_when_complete():
    items = _items()
    assert forms.validate_answers(items, [], complete=False) == []
    with pytest.raises(ValidationError) as exc:
        forms.validate_answers(items, [], complete=True)
    assert 'q1' in exc.value.detail['responses']


def test_validate_answers_rejects_bad_values():
    with pytest.raises(ValidationError) as exc:
        forms.validate_answers(_items(), [
            {'questionId': 'q2', 'answer': 'Maybe'},
            {'questionId': 'q3', 'matrixResponses': [{'rowIndex': 9, 'columnIndex': 0, 'value': 'x'}]},
            {'questionId': 'q4', 'answer': {'Gender': 'Robot', 'Unknown': 'x'}},
            {'questionId': 'zz', 'answer': 'x'},
        ], complete=False)
    assert set(exc.value.detail['responses']) == {'0', '1', '2', '3'}


def test_validate_answers_rejects_repeated_question():
    with pytest.raises(ValidationError):
        forms.validate_answers(_items(), [
            {'questionId': 'q1', 'answer': 'a'},
            {'questionId': 'q1', 'answer': 'b'},
        ], complete=False)


@pytest.mark.parametrize('bad', [{'columnTypes': 5}, {'dropdownOptions': 5}])
def test_matrix_settings_must_be_lists(bad):
    matrix = {'columnHeaders': ['Name', 'Kind'], 'rows': ['1', '2'], **bad}
    with pytest.raises(ValidationError) as exc:
        forms.normalize_items([{'type': 'matrix', 'questionText': 'Grid', 'matrix': matrix}])
    assert set(exc.value.detail['items']) == {'0'}


def test_falsy_option_values_are_kept():
    items = forms.normalize_items([
        {'id': 'score', 'type': 'radio', 'questionText': 'Pain score', 'options': [0, 1, 2]},
        {'type': 'matrix', 'questionText': 'Grid', 'matrix': {'columnHeaders': [0, 'Notes'], 'rows': [False]}},
    ])
    assert items[0]['options'] == ['0', '1', '2']
    assert items[1]['matrix']['columnHeaders'] == ['0', 'Notes']
    assert items[1]['matrix']['rows'] == ['False']
    forms.validate_answers(items, [{'questionId': 'score', 'answer': '0'}], complete=False)


def test_date_answers_must_be_whole_iso_values():
    items = forms.normalize_items([{'id': 'd', 'type': 'date', 'questionText': 'When?'}])
    forms.validate_answers(items, [{'questionId': 'd', 'answer': '2024-05-01'}], complete=False)
    with pytest.raises(ValidationError):
        forms.validate_answers(items, [{'questionId': 'd', 'answer': '2024-05-01xyz'}], complete=False)
