import pytest

from core.paths import PathError, apply_changes, delete_path, get_path, parse_path, set_path


def test_parse_keys_and_indexes():
    assert parse_path('medicalHistory.allergies[0]') == ['medicalHistory', 'allergies', 0]
    assert parse_path('subjective.bodyPart[2].side') == ['subjective', 'bodyPart', 2, 'side']
    assert parse_path('matrix[1][3]') == ['matrix', 1, 3]


@pytest.mark.parametrize('path', ['', 'a..b', 'a.', '.a', 'a[x]', 'a[0', 'a]', 'a.[0]', 'a[0]b'])
def test_parse_rejects_malformed(path):
    with pytest.raises(PathError):
        parse_path(path)


def test_get_path_missing_returns_default():
    doc = {'address': {'city': 'Miami'}, 'list': [1]}
    assert get_path(doc, 'address.city') == 'Miami'
    assert get_path(doc, 'address.zip') is None
    assert get_path(doc, 'list[5]', 'x') == 'x'
    assert get_path(doc, 'address.city.name') is None


def test_set_path_creates_containers_and_pads_lists():
    doc = {}
    set_path(doc, 'medicalHistory.allergies[2]', 'Latex')
    assert doc == {'medicalHistory': {'allergies': [None, None, 'Latex']}}
    set_path(doc, 'subjective.bodyPart[0].side', 'left')
    assert doc['subjective'] == {'bodyPart': [{'side': 'left'}]}


def test_set_path_through_scalar_raises():
    doc = {'firstName': 'Ana'}
    with pytest.raises(PathError):
        set_path(doc, 'firstName.first', 'x')
    with pytest.raises(PathError):
        set_path(doc, 'firstName[0]', 'x')


def test_delete_path():
    doc = {'a': {'b': [1, 2, 3]}}
    assert delete_path(doc, 'a.b[1]') is True
    assert doc == {'a': {'b': [1, 3]}}
    assert delete_path(doc, 'a.c') is False
    assert delete_path(doc, 'x.y') is False


def test_apply_changes_leaves_input_untouched():
    doc = {'address': {'city': 'Miami'}}
    out = apply_changes(doc, {'address.city': 'Tampa', 'attorney.name': 'Saul'})
    assert doc == {'address': {'city': 'Miami'}}
    assert out == {'address': {'city': 'Tampa'}, 'attorney': {'name': 'Saul'}}
