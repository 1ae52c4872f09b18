from core import intake


def test_iter_fields_flattens_containers_and_flags():
    paths = {path for _, path in intake.iter_fields()}
    assert 'address.city' in paths
    assert 'attorney.address.city' in paths
    assert 'insurance.provider' in paths
    assert 'subjective.radiatingRight' in paths
    assert 'subjective.sciaticaLeft' in paths
    assert 'medicalHistory.allergies' in paths


def test_valid_document_has_no_errors(intake_document):
    assert intake.validate_intake(intake_document) == {}


def test_required_fields_reported_by_path():
    errors = intake.validate_intake({'firstName': 'Ana'})
    assert 'lastName' in errors
    assert 'email' in errors
    assert 'firstName' not in errors
    # doctor assignment is resolved by the caller
    assert 'assignedDoctor' not in errors


def test_public_submission_requires_only_contact_essentials():
    errors = intake.validate_intake({'firstName': 'Ana'}, public=True)
    assert set(errors) == {'lastName', 'email'}


def test_shape_errors(intake_document):
    intake_document.update({
        'email': 'not-an-email',
        'gender': 'robot',
        'subjective': {'quality': ['sharp', 'weird'], 'radiatingLeft': 'yes', 'bodyPart': [{'side': 'up'}]},
        'medicalHistory': {'allergies': ['a'] * 11},
    })
    errors = intake.validate_intake(intake_document)
    assert errors['email'] == 'invalid email address'
    assert errors['gender'].startswith('must be one of')
    assert 'subjective.quality' in errors
    assert errors['subjective.radiatingLeft'] == 'must be true or false'
    assert 'subjective.bodyPart[0].side' in errors
    assert errors['medicalHistory.allergies'] == 'at most 10 items allowed'


def test_require_false_skips_missing_answers():
    assert intake.validate_intake({'phone': 'abc'}, require=False) == {'phone': 'invalid phone number'}


def test_localized_sections_spanish_and_doctor_options():
    doctors = [{'value': '7', 'label': 'Dr. Who'}]
    sections = intake.localized_sections('spanish', doctors=doctors)
    personal = next(s for s in sections if s['id'] == 'personalInfo')
    assert personal['title'] == 'Información Personal'
    first = personal['questions'][0]
    assert first['label'] == 'Nombre'
    assert first['placeholder'] == 'Ingrese su nombre'
    assignment = next(s for s in sections if s['id'] == 'doctorAssignment')
    assert assignment['questions'][0]['options'] == doctors


def test_default_document():
    doc = intake.default_document()
    assert doc['address']['country'] == 'USA'


def test_structured_values_for_choice_questions_are_errors(intake_document):
    intake_document.update({
        'gender': ['female'],
        'preferredLanguage': {'lang': 'spanish'},
        'subjective': {'quality': [{'x': 1}], 'timing': ['constant']},
    })
    errors = intake.validate_intake(intake_document)
    assert errors['gender'].startswith('must be one of')
    assert errors['preferredLanguage'].startswith('must be one of')
    assert errors['subjective.timing'].startswith('must be one of')
    assert errors['subjective.quality'].startswith('must be a list of')


def test_dates_must_be_whole_iso_values(intake_document):
    assert intake.is_iso_date('2020-01-01')
    assert intake.is_iso_date('2020-01-01T09:30:00Z')
    assert not intake.is_iso_date('2020-01-01xyz')
    assert not intake.is_iso_date('2020-02-30')
    assert not intake.is_iso_date(20200101)
    intake_document['dateOfBirth'] = '1990-04-02 and more'
    assert intake.validate_intake(intake_document) == {'dateOfBirth': 'invalid date, expected YYYY-MM-DD'}
