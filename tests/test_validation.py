import pytest
from datetime import date

from services.validation import validate_batch, validate_workout

TODAY = date(2026, 10, 19)

def valid_input(**overrides):
    raw = {
        'exercise': '  Bench Press ',
        'sets': '3',
        'reps': '10',
        'weight': '135',
        'workout_date': '2026-10-19',
        'notes': '  felt strong ',
    }
    raw.update(overrides)
    return raw

def issue_codes(result):
    return {issue.field: issue.code for issue in result.issues}

def test_valid_form_strings_are_coerced():
    result = validate_workout(valid_input(), today=TODAY, allow_future_dates=False)

    assert result.ok
    draft = result.draft
    assert draft.exercise == 'Bench Press'
    assert (draft.sets, draft.reps, draft.weight) == (3, 10, 135)
    assert draft.workout_date == TODAY
    assert draft.notes == 'felt strong'

def test_json_numbers_are_accepted():
    result = validate_workout(valid_input(sets=3, reps=10, weight=135.0))
    assert result.ok
    assert result.draft.weight == 135

def test_blank_notes_become_none():
    result = validate_workout(valid_input(notes='   '))
    assert result.ok
    assert result.draft.notes is None

def test_missing_fields_are_reported_per_field():
    result = validate_workout({'exercise': '', 'reps': '10'})

    assert not result.ok
    assert issue_codes(result) == {
        'exercise': 'missing',
        'sets': 'missing',
        'weight': 'missing',
        'workout_date': 'missing',
    }

@pytest.mark.parametrize("value, code", [
    ('0', 'not_positive'),
    ('-5', 'not_positive'),
    ('abc', 'not_a_number'),
    ('2.5', 'not_a_number'),
    ('nan', 'not_a_number'),
    (True, 'not_a_number'),
])
def test_bad_counts(value, code):
    result = validate_workout(valid_input(sets=value))
    assert issue_codes(result) == {'sets': code}

@pytest.mark.parametrize("value, expected", [
    ('12345678901234567891', 12345678901234567891),
    (' 7 ', 7),
    ('3.0', 3),
    (4.0, 4),
])
def test_counts_are_coerced_exactly(value, expected):
    result = validate_workout(valid_input(reps=value))
    assert result.ok
    assert result.draft.reps == expected

def test_every_bad_field_is_reported_together():
    result = validate_workout(valid_input(sets='0', reps='x', weight='-1'))
    assert issue_codes(result) == {'sets': 'not_positive', 'reps': 'not_a_number', 'weight': 'not_positive'}

def test_invalid_date():
    result = validate_workout(valid_input(workout_date='19/10/2026'))
    assert issue_codes(result) == {'workout_date': 'invalid_date'}

def test_future_date_rejected_when_policy_forbids():
    result = validate_workout(valid_input(workout_date='2026-10-20'), today=TODAY, allow_future_dates=False)
    assert issue_codes(result) == {'workout_date': 'future_date'}

def test_future_date_rejected_without_explicit_policy():
    result = validate_workout(valid_input(workout_date='2026-10-20'), today=TODAY)
    assert issue_codes(result) == {'workout_date': 'future_date'}

    drafts, problems = validate_batch([valid_input(workout_date='2026-10-20')], today=TODAY)
    assert drafts == []
    assert problems[0]['fields'][0]['code'] == 'future_date'

def test_future_date_allowed_by_policy():
    result = validate_workout(valid_input(workout_date='2026-10-20'), today=TODAY, allow_future_dates=True)
    assert result.ok

def test_legacy_date_key_and_iso_datetime():
    raw = valid_input()
    del raw['workout_date']
    raw['date'] = '2026-10-18T07:30:00.000Z'

    result = validate_workout(raw)
    assert result.ok
    assert result.draft.workout_date == date(2026, 10, 18)

def test_non_object_is_rejected():
    result = validate_workout(['Bench Press', 3, 10, 135])
    assert issue_codes(result) == {'workout': 'invalid'}

def test_batch_collects_problems_by_index():
    entries = [valid_input(), valid_input(reps=''), 'junk', valid_input(exercise='Squat')]

    drafts, problems = validate_batch(entries, today=TODAY, allow_future_dates=False)

    assert [d.exercise for d in drafts] == ['Bench Press', 'Squat']
    assert [p['index'] for p in problems] == [1, 2]
    assert problems[0]['fields'][0]['field'] == 'reps'
    assert problems[0]['fields'][0]['code'] == 'missing'
