# services/validation.py
"""
Workout submission validation.

Turns raw field values (form strings, JSON numbers, backup file entries)
into a WorkoutDraft or a list of field-specific issues. Pure: nothing is
assigned or persisted here, callers add id/user_id/created_at.
"""
import math
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from models.workout_schemas import FieldIssue, ValidationResult, WorkoutDraft
from utils.timezone_utils import parse_workout_date

REQUIRED_FIELDS = ('exercise', 'sets', 'reps', 'weight', 'workout_date')
COUNT_FIELDS = ('sets', 'reps', 'weight')

class _Invalid(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == '':
        return True
    return False

def coerce_positive_int(value: Any) -> int:
    """Coerce a raw count to an int > 0, raising _Invalid otherwise"""
    if isinstance(value, bool):
        raise _Invalid('not_a_number', 'must be a whole number')

    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().lstrip('+-').isdecimal():
        # Exact, floats lose precision above 2**53
        number = int(value.strip())
    else:
        try:
            as_float = float(value.strip() if isinstance(value, str) else value)
        except (TypeError, ValueError):
            raise _Invalid('not_a_number', 'must be a whole number')
        if not math.isfinite(as_float) or not as_float.is_integer():
            raise _Invalid('not_a_number', 'must be a whole number')
        number = int(as_float)

    if number <= 0:
        raise _Invalid('not_positive', 'must be greater than 0')
    return number

def _clean_notes(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None

def validate_workout(
    raw: Dict[str, Any],
    today: Optional[date] = None,
    allow_future_dates: bool = False,
) -> ValidationResult:
    """
    Validate one raw workout submission.

    Backup files written by older versions used `date` instead of
    `workout_date`, so that key is accepted too. Future dates are only
    rejected when `allow_future_dates` is off and `today` is given.
    """
    if not isinstance(raw, dict):
        return ValidationResult(issues=[
            FieldIssue(field='workout', code='invalid', message='workout must be an object')
        ])

    values = dict(raw)
    if _is_blank(values.get('workout_date')) and not _is_blank(values.get('date')):
        values['workout_date'] = values['date']

    issues: List[FieldIssue] = []
    cleaned: Dict[str, Any] = {}

    for field in REQUIRED_FIELDS:
        if _is_blank(values.get(field)):
            issues.append(FieldIssue(field=field, code='missing', message=f'{field} is required'))

    missing = {issue.field for issue in issues}

    if 'exercise' not in missing:
        cleaned['exercise'] = str(values['exercise']).strip()

    for field in COUNT_FIELDS:
        if field in missing:
            continue
        try:
            cleaned[field] = coerce_positive_int(values[field])
        except _Invalid as e:
            issues.append(FieldIssue(field=field, code=e.code, message=f'{field} {e.message}'))

    if 'workout_date' not in missing:
        try:
            workout_date = parse_workout_date(values['workout_date'])
        except (TypeError, ValueError):
            issues.append(FieldIssue(
                field='workout_date', code='invalid_date', message='workout_date must be a valid date (YYYY-MM-DD)'
            ))
        else:
            if not allow_future_dates and today is not None and workout_date > today:
                issues.append(FieldIssue(
                    field='workout_date', code='future_date', message='workout_date cannot be in the future'
                ))
            else:
                cleaned['workout_date'] = workout_date

    if issues:
        return ValidationResult(issues=issues)

    cleaned['notes'] = _clean_notes(values.get('notes'))
    return ValidationResult(draft=WorkoutDraft(**cleaned))

def validate_batch(
    entries: List[Any],
    today: Optional[date] = None,
    allow_future_dates: bool = False,
) -> Tuple[List[WorkoutDraft], List[Dict[str, Any]]]:
    """Validate every entry of an import; returns (drafts, problems by index)"""
    drafts: List[WorkoutDraft] = []
    problems: List[Dict[str, Any]] = []
    for index, item in enumerate(entries):
        result = validate_workout(item, today=today, allow_future_dates=allow_future_dates)
        if result.ok:
            drafts.append(result.draft)
        else:
            problems.append({'index': index, 'fields': [issue.model_dump() for issue in result.issues]})
    return drafts, problems
