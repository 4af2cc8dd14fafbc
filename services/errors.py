# services/errors.py
from typing import Any, Dict, List, Optional


class WorkoutTrackerError(Exception):
    """Base class for every error the workout tracker surfaces to callers"""
    code = "WORKOUT_TRACKER_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


class WorkoutValidationError(WorkoutTrackerError):
    """Bad user input. Never reaches the network."""
    code = "VALIDATION_ERROR"

    def __init__(self, issues: List[Any], message: str = "Invalid workout", code: Optional[str] = None):
        super().__init__(message, code)
        self.issues = issues

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["fields"] = [issue.model_dump() for issue in self.issues]
        return data


class AuthError(WorkoutTrackerError):
    code = "INVALID_TOKEN"


class Unauthenticated(AuthError):
    code = "NO_TOKEN"


class TokenExpired(AuthError):
    code = "TOKEN_EXPIRED"


class RemoteUnavailable(WorkoutTrackerError):
    """Network or server failure talking to the remote store"""
    code = "REMOTE_UNAVAILABLE"


class ConstraintViolation(WorkoutTrackerError):
    """The store refused a row (positivity checks, bad identifiers)"""
    code = "CONSTRAINT_VIOLATION"


class ConflictOrNotFound(WorkoutTrackerError):
    code = "NOT_FOUND"


class ImportFormatError(WorkoutTrackerError):
    """Malformed backup document. The whole import is rejected."""
    code = "IMPORT_FORMAT_ERROR"

    def __init__(self, message: str, problems: Optional[List[Dict[str, Any]]] = None, code: Optional[str] = None):
        super().__init__(message, code)
        self.problems = problems or []

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.problems:
            data["problems"] = self.problems
        return data
