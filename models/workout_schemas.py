# models/workout_schemas.py
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import date, datetime, timezone
from enum import Enum

class WorkoutRecord(BaseModel):
    """One logged exercise performance, as stored in the `workouts` table"""
    id: str
    user_id: Optional[str] = None
    exercise: str
    sets: int
    reps: int
    weight: int
    workout_date: date
    notes: Optional[str] = None
    created_at: datetime

    @field_validator('id', 'user_id', mode='before')
    @classmethod
    def _stringify_ids(cls, value):
        # Older local caches used numeric millisecond ids
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator('created_at')
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def volume(self) -> int:
        return self.sets * self.reps * self.weight

    def to_row(self) -> Dict[str, Any]:
        """Insert payload that keeps this record's owner and creation time"""
        draft = WorkoutDraft.model_validate(self.model_dump(include=set(WorkoutDraft.model_fields)))
        return draft.to_row(self.user_id, self.created_at)

class WorkoutDraft(BaseModel):
    """A validated submission that has no identity yet"""
    exercise: str
    sets: int
    reps: int
    weight: int
    workout_date: date
    notes: Optional[str] = None

    def to_row(self, user_id: str, created_at: datetime) -> Dict[str, Any]:
        """Insert payload for the workouts table"""
        return {
            'user_id': user_id,
            'exercise': self.exercise,
            'sets': self.sets,
            'reps': self.reps,
            'weight': self.weight,
            'workout_date': self.workout_date.isoformat(),
            'notes': self.notes,
            'created_at': created_at.isoformat(),
        }

class FieldIssue(BaseModel):
    field: str
    code: str
    message: str

class ValidationResult(BaseModel):
    draft: Optional[WorkoutDraft] = None
    issues: List[FieldIssue] = []

    @property
    def ok(self) -> bool:
        return self.draft is not None and not self.issues

class SyncStatus(str, Enum):
    PENDING = "pending"
    SYNCED = "synced"
    REMOTE_ONLY = "remote-only"

class TrackedWorkout(BaseModel):
    """A workout plus where it currently lives"""
    workout: WorkoutRecord
    status: SyncStatus
    push_attempts: int = 0

class VolumePoint(BaseModel):
    date: date
    volume: int

class ExerciseCount(BaseModel):
    exercise: str
    count: int

class ExerciseOneRepMax(BaseModel):
    exercise: str
    one_rep_max: int
    weight: int
    reps: int
    workout_date: date

class AggregateSnapshot(BaseModel):
    period: str
    days: int
    period_workout_count: int = 0
    total_volume: int = 0
    average_weight: int = 0
    volume_by_date: List[VolumePoint] = []
    top_exercises: List[ExerciseCount] = []

class TodayStats(BaseModel):
    workouts: int = 0
    total_volume: int = 0
    avg_weight: int = 0

class StatsResponse(BaseModel):
    today: TodayStats
    overall: Dict[str, int]
    user: Dict[str, Optional[str]]

class AnalyticsResponse(BaseModel):
    snapshot: AggregateSnapshot
    one_rep_max: List[ExerciseOneRepMax] = []

class BatchImportResponse(BaseModel):
    message: str
    count: int
    workouts: List[WorkoutRecord]

class WorkoutBackup(BaseModel):
    """Export document, also accepted back by import"""
    exportDate: datetime
    exportSource: str = "Workout Tracker Pro"
    version: str
    workoutCount: int
    workouts: List[Dict[str, Any]] = Field(default_factory=list)
