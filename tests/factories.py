import asyncio
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from models.schemas import Identity
from models.workout_schemas import WorkoutRecord
from services.errors import AuthError, ConflictOrNotFound, ConstraintViolation, RemoteUnavailable, Unauthenticated
from services.remote_store import MAX_PAGE_SIZE, WorkoutRemote

TODAY = date(2026, 10, 19)

def make_record(
    exercise: str = "Bench Press",
    sets: int = 3,
    reps: int = 10,
    weight: int = 135,
    workout_date: date = TODAY,
    created_at: Optional[datetime] = None,
    record_id: Optional[str] = None,
    user_id: str = "user-1",
    notes: Optional[str] = None,
) -> WorkoutRecord:
    return WorkoutRecord(
        id=record_id or str(uuid.uuid4()),
        user_id=user_id,
        exercise=exercise,
        sets=sets,
        reps=reps,
        weight=weight,
        workout_date=workout_date,
        notes=notes,
        created_at=created_at or datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
    )

class FakeWorkoutStore:
    """Rows keyed by id, shared by the fake remote and the fake Supabase service"""

    def __init__(self):
        self.rows: Dict[str, WorkoutRecord] = {}

    def add(self, user_id: str, row: Dict[str, Any]) -> WorkoutRecord:
        self.check(row)
        record = WorkoutRecord.model_validate({**row, 'id': str(uuid.uuid4()), 'user_id': user_id})
        self.rows[record.id] = record
        return record.model_copy()

    def check(self, row: Dict[str, Any]) -> None:
        if any(not row.get(field) or row[field] <= 0 for field in ('sets', 'reps', 'weight')):
            raise ConstraintViolation("violates check constraint")

    def select(self, user_id: str, start_date=None, end_date=None, limit=None, offset=0) -> List[WorkoutRecord]:
        rows = [
            r for r in self.rows.values()
            if r.user_id == user_id
            and (start_date is None or r.workout_date >= start_date)
            and (end_date is None or r.workout_date <= end_date)
        ]
        rows.sort(key=lambda r: r.id)
        rows.sort(key=lambda r: (r.workout_date, r.created_at), reverse=True)
        rows = rows[offset:]
        if limit:
            rows = rows[:limit]
        return [r.model_copy() for r in rows]

    def remove(self, user_id: str, workout_id: str) -> None:
        row = self.rows.get(workout_id)
        if row is None or row.user_id != user_id:
            raise ConflictOrNotFound(f"Workout {workout_id} not found")
        del self.rows[workout_id]

class FakeWorkoutRemote(WorkoutRemote):
    def __init__(self):
        self.store = FakeWorkoutStore()
        self.fail_fetch: Optional[Exception] = None
        self.fail_insert: Optional[Exception] = None
        self.fail_delete: Optional[Exception] = None
        self.lose_insert_response = False
        self.insert_gate: Optional[asyncio.Event] = None
        self.land_before_gate = False
        self.page_size = MAX_PAGE_SIZE
        self.fetch_calls: List[Dict[str, Any]] = []
        self.insert_calls = 0
        self.delete_calls: List[str] = []

    @property
    def rows(self) -> Dict[str, WorkoutRecord]:
        return self.store.rows

    async def fetch_workouts(self, identity, start_date=None, end_date=None, limit=None, offset=0):
        self.fetch_calls.append({'limit': limit, 'offset': offset})
        if self.fail_fetch:
            raise self.fail_fetch
        # Like the server, never more than one page per call
        page = min(limit or self.page_size, self.page_size)
        return self.store.select(identity.user_id, start_date, end_date, page, offset)

    async def insert_workout(self, identity, workout):
        self.insert_calls += 1
        if self.land_before_gate:
            # The row is stored but the response is held back until the gate opens
            record = self.store.add(identity.user_id, workout)
            await self.insert_gate.wait()
            return record
        if self.insert_gate is not None:
            await self.insert_gate.wait()
        if self.fail_insert:
            raise self.fail_insert
        record = self.store.add(identity.user_id, workout)
        if self.lose_insert_response:
            raise RemoteUnavailable("connection reset before the response arrived")
        return record

    async def insert_workouts(self, identity, workouts):
        if self.fail_insert:
            raise self.fail_insert
        for row in workouts:
            self.store.check(row)
        return [self.store.add(identity.user_id, row) for row in workouts]

    async def delete_workout(self, identity, workout_id):
        self.delete_calls.append(workout_id)
        if self.fail_delete:
            raise self.fail_delete
        self.store.remove(identity.user_id, workout_id)

class FakeSupabaseService:
    """Stands in for SupabaseService behind the API dependency"""

    def __init__(self):
        self.store = FakeWorkoutStore()
        self.tokens = {
            "token-1": Identity(user_id="user-1", email="lifter@example.com", access_token="token-1"),
            "token-2": Identity(user_id="user-2", email="other@example.com", access_token="token-2"),
        }
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.healthy = True

    async def authenticate(self, token):
        if not token:
            raise Unauthenticated("Authentication required")
        if token not in self.tokens:
            raise AuthError("Invalid or expired token")
        return self.tokens[token]

    async def fetch_workouts(self, user_id, start_date=None, end_date=None, limit=None, offset=0):
        return self.store.select(user_id, start_date, end_date, limit, offset)

    async def insert_workout(self, workout):
        return self.store.add(workout['user_id'], workout)

    async def insert_workouts(self, workouts):
        for row in workouts:
            self.store.check(row)
        return [self.store.add(row['user_id'], row) for row in workouts]

    async def delete_workout(self, workout_id, user_id):
        self.store.remove(user_id, workout_id)

    async def count_workouts(self, user_id):
        return len(self.store.select(user_id))

    async def get_or_create_profile(self, identity, name=None):
        if identity.user_id not in self.profiles:
            self.profiles[identity.user_id] = {
                'id': identity.user_id,
                'name': identity.email.split('@')[0],
                'email': identity.email,
                'created_at': "2026-10-19T12:00:00+00:00",
            }
        return self.profiles[identity.user_id]

    async def update_profile(self, user_id, update_data):
        profile = self.profiles.setdefault(user_id, {'id': user_id, 'email': None})
        profile.update(update_data)
        return profile

    async def health_check(self):
        return {"status": "connected" if self.healthy else "disconnected", "message": "", "timestamp": ""}

