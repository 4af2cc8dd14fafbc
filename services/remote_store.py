# services/remote_store.py
from datetime import date
from typing import Any, Dict, List, Optional

from models.schemas import Identity
from models.workout_schemas import WorkoutRecord

# Largest page the backend and Supabase hand out in one response
MAX_PAGE_SIZE = 1000

class WorkoutRemote:
    """
    The authoritative workout store as seen by the sync layer.

    Implementations raise the errors in services.errors: RemoteUnavailable
    for network/server trouble, AuthError for a rejected token,
    ConstraintViolation when the store refuses a row and
    ConflictOrNotFound when a delete target does not exist.
    """

    async def fetch_workouts(
        self,
        identity: Identity,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[WorkoutRecord]:
        """
        Newest first, date filters inclusive.

        At most one page of MAX_PAGE_SIZE rows comes back, starting
        `offset` rows in. A short page means there is nothing further.
        """
        raise NotImplementedError

    async def insert_workout(self, identity: Identity, workout: Dict[str, Any]) -> WorkoutRecord:
        raise NotImplementedError

    async def insert_workouts(self, identity: Identity, workouts: List[Dict[str, Any]]) -> List[WorkoutRecord]:
        """All-or-nothing batch insert"""
        raise NotImplementedError

    async def delete_workout(self, identity: Identity, workout_id: str) -> None:
        raise NotImplementedError
