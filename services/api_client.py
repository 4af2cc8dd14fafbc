# services/api_client.py
import asyncio
import aiohttp
from datetime import date
from typing import Any, Dict, List, Optional

from models.schemas import Identity
from models.workout_schemas import WorkoutRecord
from services.errors import (
    AuthError,
    ConflictOrNotFound,
    ConstraintViolation,
    RemoteUnavailable,
    TokenExpired,
    Unauthenticated,
)
from services.remote_store import MAX_PAGE_SIZE, WorkoutRemote

class WorkoutApiClient(WorkoutRemote):
    """Remote store backed by this project's own HTTP API"""

    def __init__(self, base_url: str, timeout_seconds: float = 15):
        self.base_url = base_url.rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    def _headers(self, identity: Identity) -> Dict[str, str]:
        if not identity.access_token:
            raise Unauthenticated("No authentication token")
        return {
            'Authorization': f"Bearer {identity.access_token}",
            'Content-Type': 'application/json',
        }

    async def _request(self, method: str, path: str, identity: Identity, **kwargs) -> Any:
        headers = self._headers(identity)
        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, url, headers=headers, **kwargs) as response:
                    try:
                        body = await response.json(content_type=None)
                    except ValueError:
                        body = None
                    if response.status >= 400:
                        raise _error_for(response.status, body)
                    return body
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            print(f"❌ {method} {url} failed: {e}")
            raise RemoteUnavailable(f"Workout API unreachable: {e}")

    async def fetch_workouts(
        self,
        identity: Identity,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[WorkoutRecord]:
        params = {'limit': str(limit or MAX_PAGE_SIZE)}
        if offset:
            params['offset'] = str(offset)
        if start_date:
            params['startDate'] = str(start_date)
        if end_date:
            params['endDate'] = str(end_date)

        rows = await self._request('GET', '/workouts', identity, params=params)
        return [WorkoutRecord.model_validate(row) for row in rows or []]

    async def insert_workout(self, identity: Identity, workout: Dict[str, Any]) -> WorkoutRecord:
        row = await self._request('POST', '/workouts', identity, json=workout)
        return WorkoutRecord.model_validate(row)

    async def insert_workouts(self, identity: Identity, workouts: List[Dict[str, Any]]) -> List[WorkoutRecord]:
        body = await self._request('POST', '/workouts/batch', identity, json=workouts)
        return [WorkoutRecord.model_validate(row) for row in (body or {}).get('workouts') or []]

    async def delete_workout(self, identity: Identity, workout_id: str) -> None:
        await self._request('DELETE', f"/workouts/{workout_id}", identity)

def _error_for(status: int, body: Any):
    message = f"HTTP error! status: {status}"
    code = None
    if isinstance(body, dict):
        message = body.get('error') or message
        code = body.get('code')

    if status == 401:
        if code == TokenExpired.code:
            return TokenExpired(message)
        if code == Unauthenticated.code:
            return Unauthenticated(message)
        return AuthError(message)
    if status == 404:
        return ConflictOrNotFound(message)
    if status in (400, 409, 422):
        return ConstraintViolation(message)
    return RemoteUnavailable(message)
