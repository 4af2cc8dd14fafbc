# services/supabase_service.py
from supabase import create_client, Client
from postgrest.exceptions import APIError
import httpx
from typing import Dict, List, Optional, Any
from datetime import datetime, date, timezone

from models.schemas import Identity
from models.workout_schemas import WorkoutRecord
from services.errors import (
    AuthError,
    ConflictOrNotFound,
    ConstraintViolation,
    RemoteUnavailable,
    TokenExpired,
    Unauthenticated,
    WorkoutTrackerError,
)
from services.remote_store import MAX_PAGE_SIZE, WorkoutRemote
from utils.config import get_app_config

# Postgres check / not-null / bad input / foreign key violations
CONSTRAINT_CODES = {'23514', '23502', '22P02', '23503'}
NO_ROWS_CODE = 'PGRST116'

def translate_error(error: Exception, action: str) -> WorkoutTrackerError:
    """Map a Supabase / network failure onto the workout tracker errors"""
    if isinstance(error, WorkoutTrackerError):
        return error
    if isinstance(error, APIError):
        if error.code == NO_ROWS_CODE:
            return ConflictOrNotFound(f"Failed to {action}: not found")
        if error.code in CONSTRAINT_CODES:
            return ConstraintViolation(f"Failed to {action}: {error.message}")
        return RemoteUnavailable(f"Failed to {action}: {error.message}")
    if isinstance(error, httpx.HTTPError):
        return RemoteUnavailable(f"Failed to {action}: {error}")
    return RemoteUnavailable(f"Failed to {action}: {str(error)}")

class SupabaseService:
    def __init__(self, client: Optional[Client] = None):
        if client is None:
            config = get_app_config()
            url = config.supabase_url
            key = config.supabase_service_role_key

            if not url or not key:
                raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in environment variables")

            client = create_client(url, key)

        self.client: Client = client
        print("✅ Supabase client initialized")

    # Identity
    async def authenticate(self, token: Optional[str]) -> Identity:
        """Resolve a bearer token to the signed-in user"""
        if not token:
            raise Unauthenticated("Authentication required")

        try:
            response = self.client.auth.get_user(token)
        except httpx.HTTPError as e:
            raise RemoteUnavailable(f"Identity provider unreachable: {e}")
        except Exception as e:
            if 'expired' in str(e).lower():
                raise TokenExpired("Token has expired")
            print(f"❌ Token rejected: {e}")
            raise AuthError("Invalid or expired token")

        user = getattr(response, 'user', None) if response else None
        if user is None:
            raise AuthError("Invalid or expired token")

        return Identity(user_id=str(user.id), email=user.email, access_token=token)

    # Workout Operations
    async def fetch_workouts(
        self,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[WorkoutRecord]:
        """Get a user's workouts, newest first, date range inclusive"""
        try:
            print(f"🔍 Getting workouts for user: {user_id} ({start_date} to {end_date}, limit {limit}, offset {offset})")

            query = self.client.table('workouts')\
                .select('*')\
                .eq('user_id', user_id)\
                .order('workout_date', desc=True)\
                .order('created_at', desc=True)\
                .order('id')

            if start_date:
                query = query.gte('workout_date', str(start_date))
            if end_date:
                query = query.lte('workout_date', str(end_date))
            if offset:
                query = query.range(offset, offset + (limit or MAX_PAGE_SIZE) - 1)
            elif limit:
                query = query.limit(limit)

            response = query.execute()
            workouts = [WorkoutRecord.model_validate(row) for row in response.data or []]

            print(f"✅ Retrieved {len(workouts)} workouts")
            return workouts

        except Exception as e:
            print(f"❌ Error getting workouts: {e}")
            raise translate_error(e, "fetch workouts")

    async def insert_workout(self, workout: Dict[str, Any]) -> WorkoutRecord:
        """Create a new workout row"""
        try:
            response = self.client.table('workouts').insert(workout).execute()

            if response.data:
                return WorkoutRecord.model_validate(response.data[0])
            raise RemoteUnavailable("No data returned from Supabase")

        except Exception as e:
            print(f"❌ Error creating workout: {e}")
            raise translate_error(e, "create workout")

    async def insert_workouts(self, workouts: List[Dict[str, Any]]) -> List[WorkoutRecord]:
        """Insert a batch in one statement, so it lands completely or not at all"""
        try:
            response = self.client.table('workouts').insert(workouts).execute()

            if response.data is None or len(response.data) != len(workouts):
                raise RemoteUnavailable("Supabase did not return the imported rows")
            return [WorkoutRecord.model_validate(row) for row in response.data]

        except Exception as e:
            print(f"❌ Error importing workouts: {e}")
            raise translate_error(e, "import workouts")

    async def delete_workout(self, workout_id: str, user_id: str) -> None:
        """Delete a workout owned by user_id"""
        try:
            response = self.client.table('workouts')\
                .delete()\
                .eq('id', workout_id)\
                .eq('user_id', user_id)\
                .execute()
        except Exception as e:
            error = translate_error(e, "delete workout")
            if isinstance(error, ConstraintViolation):
                # Not a valid row id, so nothing to delete
                raise ConflictOrNotFound(f"Workout {workout_id} not found")
            print(f"❌ Error deleting workout: {e}")
            raise error

        if not response.data:
            raise ConflictOrNotFound(f"Workout {workout_id} not found")

    async def count_workouts(self, user_id: str) -> int:
        try:
            response = self.client.table('workouts')\
                .select('id', count='exact')\
                .eq('user_id', user_id)\
                .limit(1)\
                .execute()
            return response.count or 0
        except Exception as e:
            print(f"❌ Error counting workouts: {e}")
            raise translate_error(e, "count workouts")

    # Profile Operations
    async def get_or_create_profile(self, identity: Identity, name: Optional[str] = None) -> Dict[str, Any]:
        try:
            response = self.client.table('profiles').select('*').eq('id', identity.user_id).execute()
            if response.data:
                return response.data[0]

            email = identity.email or ''
            profile = {
                'id': identity.user_id,
                'name': name or email.split('@')[0] or 'Athlete',
                'email': email,
                'created_at': datetime.now(timezone.utc).isoformat(),
            }
            created = self.client.table('profiles').insert(profile).execute()
            if not created.data:
                raise RemoteUnavailable("No data returned from Supabase")

            print(f"📝 Created new profile for user: {email}")
            return created.data[0]

        except Exception as e:
            print(f"❌ Error getting profile: {e}")
            raise translate_error(e, "fetch profile")

    async def update_profile(self, user_id: str, update_data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            update_data['updated_at'] = datetime.now(timezone.utc).isoformat()

            response = self.client.table('profiles')\
                .update(update_data)\
                .eq('id', user_id)\
                .execute()

            if response.data:
                return response.data[0]
            raise ConflictOrNotFound("Profile not found")

        except Exception as e:
            print(f"❌ Supabase update error: {str(e)}")
            raise translate_error(e, "update profile")

    async def health_check(self) -> Dict[str, Any]:
        """Check if Supabase connection is working"""
        try:
            # Simple query to test connection
            self.client.table('workouts').select('id').limit(1).execute()

            return {
                "status": "connected",
                "message": "Supabase connection working",
                "timestamp": datetime.now(timezone.utc).isoformat()
            }

        except Exception as e:
            return {
                "status": "disconnected",
                "message": f"Supabase connection failed: {str(e)}",
                "timestamp": datetime.now(timezone.utc).isoformat()
            }

class SupabaseWorkoutStore(WorkoutRemote):
    """Remote store for the sync layer that talks to Supabase directly"""

    def __init__(self, service: SupabaseService):
        self.service = service

    async def fetch_workouts(self, identity, start_date=None, end_date=None, limit=None, offset=0):
        return await self.service.fetch_workouts(identity.user_id, start_date, end_date, limit, offset)

    async def insert_workout(self, identity, workout):
        return await self.service.insert_workout({**workout, 'user_id': identity.user_id})

    async def insert_workouts(self, identity, workouts):
        return await self.service.insert_workouts([{**w, 'user_id': identity.user_id} for w in workouts])

    async def delete_workout(self, identity, workout_id):
        await self.service.delete_workout(workout_id, identity.user_id)

# Global instance - initialized in main.py
supabase_service = None

def get_supabase_service() -> SupabaseService:
    """Get the global Supabase service instance"""
    global supabase_service
    if supabase_service is None:
        supabase_service = SupabaseService()
    return supabase_service

def init_supabase_service():
    """Initialize the global Supabase service"""
    global supabase_service
    supabase_service = SupabaseService()
