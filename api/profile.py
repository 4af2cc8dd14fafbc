# api/profile.py
from fastapi import APIRouter, Depends

from api.dependencies import get_current_identity
from models.schemas import Identity, ProfileResponse, ProfileUpdate
from models.workout_schemas import FieldIssue
from services.errors import WorkoutValidationError
from services.supabase_service import SupabaseService, get_supabase_service

router = APIRouter()

@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    identity: Identity = Depends(get_current_identity),
    supabase_service: SupabaseService = Depends(get_supabase_service),
):
    """Get the caller's profile, creating it on first visit"""
    return await supabase_service.get_or_create_profile(identity)

@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    profile_data: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
    supabase_service: SupabaseService = Depends(get_supabase_service),
):
    name = (profile_data.name or '').strip()
    if len(name) < 2:
        raise WorkoutValidationError(
            [FieldIssue(field='name', code='too_short', message='name must be at least 2 characters')],
            message="Name must be at least 2 characters",
            code="INVALID_NAME",
        )

    return await supabase_service.update_profile(identity.user_id, {'name': name})
