# api/workouts.py
from fastapi import APIRouter, Body, Depends, Query
from typing import Any, List, Optional
from datetime import date, datetime

from api.dependencies import get_current_identity
from models.schemas import Identity
from models.workout_schemas import (
    AnalyticsResponse,
    BatchImportResponse,
    StatsResponse,
    WorkoutRecord,
)
from services.aggregation import (
    best_one_rep_max_by_exercise,
    build_snapshot,
    in_window,
    normalize_period,
    period_days,
    today_stats,
    window_start,
)
from services.errors import ImportFormatError, WorkoutValidationError
from services.remote_store import MAX_PAGE_SIZE
from services.supabase_service import SupabaseService, get_supabase_service
from services.validation import validate_batch, validate_workout
from utils.config import AppConfig, get_app_config
from utils.timezone_utils import get_timezone_offset, get_user_today, utc_now

router = APIRouter()

MILESTONE_EVERY = 10

def _created_at(value: Any) -> datetime:
    """Client-supplied creation time if it parses, otherwise now"""
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            print(f"⚠️ Ignoring unparseable created_at: {value}")
    return utc_now()

@router.get("/workouts", response_model=List[WorkoutRecord])
async def list_workouts(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_current_identity),
    supabase_service: SupabaseService = Depends(get_supabase_service),
):
    """Get one page of the caller's workouts, newest first"""
    return await supabase_service.fetch_workouts(identity.user_id, start_date, end_date, limit, offset)

@router.post("/workouts", response_model=WorkoutRecord, status_code=201)
async def create_workout(
    workout_data: dict = Body(...),
    tz_offset: int = Depends(get_timezone_offset),
    identity: Identity = Depends(get_current_identity),
    supabase_service: SupabaseService = Depends(get_supabase_service),
    config: AppConfig = Depends(get_app_config),
):
    """Log a workout"""
    print(f"💪 Logging workout: {workout_data.get('exercise')} for user {identity.user_id}")

    result = validate_workout(
        workout_data,
        today=get_user_today(tz_offset),
        allow_future_dates=config.allow_future_dates,
    )
    if not result.ok:
        raise WorkoutValidationError(result.issues)

    row = result.draft.to_row(identity.user_id, _created_at(workout_data.get('created_at')))
    created = await supabase_service.insert_workout(row)

    count = await supabase_service.count_workouts(identity.user_id)
    if count and count % MILESTONE_EVERY == 0:
        print(f"🎉 Milestone: User {identity.email} has logged {count} workouts!")

    return created

@router.delete("/workouts/{workout_id}")
async def delete_workout(
    workout_id: str,
    identity: Identity = Depends(get_current_identity),
    supabase_service: SupabaseService = Depends(get_supabase_service),
):
    await supabase_service.delete_workout(workout_id, identity.user_id)
    return {"message": "Workout deleted successfully", "id": workout_id}

@router.post("/workouts/batch", response_model=BatchImportResponse, status_code=201)
async def import_workouts(
    workouts: Any = Body(...),
    tz_offset: int = Depends(get_timezone_offset),
    identity: Identity = Depends(get_current_identity),
    supabase_service: SupabaseService = Depends(get_supabase_service),
    config: AppConfig = Depends(get_app_config),
):
    """Import a batch of workouts: every entry must be valid or nothing is stored"""
    if not isinstance(workouts, list) or not workouts:
        raise ImportFormatError("Workouts array required", code="INVALID_BATCH")

    drafts, problems = validate_batch(
        workouts,
        today=get_user_today(tz_offset),
        allow_future_dates=config.allow_future_dates,
    )
    if problems:
        raise ImportFormatError(
            f"{len(problems)} of {len(workouts)} workouts are invalid", problems, code="INVALID_BATCH"
        )

    created_at = utc_now()
    saved = await supabase_service.insert_workouts([d.to_row(identity.user_id, created_at) for d in drafts])

    print(f"📤 User {identity.email} imported {len(saved)} workouts")
    return BatchImportResponse(
        message=f"Successfully imported {len(saved)} workouts",
        count=len(saved),
        workouts=saved,
    )

@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    tz_offset: int = Depends(get_timezone_offset),
    identity: Identity = Depends(get_current_identity),
    supabase_service: SupabaseService = Depends(get_supabase_service),
):
    """Today's dashboard numbers plus the all-time workout count"""
    today = get_user_today(tz_offset)
    todays = await supabase_service.fetch_workouts(identity.user_id, start_date=today, end_date=today)
    total = await supabase_service.count_workouts(identity.user_id)

    return StatsResponse(
        today=today_stats(todays, today),
        overall={"total_workouts": total},
        user={"id": identity.user_id, "email": identity.email},
    )

@router.get("/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    period: str = Query("30days"),
    tz_offset: int = Depends(get_timezone_offset),
    identity: Identity = Depends(get_current_identity),
    supabase_service: SupabaseService = Depends(get_supabase_service),
):
    """Volume series, averages and exercise rankings for a 7/30/90 day window"""
    period = normalize_period(period)
    today = get_user_today(tz_offset)
    days = period_days(period)
    print(f"💪 Analytics for user {identity.user_id}: {period} ending {today}")

    records = await supabase_service.fetch_workouts(
        identity.user_id,
        start_date=window_start(today, days),
        end_date=today,
    )

    return AnalyticsResponse(
        snapshot=build_snapshot(records, today, period),
        one_rep_max=best_one_rep_max_by_exercise(in_window(records, today, days)),
    )
