from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import os
import time
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request

from api import profile, workouts
from services.errors import (
    AuthError,
    ConflictOrNotFound,
    ConstraintViolation,
    ImportFormatError,
    RemoteUnavailable,
    WorkoutTrackerError,
    WorkoutValidationError,
)
from services.supabase_service import SupabaseService, get_supabase_service, init_supabase_service
from utils.config import AppConfig, get_app_config

STARTED_AT = time.monotonic()

config = get_app_config()

# Initialize FastAPI app
app = FastAPI(
    title="Workout Tracker API",
    description="Workout logging and training analytics on top of Supabase",
    version=config.version
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Most specific first
ERROR_STATUS = [
    (WorkoutValidationError, 400),
    (ImportFormatError, 400),
    (AuthError, 401),
    (ConflictOrNotFound, 404),
    (ConstraintViolation, 422),
    (RemoteUnavailable, 503),
]

AVAILABLE_ENDPOINTS = [
    'GET    /api/health',
    'GET    /api/version',
    'GET    /api/config',
    'GET    /api/public-config',
    'GET    /api/stats (auth)',
    'GET    /api/profile (auth)',
    'PUT    /api/profile (auth)',
    'GET    /api/workouts (auth)',
    'POST   /api/workouts (auth)',
    'DELETE /api/workouts/{id} (auth)',
    'POST   /api/workouts/batch (auth)',
    'GET    /api/analytics (auth)',
]

def status_for(error: WorkoutTrackerError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500

@app.exception_handler(WorkoutTrackerError)
async def workout_tracker_error_handler(request: Request, exc: WorkoutTrackerError):
    status_code = status_for(exc)
    if status_code >= 500:
        print(f"❌ {request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content=jsonable_encoder(exc.to_dict()))

@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "code": "VALIDATION_ERROR", "detail": jsonable_encoder(exc.errors())},
    )

@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    return JSONResponse(
        status_code=404,
        content={
            "error": "Endpoint not found",
            "code": "NOT_FOUND",
            "path": request.url.path,
            "availableEndpoints": AVAILABLE_ENDPOINTS,
        },
    )

@app.middleware("http")
async def log_requests(request: Request, call_next):
    origin = request.headers.get("origin", "none")
    print(f"{datetime.now(timezone.utc).isoformat()} {request.method} {request.url.path} - Origin: {origin}")
    return await call_next(request)

# Initialize services on startup
@app.on_event("startup")
async def startup_event():
    """Initialize services when the app starts"""
    print("🚀 Starting Workout Tracker API...")

    try:
        init_supabase_service()
        print("✅ Supabase service initialized")
        print(f"🌐 CORS origins: {', '.join(config.cors_origins)}")
        print("🎉 Backend startup complete!")

    except Exception as e:
        print(f"❌ Error during startup: {e}")
        raise

# Include API routers
app.include_router(workouts.router, prefix="/api", tags=["workouts"])
app.include_router(profile.router, prefix="/api", tags=["profile"])

# Root endpoint
@app.get("/")
async def root():
    return {
        "message": "Workout Tracker API",
        "version": config.version,
        "status": "running",
        "features": ["workouts", "analytics", "batch_import", "profiles"]
    }

# Health check endpoint
@app.get("/api/health")
async def health_check(supabase_service: SupabaseService = Depends(get_supabase_service)):
    database = await supabase_service.health_check()
    healthy = database["status"] == "connected"

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "services": {
                "database": database["status"],
                "cors": "enabled"
            },
            "environment": config.environment,
            "uptime": round(time.monotonic() - STARTED_AT, 3),
        },
    )

@app.get("/api/version")
async def version(app_config: AppConfig = Depends(get_app_config)):
    return {"app": "Workout Tracker API", "version": app_config.version, "supabase": "connected"}

@app.get("/api/config")
async def api_config(app_config: AppConfig = Depends(get_app_config)):
    return {
        "app": "Workout Tracker API",
        "version": app_config.version,
        "features": {
            "cors": True,
            "database": "Supabase",
            "allowFutureDates": app_config.allow_future_dates
        },
        "limits": {
            "corsOrigins": len(app_config.cors_origins),
            "maxWorkoutsPerPage": 1000
        },
        "environment": app_config.environment
    }

@app.get("/api/public-config")
async def public_config(app_config: AppConfig = Depends(get_app_config)):
    """Safe values only - for the browser"""
    return app_config.public_config()

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", config.port))
    uvicorn.run(app, host="0.0.0.0", port=port)
