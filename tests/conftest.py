import pytest
from typing import AsyncGenerator, Dict
from httpx import AsyncClient, ASGITransport

from models.schemas import Identity
from services.local_cache import LocalCacheStore, MemoryMap
from services.reconciliation import WorkoutSyncService
from factories import FakeSupabaseService, FakeWorkoutRemote

@pytest.fixture
def identity() -> Identity:
    return Identity(user_id="user-1", email="lifter@example.com", access_token="token-1")

@pytest.fixture
def remote() -> FakeWorkoutRemote:
    return FakeWorkoutRemote()

@pytest.fixture
def cache() -> LocalCacheStore:
    return LocalCacheStore(MemoryMap())

@pytest.fixture
def sync(remote, cache) -> WorkoutSyncService:
    return WorkoutSyncService(remote, cache)

@pytest.fixture
def fake_supabase() -> FakeSupabaseService:
    return FakeSupabaseService()

@pytest.fixture
async def client(fake_supabase) -> AsyncGenerator[AsyncClient, None]:
    from main import app
    from services.supabase_service import get_supabase_service
    from utils.config import AppConfig, get_app_config

    app.dependency_overrides[get_supabase_service] = lambda: fake_supabase
    app.dependency_overrides[get_app_config] = lambda: AppConfig()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()

@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"Authorization": "Bearer token-1"}
