import pytest
from aiohttp import web
from aiohttp import test_utils

from models.schemas import Identity
from services.api_client import WorkoutApiClient
from services.errors import (
    AuthError,
    ConflictOrNotFound,
    ConstraintViolation,
    RemoteUnavailable,
    TokenExpired,
    Unauthenticated,
)
from services.remote_store import MAX_PAGE_SIZE

ROW = {
    'id': 'srv-1',
    'user_id': 'user-1',
    'exercise': 'Bench Press',
    'sets': 3,
    'reps': 10,
    'weight': 135,
    'workout_date': '2026-10-19',
    'notes': None,
    'created_at': '2026-10-19T12:00:00+00:00',
}

def build_app(seen):
    async def list_workouts(request):
        seen['query'] = dict(request.query)
        seen['authorization'] = request.headers.get('Authorization')
        return web.json_response([ROW])

    async def create_workout(request):
        body = await request.json()
        if body.get('sets', 0) <= 0:
            return web.json_response({'error': 'violates check constraint', 'code': 'CONSTRAINT_VIOLATION'}, status=422)
        return web.json_response({**ROW, **body, 'id': 'srv-2'}, status=201)

    async def import_workouts(request):
        body = await request.json()
        rows = [{**ROW, **w, 'id': f"srv-{i + 10}"} for i, w in enumerate(body)]
        return web.json_response({'message': 'ok', 'count': len(rows), 'workouts': rows}, status=201)

    async def delete_workout(request):
        if request.match_info['workout_id'] != 'srv-1':
            return web.json_response({'error': 'Workout not found', 'code': 'NOT_FOUND'}, status=404)
        return web.json_response({'message': 'Workout deleted successfully', 'id': 'srv-1'})

    async def expired(request):
        return web.json_response({'error': 'Token has expired', 'code': 'TOKEN_EXPIRED'}, status=401)

    async def empty_batch(request):
        return web.Response(status=201)

    async def broken(request):
        return web.Response(text='upstream exploded', status=502)

    app = web.Application()
    app.router.add_get('/api/workouts', list_workouts)
    app.router.add_post('/api/workouts', create_workout)
    app.router.add_post('/api/workouts/batch', import_workouts)
    app.router.add_delete('/api/workouts/{workout_id}', delete_workout)
    app.router.add_get('/expired/workouts', expired)
    app.router.add_get('/broken/workouts', broken)
    app.router.add_post('/empty/workouts/batch', empty_batch)
    return app

@pytest.fixture
def seen():
    return {}

@pytest.fixture
async def server(seen):
    test_server = test_utils.TestServer(build_app(seen))
    await test_server.start_server()
    yield test_server
    await test_server.close()

@pytest.fixture
def api(server):
    return WorkoutApiClient(str(server.make_url('/api')))

@pytest.mark.asyncio
async def test_fetch_sends_token_and_full_page(api, identity, seen):
    rows = await api.fetch_workouts(identity)

    assert [r.id for r in rows] == ['srv-1']
    assert seen['authorization'] == "Bearer token-1"
    assert seen['query'] == {'limit': str(MAX_PAGE_SIZE)}

@pytest.mark.asyncio
async def test_insert_returns_server_record(api, identity):
    record = await api.insert_workout(identity, {**ROW, 'id': None, 'exercise': 'Squat'})
    assert record.id == 'srv-2'
    assert record.exercise == 'Squat'

@pytest.mark.asyncio
async def test_rejected_row_is_a_constraint_violation(api, identity):
    with pytest.raises(ConstraintViolation):
        await api.insert_workout(identity, {**ROW, 'sets': 0})

@pytest.mark.asyncio
async def test_batch_insert(api, identity):
    records = await api.insert_workouts(identity, [{'exercise': 'Row'}, {'exercise': 'Squat'}])
    assert [r.exercise for r in records] == ['Row', 'Squat']

@pytest.mark.asyncio
async def test_delete(api, identity):
    await api.delete_workout(identity, 'srv-1')
    with pytest.raises(ConflictOrNotFound):
        await api.delete_workout(identity, 'srv-404')

@pytest.mark.asyncio
async def test_missing_token_never_hits_the_network(api):
    with pytest.raises(Unauthenticated):
        await api.fetch_workouts(Identity(user_id="user-1"))

@pytest.mark.asyncio
async def test_expired_token(server, identity):
    api = WorkoutApiClient(str(server.make_url('/expired')))
    with pytest.raises(TokenExpired) as exc:
        await api.fetch_workouts(identity)
    assert isinstance(exc.value, AuthError)

@pytest.mark.asyncio
async def test_server_error_is_remote_unavailable(server, identity):
    api = WorkoutApiClient(str(server.make_url('/broken')))
    with pytest.raises(RemoteUnavailable):
        await api.fetch_workouts(identity)

@pytest.mark.asyncio
async def test_unreachable_host(identity):
    api = WorkoutApiClient("http://127.0.0.1:1/api", timeout_seconds=2)
    with pytest.raises(RemoteUnavailable):
        await api.fetch_workouts(identity)

@pytest.mark.asyncio
async def test_fetch_later_page(api, identity, seen):
    await api.fetch_workouts(identity, limit=1000, offset=2000)
    assert seen['query'] == {'limit': '1000', 'offset': '2000'}

@pytest.mark.asyncio
async def test_batch_insert_with_empty_response_body(server, identity):
    api = WorkoutApiClient(str(server.make_url('/empty')))
    assert await api.insert_workouts(identity, [{'exercise': 'Row'}]) == []
