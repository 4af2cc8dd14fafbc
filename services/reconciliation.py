# services/reconciliation.py
"""
Offline-first view of a user's workouts.

The local cache is written first and the remote store second. Every
workout carries a SyncStatus:

    pending      created here, the remote store has not confirmed it
    synced       present in both places under the same id
    remote-only  fetched from the remote store, not yet written to the cache

Remote failures are returned to the caller and never undo a local change:
a failed push leaves the workout pending, a failed delete leaves it deleted
locally with a pending delete that the next reload retries.
"""
import json
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Union

from models.schemas import Identity
from models.workout_schemas import (
    AggregateSnapshot,
    SyncStatus,
    TrackedWorkout,
    WorkoutBackup,
    WorkoutRecord,
)
from services.aggregation import build_snapshot
from services.api_client import WorkoutApiClient
from services.errors import (
    AuthError,
    ConflictOrNotFound,
    ImportFormatError,
    RemoteUnavailable,
    WorkoutTrackerError,
    WorkoutValidationError,
)
from services.identity import IdentityChannel
from services.local_cache import CacheState, JsonFileMap, LocalCacheStore, PendingDelete
from services.remote_store import MAX_PAGE_SIZE, WorkoutRemote
from services.validation import validate_batch, validate_workout
from utils.config import APP_VERSION, AppConfig, get_app_config
from utils.timezone_utils import get_user_today, utc_now

EXPORT_SOURCE = "Workout Tracker Pro"

_TRANSITIONS = {
    (SyncStatus.PENDING, 'push_confirmed'): SyncStatus.SYNCED,
    (SyncStatus.PENDING, 'push_failed'): SyncStatus.PENDING,
    (SyncStatus.PENDING, 'remote_match'): SyncStatus.SYNCED,
    (SyncStatus.REMOTE_ONLY, 'cached'): SyncStatus.SYNCED,
    (SyncStatus.SYNCED, 'cached'): SyncStatus.SYNCED,
}

def advance(status: SyncStatus, event: str) -> SyncStatus:
    try:
        return _TRANSITIONS[(status, event)]
    except KeyError:
        raise ValueError(f"No transition from {status.value} on {event}")

def new_local_id() -> str:
    millis = int(utc_now().timestamp() * 1000)
    return f"local-{millis}-{uuid.uuid4().hex[:6]}"

def fingerprint(record: WorkoutRecord) -> str:
    """Identity of a workout by content, for spotting inserts whose response was lost"""
    return json.dumps([
        record.exercise,
        record.sets,
        record.reps,
        record.weight,
        record.workout_date.isoformat(),
        record.notes,
        record.created_at.astimezone(timezone.utc).isoformat(),
    ])

def sort_newest_first(entries: Sequence[TrackedWorkout]) -> List[TrackedWorkout]:
    return sorted(
        entries,
        key=lambda e: (e.workout.workout_date, e.workout.created_at, e.workout.id),
        reverse=True,
    )

@dataclass
class WriteOutcome:
    workout: TrackedWorkout
    error: Optional[WorkoutTrackerError] = None
    deleted: bool = False

    @property
    def synced(self) -> bool:
        return self.workout.status is SyncStatus.SYNCED

@dataclass
class DeleteOutcome:
    workout_id: str
    remote_deleted: bool = False
    deferred: bool = False
    error: Optional[WorkoutTrackerError] = None

@dataclass
class ClearOutcome:
    removed: int = 0
    remote_deleted: int = 0
    errors: List[WorkoutTrackerError] = field(default_factory=list)

@dataclass
class ReloadOutcome:
    workouts: List[TrackedWorkout]
    offline: bool = False
    adopted: int = 0
    retried: int = 0
    errors: List[WorkoutTrackerError] = field(default_factory=list)

@dataclass
class MergeResult:
    state: CacheState
    deletes_to_retry: List[str]
    pushes_to_retry: List[str]
    adopted: int

def merge_remote_snapshot(
    state: CacheState,
    remote_records: Sequence[WorkoutRecord],
    in_flight: Set[str],
) -> MergeResult:
    """
    Fold a full remote snapshot into the cached state.

    Remote wins for every id it holds. Cached synced ids the remote no
    longer has were deleted elsewhere and go away. Pending workouts stay,
    unless the remote already holds an identical workout, which is then
    adopted in their place. Pending deletes hide their targets.
    """
    tombstones = [PendingDelete(id=d.id, fingerprint=d.fingerprint) for d in state.pending_deletes]
    tombstone_ids = {d.id: d for d in tombstones}
    tombstone_prints = {d.fingerprint: d for d in tombstones if d.fingerprint}

    remote: Dict[str, WorkoutRecord] = {}
    deletes_to_retry: List[str] = []
    matched: Set[int] = set()

    for record in remote_records:
        if record.id in remote:
            continue
        tomb = tombstone_ids.get(record.id)
        if tomb is None:
            tomb = tombstone_prints.pop(fingerprint(record), None)
            if tomb is not None:
                tomb.id = record.id
                tomb.fingerprint = None
                tombstone_ids[record.id] = tomb
        if tomb is not None:
            matched.add(id(tomb))
            deletes_to_retry.append(record.id)
            continue
        remote[record.id] = record

    merged: Dict[str, TrackedWorkout] = {
        rid: TrackedWorkout(workout=record, status=SyncStatus.REMOTE_ONLY)
        for rid, record in remote.items()
    }
    unclaimed: Dict[str, List[str]] = {}
    for rid, record in remote.items():
        unclaimed.setdefault(fingerprint(record), []).append(rid)

    pushes_to_retry: List[str] = []
    adopted = 0

    for entry in state.workouts:
        wid = entry.workout.id
        status = entry.status

        if status is SyncStatus.SYNCED or status is SyncStatus.REMOTE_ONLY:
            # Remote is authoritative for these: kept above if still there
            continue
        elif status is SyncStatus.PENDING:
            if wid in merged:
                merged[wid].status = advance(SyncStatus.PENDING, 'remote_match')
                continue
            candidates = unclaimed.get(fingerprint(entry.workout))
            if candidates:
                candidates.pop(0)
                adopted += 1
                continue
            merged[wid] = entry
            if wid not in in_flight:
                pushes_to_retry.append(wid)
        else:
            raise ValueError(f"Unknown sync status {status!r}")

    for entry in merged.values():
        if entry.status is SyncStatus.REMOTE_ONLY:
            entry.status = advance(entry.status, 'cached')

    # Deletes the remote no longer has are done, unless a push is still out
    kept_tombstones = [d for d in tombstones if id(d) in matched or d.id in in_flight]

    return MergeResult(
        state=CacheState(workouts=sort_newest_first(list(merged.values())), pending_deletes=kept_tombstones),
        deletes_to_retry=deletes_to_retry,
        pushes_to_retry=pushes_to_retry,
        adopted=adopted,
    )

class WorkoutSyncService:
    def __init__(
        self,
        remote: WorkoutRemote,
        cache: LocalCacheStore,
        allow_future_dates: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.remote = remote
        self.cache = cache
        self.allow_future_dates = allow_future_dates
        self.clock = clock
        self.last_reload: Optional[ReloadOutcome] = None
        self._in_flight: Set[str] = set()

    # Reads

    def workouts(self, identity: Identity) -> List[TrackedWorkout]:
        """Everything this device knows about, newest first"""
        return sort_newest_first(self.cache.load(identity.user_id).workouts)

    def records(self, identity: Identity) -> List[WorkoutRecord]:
        return [entry.workout for entry in self.workouts(identity)]

    def snapshot(self, identity: Identity, today: Optional[date] = None, period: str = '30days') -> AggregateSnapshot:
        return build_snapshot(self.records(identity), today or get_user_today(), period)

    # Writes

    def stage_workout(self, identity: Identity, raw: Dict[str, Any], today: Optional[date] = None) -> TrackedWorkout:
        """Validate and store a new workout locally as pending"""
        result = validate_workout(
            raw,
            today=today or get_user_today(),
            allow_future_dates=self.allow_future_dates,
        )
        if not result.ok:
            raise WorkoutValidationError(result.issues)

        record = WorkoutRecord(
            id=new_local_id(),
            user_id=identity.user_id,
            created_at=self.clock(),
            **result.draft.model_dump(),
        )
        entry = TrackedWorkout(workout=record, status=SyncStatus.PENDING)

        state = self.cache.load(identity.user_id)
        state.workouts.insert(0, entry)
        self.cache.save(identity.user_id, state)
        print(f"💪 Staged {record.exercise} ({record.id}) for user {identity.user_id}")
        return entry

    async def push_workout(self, identity: Identity, workout_id: str) -> WriteOutcome:
        """Send one pending workout to the remote store"""
        entry = self.cache.load(identity.user_id).by_id().get(workout_id)
        if entry is None:
            raise ConflictOrNotFound(f"Workout {workout_id} not found")
        if entry.status is not SyncStatus.PENDING:
            return WriteOutcome(workout=entry)

        self._in_flight.add(workout_id)
        try:
            saved = await self.remote.insert_workout(identity, entry.workout.to_row())
        except WorkoutTrackerError as e:
            print(f"⚠️ Workout {workout_id} stays pending: {e}")
            return WriteOutcome(workout=self._record_failed_push(identity, workout_id, entry), error=e)
        finally:
            self._in_flight.discard(workout_id)

        return await self._confirm_push(identity, workout_id, saved)

    async def add_workout(self, identity: Identity, raw: Dict[str, Any], today: Optional[date] = None) -> WriteOutcome:
        entry = self.stage_workout(identity, raw, today)
        return await self.push_workout(identity, entry.workout.id)

    def _record_failed_push(self, identity: Identity, workout_id: str, entry: TrackedWorkout) -> TrackedWorkout:
        state = self.cache.load(identity.user_id)
        for cached in state.workouts:
            if cached.workout.id == workout_id:
                cached.status = advance(cached.status, 'push_failed')
                cached.push_attempts += 1
                self.cache.save(identity.user_id, state)
                return cached
        # Deleted while the push was out
        for tomb in state.pending_deletes:
            if tomb.id == workout_id:
                tomb.fingerprint = fingerprint(entry.workout)
                self.cache.save(identity.user_id, state)
        return entry

    async def _confirm_push(self, identity: Identity, local_id: str, saved: WorkoutRecord) -> WriteOutcome:
        user_id = identity.user_id
        state = self.cache.load(user_id)
        confirmed = TrackedWorkout(workout=saved, status=advance(SyncStatus.PENDING, 'push_confirmed'))

        for tomb in state.pending_deletes:
            if tomb.id == local_id:
                # Deleted while in flight: the delete now targets the server id
                tomb.id = saved.id
                tomb.fingerprint = None
                state.workouts = [e for e in state.workouts if e.workout.id != saved.id]
                self.cache.save(user_id, state)
                error = await self._delete_remote(identity, saved.id)
                return WriteOutcome(workout=confirmed, error=error, deleted=True)
            if tomb.id == saved.id:
                # A reload already matched the landed row and queued its delete
                return WriteOutcome(workout=confirmed, deleted=True)

        entries = state.by_id()
        if local_id not in entries:
            if saved.id in entries:
                # Adopted by a reload while the push was out
                return WriteOutcome(workout=entries[saved.id])
            # Deleted while in flight, and a reload already removed the landed row
            return WriteOutcome(workout=confirmed, deleted=True)

        state.workouts = [
            confirmed if e.workout.id == local_id else e
            for e in state.workouts
            if e.workout.id != saved.id
        ]
        self.cache.save(user_id, state)
        print(f"✅ Workout {local_id} synced as {saved.id}")
        return WriteOutcome(workout=confirmed)

    async def _delete_remote(self, identity: Identity, workout_id: str) -> Optional[WorkoutTrackerError]:
        try:
            await self.remote.delete_workout(identity, workout_id)
        except ConflictOrNotFound:
            print(f"🔍 Workout {workout_id} was already removed remotely")
        except WorkoutTrackerError as e:
            print(f"❌ Remote delete of {workout_id} failed: {e}")
            return e

        state = self.cache.load(identity.user_id)
        state.pending_deletes = [d for d in state.pending_deletes if d.id != workout_id]
        self.cache.save(identity.user_id, state)
        return None

    async def delete_workout(self, identity: Identity, workout_id: str) -> DeleteOutcome:
        """Remove locally right away, then remotely"""
        state = self.cache.load(identity.user_id)
        entry = state.by_id().get(workout_id)
        if entry is None:
            raise ConflictOrNotFound(f"Workout {workout_id} already removed")

        state.workouts = [e for e in state.workouts if e.workout.id != workout_id]
        status = entry.status

        if status is SyncStatus.PENDING:
            if workout_id in self._in_flight:
                # The insert may land before it answers, so match by content too
                state.pending_deletes.append(PendingDelete(id=workout_id, fingerprint=fingerprint(entry.workout)))
                self.cache.save(identity.user_id, state)
                return DeleteOutcome(workout_id=workout_id, deferred=True)
            if entry.push_attempts:
                # A failed push may still have landed
                state.pending_deletes.append(PendingDelete(id=workout_id, fingerprint=fingerprint(entry.workout)))
            self.cache.save(identity.user_id, state)
            return DeleteOutcome(workout_id=workout_id)
        elif status is SyncStatus.SYNCED or status is SyncStatus.REMOTE_ONLY:
            state.pending_deletes.append(PendingDelete(id=workout_id))
            self.cache.save(identity.user_id, state)
            error = await self._delete_remote(identity, workout_id)
            return DeleteOutcome(workout_id=workout_id, remote_deleted=error is None, error=error)
        else:
            raise ValueError(f"Unknown sync status {status!r}")

    async def clear_workouts(self, identity: Identity) -> ClearOutcome:
        outcome = ClearOutcome()
        for entry in self.workouts(identity):
            result = await self.delete_workout(identity, entry.workout.id)
            outcome.removed += 1
            if result.remote_deleted:
                outcome.remote_deleted += 1
            if result.error:
                outcome.errors.append(result.error)
        print(f"🔍 Cleared {outcome.removed} workouts ({outcome.remote_deleted} remotely) for user {identity.user_id}")
        return outcome

    # Remote reads

    async def reload(self, identity: Identity, retry_pending: bool = True) -> ReloadOutcome:
        """Merge a full remote snapshot into the cache and retry what is outstanding"""
        try:
            remote_records = await self._fetch_everything(identity)
        except (RemoteUnavailable, AuthError) as e:
            print(f"⚠️ Reload failed, showing cached workouts: {e}")
            outcome = ReloadOutcome(workouts=self.workouts(identity), offline=True, errors=[e])
            self.last_reload = outcome
            return outcome

        merge = merge_remote_snapshot(self.cache.load(identity.user_id), remote_records, self._in_flight)
        self.cache.save(identity.user_id, merge.state)
        print(f"✅ Reloaded {len(remote_records)} remote workouts for user {identity.user_id}")

        outcome = ReloadOutcome(workouts=[], adopted=merge.adopted)
        for workout_id in merge.deletes_to_retry:
            error = await self._delete_remote(identity, workout_id)
            if error:
                outcome.errors.append(error)

        if retry_pending:
            for workout_id in merge.pushes_to_retry:
                result = await self.push_workout(identity, workout_id)
                outcome.retried += 1
                if result.error:
                    outcome.errors.append(result.error)

        outcome.workouts = self.workouts(identity)
        self.last_reload = outcome
        return outcome

    async def _fetch_everything(self, identity: Identity) -> List[WorkoutRecord]:
        # The merge drops cached ids it does not see, so a partial read would delete them
        records: List[WorkoutRecord] = []
        seen: Set[str] = set()
        while True:
            page = await self.remote.fetch_workouts(identity, limit=MAX_PAGE_SIZE, offset=len(records))
            fresh = [r for r in page if r.id not in seen]
            records.extend(page)
            seen.update(r.id for r in page)
            if len(page) < MAX_PAGE_SIZE or not fresh:
                return records

    def attach(self, channel: IdentityChannel) -> Callable[[], None]:
        """Reload whenever the signed-in identity changes"""

        async def on_identity_changed(identity: Optional[Identity]) -> None:
            if identity is None:
                print("🔍 Signed out, nothing to reload")
                self.last_reload = None
                return
            await self.reload(identity)

        return channel.subscribe(on_identity_changed)

    # Backups

    def export_backup(self, identity: Identity) -> WorkoutBackup:
        records = self.records(identity)
        return WorkoutBackup(
            exportDate=self.clock(),
            exportSource=EXPORT_SOURCE,
            version=APP_VERSION,
            workoutCount=len(records),
            workouts=[
                {
                    'id': r.id,
                    'exercise': r.exercise,
                    'sets': r.sets,
                    'reps': r.reps,
                    'weight': r.weight,
                    'workout_date': r.workout_date.isoformat(),
                    'notes': r.notes,
                    'created_at': r.created_at.isoformat(),
                }
                for r in records
            ],
        )

    async def import_backup(
        self,
        identity: Identity,
        payload: Union[str, bytes, Dict[str, Any]],
        today: Optional[date] = None,
    ) -> List[TrackedWorkout]:
        """
        Import a backup document as one unit.

        Any malformed entry rejects the whole file, and a failed batch
        insert leaves the cache untouched.
        """
        rows = self.prepare_import(identity, payload, today)
        saved = await self.remote.insert_workouts(identity, rows)

        imported = [TrackedWorkout(workout=record, status=SyncStatus.SYNCED) for record in saved]
        state = self.cache.load(identity.user_id)
        known = {entry.workout.id for entry in imported}
        state.workouts = sort_newest_first(imported + [e for e in state.workouts if e.workout.id not in known])
        self.cache.save(identity.user_id, state)
        print(f"📤 User {identity.email or identity.user_id} imported {len(imported)} workouts")
        return imported

    def prepare_import(
        self,
        identity: Identity,
        payload: Union[str, bytes, Dict[str, Any]],
        today: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        entries = parse_backup(payload)
        drafts, problems = validate_batch(
            entries,
            today=today or get_user_today(),
            allow_future_dates=self.allow_future_dates,
        )
        if problems:
            raise ImportFormatError(f"{len(problems)} of {len(entries)} workouts in the backup are invalid", problems)

        created_at = self.clock()
        return [draft.to_row(identity.user_id, created_at) for draft in drafts]

def parse_backup(payload: Union[str, bytes, Dict[str, Any]]) -> List[Any]:
    """Pull the workout list out of a backup document"""
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ImportFormatError(f"Backup is not valid JSON: {e}")

    if not isinstance(payload, dict) or not isinstance(payload.get('workouts'), list):
        raise ImportFormatError("Invalid backup file format")
    if not payload['workouts']:
        raise ImportFormatError("Backup contains no workouts")
    return payload['workouts']

def create_sync_service(config: Optional[AppConfig] = None, remote: Optional[WorkoutRemote] = None) -> WorkoutSyncService:
    """File-backed cache in CACHE_DIR in front of the workout HTTP API"""
    config = config or get_app_config()
    cache = LocalCacheStore(JsonFileMap(config.cache_dir), prefix=config.local_storage_prefix)
    if remote is None:
        remote = WorkoutApiClient(config.api_url)
    return WorkoutSyncService(remote, cache, allow_future_dates=config.allow_future_dates)

