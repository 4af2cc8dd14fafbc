# services/local_cache.py
import json
import re
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from models.workout_schemas import TrackedWorkout
from utils.config import APP_VERSION

class PersistentMap:
    """Durable key-value map holding JSON-serialisable values"""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

class MemoryMap(PersistentMap):
    """In-process map; values are round-tripped through JSON like the file map"""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

class JsonFileMap(PersistentMap):
    """One JSON file per key inside `directory`"""

    def __init__(self, directory):
        self.directory = Path(directory).expanduser()

    def _path(self, key: str) -> Path:
        safe = re.sub(r'[^A-Za-z0-9_.-]', '_', key)
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        raw = path.read_text(encoding="utf-8").strip()
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            print(f"⚠️ Ignoring unreadable cache file {path}: {e}")
            return None

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(value, indent=2, sort_keys=True) + "\n"

        # Write to a sibling temp file, then swap it in
        with NamedTemporaryFile("w", dir=path.parent, delete=False, encoding="utf-8") as tmp:
            tmp.write(payload)
            temp_path = Path(tmp.name)
        temp_path.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

class PendingDelete(BaseModel):
    """A delete the remote store has not confirmed yet"""
    id: str
    fingerprint: Optional[str] = None

class CacheState(BaseModel):
    workouts: List[TrackedWorkout] = []
    pending_deletes: List[PendingDelete] = []

    def by_id(self) -> Dict[str, TrackedWorkout]:
        return {entry.workout.id: entry for entry in self.workouts}

class LocalCacheStore:
    """Per-user mirror of workouts under `<prefix>workouts_<user_id>`"""

    def __init__(self, storage: PersistentMap, prefix: str = "wt_", version: str = APP_VERSION):
        self.storage = storage
        self.prefix = prefix
        self.version = version

    def key(self, user_id: str) -> str:
        return f"{self.prefix}workouts_{user_id}"

    def load(self, user_id: str) -> CacheState:
        payload = self.storage.get(self.key(user_id))
        if not payload:
            return CacheState()
        if not isinstance(payload, dict):
            print(f"⚠️ Unexpected cache payload for user {user_id}, starting empty")
            return CacheState()

        if payload.get('version') != self.version:
            print(f"🔍 Cache for user {user_id} written by version {payload.get('version')}, reading as {self.version}")

        workouts: List[TrackedWorkout] = []
        for item in payload.get('workouts') or []:
            try:
                workouts.append(TrackedWorkout.model_validate(item))
            except ValidationError as e:
                print(f"⚠️ Skipping unreadable cached workout: {e.error_count()} error(s)")

        pending_deletes: List[PendingDelete] = []
        for item in payload.get('pending_deletes') or []:
            try:
                pending_deletes.append(PendingDelete.model_validate(item))
            except ValidationError:
                print(f"⚠️ Skipping unreadable pending delete: {item}")

        return CacheState(workouts=workouts, pending_deletes=pending_deletes)

    def save(self, user_id: str, state: CacheState) -> None:
        self.storage.set(self.key(user_id), {
            'version': self.version,
            'workouts': [entry.model_dump(mode='json') for entry in state.workouts],
            'pending_deletes': [item.model_dump(mode='json') for item in state.pending_deletes],
        })

    def clear(self, user_id: str) -> None:
        self.storage.delete(self.key(user_id))
