"""
Persisted session state.

Two independent byte slots in a key-value store hold the zone list and
the record list, each as a JSON array. Persistence is best-effort: read
and write failures are logged and swallowed, since the in-memory session
stays authoritative.
"""

import json
import logging
import re
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from habitat_zone.geometry.shapes import ZoneRect
from habitat_session.records import ObservationRecord

logger = logging.getLogger(__name__)

ZONES_KEY = "cca_obs_zones_v2"
RECORDS_KEY = "cca_obs_markers_v2"


class KeyValueStore(Protocol):
    """Simple get/set byte store."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...


class MemoryKeyValueStore:
    """In-process store (tests, ephemeral sessions)."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self._data: Dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)


class FileKeyValueStore:
    """
    One file per key inside a directory.

    Writes go to a temporary sibling first and are then renamed over the
    target, so a crash never leaves a half-written slot.
    """

    _SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not self._SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def set(self, key: str, value: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_bytes(value)
        tmp.replace(path)


class SessionStorage:
    """
    Best-effort load/save of zones and records.

    Usage:
        storage = SessionStorage(FileKeyValueStore(Path("./session")))
        zones = storage.load_zones()
        storage.save_records(records)
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _load_array(self, key: str) -> list:
        try:
            raw = self.store.get(key)
            if not raw:
                return []
            parsed = json.loads(raw)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read persisted slot {key}: {e}")
            return []

        if not isinstance(parsed, list):
            logger.warning(f"Persisted slot {key} is not a JSON array, ignoring")
            return []
        return parsed

    def _save_array(self, key: str, items: list) -> bool:
        try:
            self.store.set(key, json.dumps(items, ensure_ascii=False).encode("utf-8"))
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Could not persist slot {key}: {e}")
            return False

    def load_zones(self) -> List[ZoneRect]:
        zones = []
        for item in self._load_array(ZONES_KEY):
            try:
                zones.append(ZoneRect.from_dict(item))
            except (ValueError, AttributeError) as e:
                logger.warning(f"Skipping invalid persisted zone: {e}")
        return zones

    def load_records(self) -> List[ObservationRecord]:
        records = []
        for item in self._load_array(RECORDS_KEY):
            try:
                records.append(ObservationRecord.from_dict(item))
            except (ValueError, AttributeError) as e:
                logger.warning(f"Skipping invalid persisted record: {e}")
        return records

    def save_zones(self, zones: List[ZoneRect]) -> bool:
        return self._save_array(ZONES_KEY, [z.to_dict() for z in zones])

    def save_records(self, records: List[ObservationRecord]) -> bool:
        return self._save_array(RECORDS_KEY, [r.to_dict() for r in records])
