"""Date-scoped local cache of reports made today and the last known lock.

Two slices are kept apart: ``local`` is what this client did optimistically,
``server`` is the lock state last received from the server. Syncing only
ever writes the server slice; reporting only ever writes the local slice.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Set, Tuple

from reportguard_client.storage import MemoryStorage, StorageError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
STORAGE_KEY = 'report-storage'


@dataclass
class LocalSlice:
    daily_reports: Set[str] = field(default_factory=set)
    daily_points: int = 0
    # ISO date of the last daily reset
    last_reset: Optional[str] = None


@dataclass
class ServerSlice:
    is_locked: bool = False
    # Epoch seconds
    lock_until: Optional[float] = None


def encode_state(local: LocalSlice, server: ServerSlice) -> str:
    return json.dumps({
        'version': SCHEMA_VERSION,
        'dailyReports': sorted(local.daily_reports),
        'dailyPoints': local.daily_points,
        'lastReset': local.last_reset,
        'isLocked': server.is_locked,
        'lockUntil': server.lock_until,
    })


def _migrate_unversioned(data: Dict[str, Any]) -> Dict[str, Any]:
    # Older blobs: no version, lockUntil in epoch millis, optionally wrapped in "state"
    if isinstance(data.get('state'), dict):
        data = {**data['state'], 'dailyReports': data.get('dailyReports', data['state'].get('dailyReports'))}
    lock_until = data.get('lockUntil')
    return {
        'dailyReports': data.get('dailyReports') or [],
        'dailyPoints': data.get('dailyPoints') or 0,
        'lastReset': None,
        'isLocked': bool(data.get('isLocked')),
        'lockUntil': lock_until / 1000.0 if lock_until else None,
    }


def decode_state(raw: str) -> Tuple[LocalSlice, ServerSlice]:
    """Inverse of encode_state. Raises ValueError on anything it cannot read."""
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError('report state must be a JSON object')
    version = data.get('version')
    if version is None or version == 0:
        data = _migrate_unversioned(data)
    elif version != SCHEMA_VERSION:
        raise ValueError(f'unsupported report state version {version!r}')
    reports = data.get('dailyReports') or []
    if not isinstance(reports, list):
        raise ValueError('dailyReports must be a list')
    lock_until = data.get('lockUntil')
    local = LocalSlice(
        daily_reports={str(r) for r in reports},
        daily_points=int(data.get('dailyPoints') or 0),
        last_reset=data.get('lastReset'),
    )
    server = ServerSlice(
        is_locked=bool(data.get('isLocked')),
        lock_until=float(lock_until) if lock_until is not None else None,
    )
    return local, server


class LocalReportStore:
    def __init__(self, storage, key: str = STORAGE_KEY):
        self._storage = storage
        self.key = key
        self.local, self.server = self._load()

    def _degrade(self, exc: StorageError) -> None:
        logger.warning("report state storage unavailable, keeping it in memory: %s", exc)
        self._storage = MemoryStorage()

    @staticmethod
    def _fresh() -> Tuple[LocalSlice, ServerSlice]:
        return LocalSlice(last_reset=date.today().isoformat()), ServerSlice()

    def _load(self) -> Tuple[LocalSlice, ServerSlice]:
        try:
            raw = self._storage.get_item(self.key)
        except StorageError as exc:
            self._degrade(exc)
            raw = None
        if not raw:
            return self._fresh()
        try:
            return decode_state(raw)
        except (ValueError, TypeError) as exc:
            logger.warning("discarding unreadable report state: %s", exc)
            return self._fresh()

    def _persist(self) -> None:
        try:
            self._storage.set_item(self.key, encode_state(self.local, self.server))
        except StorageError as exc:
            self._degrade(exc)
            self._storage.set_item(self.key, encode_state(self.local, self.server))

    def can_report(self, target_player_id: str) -> bool:
        return target_player_id not in self.local.daily_reports

    def add_report(self, target_player_id: str, points: int) -> None:
        self.local.daily_reports = self.local.daily_reports | {target_player_id}
        self.local.daily_points += points
        self._persist()

    def set_lock_status(self, is_locked: bool, lock_until: Optional[float]) -> None:
        self.server = ServerSlice(is_locked=bool(is_locked), lock_until=lock_until)
        self._persist()

    def reset_daily(self, today: Optional[date] = None) -> None:
        today = today or date.today()
        self.local = LocalSlice(last_reset=today.isoformat())
        self.server = ServerSlice()
        self._persist()

    def check_and_reset_daily(self, today: Optional[date] = None) -> bool:
        """Reset once the local date has moved past the last reset."""
        today = today or date.today()
        if self.local.last_reset is None or today.isoformat() > self.local.last_reset:
            self.reset_daily(today)
            return True
        return False

    def is_lock_active(self, now: Optional[float] = None) -> bool:
        if not self.server.is_locked:
            return False
        if self.server.lock_until is None:
            return True
        return (time.time() if now is None else now) < self.server.lock_until

    def current_lock_state(self, now: Optional[float] = None) -> Dict[str, Any]:
        unlock_time = None
        if self.server.lock_until is not None:
            unlock_time = datetime.fromtimestamp(self.server.lock_until, timezone.utc).isoformat()
        return {'isLocked': self.is_lock_active(now), 'unlockTime': unlock_time}
