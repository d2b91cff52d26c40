import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)


@dataclass
class ReportEntry:
    target_player_id: str
    points: int
    timestamp: int
    room_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'targetPlayerId': self.target_player_id,
            'points': self.points,
            'timestamp': self.timestamp,
            'roomId': self.room_id,
        }


@dataclass
class ReportStatus:
    install_id: str
    total_points: int = 0
    is_locked: bool = False
    unlock_time: Optional[str] = None
    report_count: int = 0
    reports: List[ReportEntry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReportStatus':
        return cls(
            install_id=str(data['installId']),
            total_points=int(data.get('totalPoints') or 0),
            is_locked=bool(data.get('isLocked')),
            unlock_time=data.get('unlockTime'),
            report_count=int(data.get('reportCount') or 0),
            reports=[
                ReportEntry(
                    target_player_id=str(r['targetPlayerId']),
                    points=int(r.get('points') or 0),
                    timestamp=int(r.get('timestamp') or 0),
                    room_id=r.get('roomId'),
                )
                for r in data.get('reports') or []
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'installId': self.install_id,
            'totalPoints': self.total_points,
            'isLocked': self.is_locked,
            'unlockTime': self.unlock_time,
            'reportCount': self.report_count,
            'reports': [r.to_dict() for r in self.reports],
        }

    @property
    def lock_until(self) -> Optional[float]:
        """unlock_time as epoch seconds."""
        if not self.unlock_time:
            return None
        return datetime.fromisoformat(self.unlock_time.replace('Z', '+00:00')).timestamp()


def default_status(install_id: str) -> ReportStatus:
    return ReportStatus(install_id=install_id)


class ReportApi:
    """Status queries against the report server.

    Every failure path returns an unlocked, empty status so that an outage
    can never lock a player out.
    """

    def __init__(self, base_url: str, identity, timeout: float = 5.0, transport=None):
        self.identity = identity
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def check_report_status(self) -> ReportStatus:
        install_id = self.identity.get_install_id()
        try:
            response = self._client.get(
                f"/api/report/status/{quote(install_id, safe='')}",
                headers={'Content-Type': 'application/json'},
            )
            response.raise_for_status()
            return ReportStatus.from_dict(response.json())
        except httpx.TimeoutException:
            logger.warning("report status request timed out, using defaults")
        except httpx.HTTPError as exc:
            logger.warning("report status unavailable, using defaults: %s", exc)
        except (ValueError, KeyError, TypeError) as exc:
            logger.error("malformed report status response: %s", exc)
        return default_status(install_id)


class StatusSync:
    """Pulls the authoritative lock state into the local store.

    Calls are sequenced; a response belonging to an older call than the
    last one applied is dropped.
    """

    def __init__(self, api: ReportApi, store):
        self.api = api
        self.store = store
        self._issued = 0
        self._applied = 0
        self._lock = threading.Lock()

    def begin(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    def apply(self, ticket: int, status: ReportStatus) -> bool:
        with self._lock:
            if ticket <= self._applied:
                logger.debug("dropping stale report status ticket=%s applied=%s", ticket, self._applied)
                return False
            self._applied = ticket
        try:
            lock_until = status.lock_until
        except ValueError:
            logger.error("unparseable unlockTime %r", status.unlock_time)
            lock_until = None
        self.store.set_lock_status(status.is_locked, lock_until)
        return True

    def sync(self) -> ReportStatus:
        ticket = self.begin()
        status = self.api.check_report_status()
        self.apply(ticket, status)
        return status
