import json
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from flask import current_app

from reportguard.kv import KVStore
from reportguard.fingerprint import fingerprint_for
from reportguard.ledger import ledger_from_config


class ReportRejected(Exception):
    """A report the server refuses to record. Never fatal to the caller."""

    def __init__(self, error: str, status_code: int = 400, retry_after: Optional[int] = None):
        super().__init__(error)
        self.error = error
        self.status_code = status_code
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {'error': self.error}
        if self.retry_after is not None:
            body['retryAfter'] = self.retry_after
        return body


def report_key(install_id: str, target_player_id: str) -> str:
    return f"report:{install_id}:{target_player_id}"


def _day_tz() -> timezone:
    offset = int(current_app.config.get('REPORT_DAY_UTC_OFFSET_MIN', 540))
    return timezone(timedelta(minutes=offset))


def reporting_day(now: float) -> str:
    """YYYY-MM-DD of ``now`` in the configured reporting timezone."""
    return datetime.fromtimestamp(now, _day_tz()).date().isoformat()


def next_day_boundary(now: float) -> datetime:
    local = datetime.fromtimestamp(now, _day_tz())
    midnight = (local + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


def daily_reports(kv: KVStore, install_id: str, day: str) -> List[Dict[str, Any]]:
    records = []
    for key in kv.list(f"report:{install_id}:"):
        raw = kv.get(key)
        if not raw:
            continue
        try:
            record = json.loads(raw)
        except ValueError:
            current_app.logger.warning(f"[report-status] unreadable record key={key}")
            continue
        if record.get('date') == day:
            records.append(record)
    records.sort(key=lambda r: r.get('timestamp') or 0)
    return records


def report_status(install_id: str, now: Optional[float] = None, kv: Optional[KVStore] = None) -> Dict[str, Any]:
    """Today's reporting activity for one install id, as served to clients."""
    now = time.time() if now is None else now
    kv = kv or KVStore()
    records = daily_reports(kv, install_id, reporting_day(now))
    total_points = sum(int(r.get('points') or 0) for r in records)
    is_locked = total_points >= int(current_app.config.get('REPORT_LOCK_POINTS', 65))
    unlock_time = None
    if is_locked:
        unlock_time = next_day_boundary(now).isoformat().replace('+00:00', 'Z')
    return {
        'installId': install_id,
        'totalPoints': total_points,
        'isLocked': is_locked,
        'unlockTime': unlock_time,
        'reportCount': len(records),
        'reports': [
            {
                'targetPlayerId': r.get('targetPlayerId'),
                'points': int(r.get('points') or 0),
                'timestamp': r.get('timestamp'),
                'roomId': r.get('roomId'),
            }
            for r in records
        ],
    }


def file_report(install_id: str, target_player_id: str, room_id: str,
                reporter_player_id: Optional[str] = None,
                target_install_id: Optional[str] = None,
                message_id: Optional[str] = None,
                shadowed: bool = False,
                now: Optional[float] = None,
                kv: Optional[KVStore] = None) -> Dict[str, Any]:
    """Record one report and feed the target's fingerprint into the ledger.

    Raises ReportRejected for duplicates, self-reports and locked reporters.
    Reports from shadow-banned reporters are recorded for their own status
    but never counted against the target.
    """
    if not install_id or not target_player_id:
        raise ReportRejected('Missing required parameters')
    if target_player_id in (reporter_player_id, install_id) or (
            target_install_id is not None and target_install_id == install_id):
        raise ReportRejected('Self-reporting is not allowed')

    now = time.time() if now is None else now
    kv = kv or KVStore()
    day = reporting_day(now)
    key = report_key(install_id, target_player_id)

    existing = kv.get(key)
    if existing:
        try:
            if json.loads(existing).get('date') == day:
                raise ReportRejected('Already reported this player today')
        except ValueError:
            current_app.logger.warning(f"[report] unreadable record key={key}")

    status = report_status(install_id, now=now, kv=kv)
    if status['isLocked']:
        raise ReportRejected('Report limit reached', status_code=403)

    points = int(current_app.config.get('REPORT_POINTS', 4))
    record = {
        'targetPlayerId': target_player_id,
        'points': points,
        'timestamp': int(now * 1000),
        'date': day,
        'roomId': room_id,
    }
    if message_id:
        record['messageId'] = message_id
    kv.put(key, json.dumps(record), ttl=int(current_app.config.get('REPORT_RECORD_TTL_SEC', 86400)))

    if shadowed:
        current_app.logger.info(f"[report] room={room_id} target={target_player_id} from shadowed reporter, not counted")
    elif target_install_id:
        fp = fingerprint_for(target_install_id)
        count = ledger_from_config(kv).increment_report_count(fp)
        current_app.logger.info(f"[ledger] fp={fp[:12]} count={count}")
    else:
        current_app.logger.info(f"[report] room={room_id} target={target_player_id} not in roster, ledger skipped")

    return {
        'ok': True,
        'points': points,
        'totalPoints': status['totalPoints'] + points,
    }


def is_shadowed(install_id: str, kv: Optional[KVStore] = None) -> bool:
    if not install_id:
        return False
    return ledger_from_config(kv).is_shadow_banned(fingerprint_for(install_id))
