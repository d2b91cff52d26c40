"""Expiring key/value store backed by the ``kv_entry`` table.

Reads treat an expired row as absent and delete it lazily; nothing here
takes a lock, so a read followed by a write is not atomic.
"""

import time
from typing import Callable, List, Optional

from reportguard import db
from reportguard.models import KVEntry


class KVStore:
    def __init__(self, session=None, clock: Callable[[], float] = time.time):
        self._session = session
        self._clock = clock

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def get(self, key: str) -> Optional[str]:
        entry = self.session.get(KVEntry, key, populate_existing=True)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self.session.delete(entry)
            self.session.commit()
            return None
        return entry.value

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        self.session.merge(KVEntry(key=key, value=value, expires_at=expires_at))
        self.session.commit()

    def delete(self, key: str) -> None:
        self.session.query(KVEntry).filter_by(key=key).delete()
        self.session.commit()

    def list(self, prefix: str) -> List[str]:
        now = self._clock()
        rows = (
            self.session.query(KVEntry)
            .filter(KVEntry.key.startswith(prefix, autoescape=True))
            .order_by(KVEntry.key)
            .all()
        )
        return [r.key for r in rows if not r.is_expired(now)]

    def purge_expired(self) -> int:
        removed = (
            self.session.query(KVEntry)
            .filter(KVEntry.expires_at.isnot(None), KVEntry.expires_at <= self._clock())
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return removed
