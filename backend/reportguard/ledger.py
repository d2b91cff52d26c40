from typing import Optional
from flask import current_app

from reportguard.kv import KVStore

REPORT_PREFIX = 'mod:fp:'


def count_key(fp: str) -> str:
    return f"{REPORT_PREFIX}{fp}:rc"


def ban_key(fp: str) -> str:
    return f"{REPORT_PREFIX}{fp}:ban"


class ReportLedger:
    """Per-fingerprint report counters with an independent expiring ban flag.

    CLEAN -> COUNTING -> BANNED -> (ban TTL elapses) -> CLEAN. The count key
    and the ban key expire separately, so an expired counter does not lift
    an active ban.
    """

    def __init__(self, kv: KVStore, ttl_seconds: int = 30 * 24 * 3600, threshold: int = 3,
                 ban_ttl_seconds: Optional[int] = None):
        self.kv = kv
        self.ttl_seconds = ttl_seconds
        self.threshold = threshold
        self.ban_ttl_seconds = ban_ttl_seconds

    def report_count(self, fp: str) -> int:
        raw = self.kv.get(count_key(fp))
        try:
            return int(raw) if raw else 0
        except ValueError:
            return 0

    def increment_report_count(self, fp: str, ttl_seconds: Optional[int] = None,
                               threshold: Optional[int] = None) -> int:
        """Read, add one, write back with a fresh TTL.

        Not atomic: two concurrent callers may both read n and both write
        n + 1. Each caller checks its own result against the threshold, so
        the ban flag is still written by whichever one reaches it.
        """
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        limit = self.threshold if threshold is None else threshold
        next_count = self.report_count(fp) + 1
        self.kv.put(count_key(fp), str(next_count), ttl=ttl)
        if next_count >= limit:
            self.kv.put(ban_key(fp), '1', ttl=ttl if self.ban_ttl_seconds is None else self.ban_ttl_seconds)
        return next_count

    def is_shadow_banned(self, fp: str) -> bool:
        return bool(self.kv.get(ban_key(fp)))


def ledger_from_config(kv: Optional[KVStore] = None) -> ReportLedger:
    cfg = current_app.config
    return ReportLedger(
        kv or KVStore(),
        ttl_seconds=int(cfg.get('REPORT_TTL_SEC', 30 * 24 * 3600)),
        threshold=int(cfg.get('REPORT_BAN_THRESHOLD', 3)),
        ban_ttl_seconds=cfg.get('REPORT_BAN_TTL_SEC'),
    )
