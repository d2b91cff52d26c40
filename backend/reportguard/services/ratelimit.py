import math
import threading
import time
from typing import Dict, Optional, Tuple


class FixedWindowLimiter:
    """Allow ``max_requests`` per ``window_sec`` for each key.

    Expired windows are swept at most once per window, so keys that never
    come back (closed sockets, old addresses) do not pile up.
    """

    def __init__(self, max_requests: int, window_sec: float):
        self.max_requests = int(max_requests)
        self.window_sec = float(window_sec)
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._next_sweep: Optional[float] = None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        if self._next_sweep is not None and now < self._next_sweep:
            return
        expired = [key for key, (_, reset_at) in self._windows.items() if now > reset_at]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + self.window_sec

    def check(self, key: str, now: Optional[float] = None) -> Tuple[bool, Optional[int]]:
        """Count one request; returns (allowed, retry_after_seconds)."""
        now = time.monotonic() if now is None else now
        with self._lock:
            self._sweep(now)
            count, reset_at = self._windows.get(key, (0, 0.0))
            if now > reset_at:
                self._windows[key] = (1, now + self.window_sec)
                return True, None
            if count >= self.max_requests:
                return False, int(math.ceil(reset_at - now))
            self._windows[key] = (count + 1, reset_at)
            return True, None

    def forget(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._next_sweep = None


_report_limiter: Optional[FixedWindowLimiter] = None


def check_report_rate(app, key: str) -> Tuple[bool, Optional[int]]:
    global _report_limiter
    if not app.config.get('ENABLE_RATE_LIMIT', False):
        return True, None
    limit = int(app.config.get('RATE_REPORT_PER_5MIN', 60))
    if _report_limiter is None or _report_limiter.max_requests != limit:
        _report_limiter = FixedWindowLimiter(limit, 5 * 60)
    return _report_limiter.check(key)


def forget_report_rate(key: str) -> None:
    if _report_limiter is not None:
        _report_limiter.forget(key)


def reset_report_limiter() -> None:
    global _report_limiter
    _report_limiter = None
