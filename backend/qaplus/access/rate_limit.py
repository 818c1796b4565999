import threading
import time
from collections import defaultdict, deque

from qaplus.core.config import settings

# Per-process sliding windows keyed by (scope, client key).
_hits: defaultdict[tuple[str, str], deque] = defaultdict(deque)
_lock = threading.Lock()
_last_sweep = 0.0


def _prune(q: deque, now: float, window_seconds: int) -> None:
    cutoff = now - window_seconds
    while q and q[0] <= cutoff:
        q.popleft()


def _sweep(now: float, window_seconds: int) -> None:
    """Drop keys whose windows have emptied; client IPs are unbounded."""
    global _last_sweep
    if now - _last_sweep < window_seconds:
        return
    _last_sweep = now
    for key in list(_hits):
        _prune(_hits[key], now, window_seconds)
        if not _hits[key]:
            del _hits[key]


def check_rate_limit(
    *,
    scope: str,
    key: str,
    limit: int,
    window_seconds: int | None = None,
    now: float | None = None,
) -> tuple[bool, str | None]:
    window = window_seconds or settings.PUBLIC_RATE_LIMIT_WINDOW_SECONDS
    current = time.time() if now is None else now

    with _lock:
        _sweep(current, window)
        q = _hits[(scope, key or "unknown")]
        _prune(q, current, window)
        if len(q) >= limit:
            return False, f"rate_limit:{scope}"
        q.append(current)

    return True, None


def reset_rate_limits() -> None:
    global _last_sweep
    with _lock:
        _hits.clear()
        _last_sweep = 0.0
