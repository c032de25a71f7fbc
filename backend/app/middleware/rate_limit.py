"""Process-wide rate limiting.

Fixed windows keyed by ``"<policy>:<subject>"``. The store is shared by
every request thread, so all access goes through one lock. For
multi-replica deployments, swap to Redis.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import HTTPException, Response, status

from backend.app.core.config import settings


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    max_requests: int
    window_seconds: int


@dataclass
class _Window:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    def headers(self, now: float) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at)),
            **({} if self.allowed else {"Retry-After": str(max(1, int(self.reset_at - now + 0.999)))}),
        }


class RateLimitStore:
    """In-memory fixed-window counters with expiry."""

    def __init__(
        self, clock: Callable[[], float] = time.time, sweep_seconds: float = 60.0
    ) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, _Window] = {}
        self._sweep_seconds = sweep_seconds
        self._next_sweep = clock() + sweep_seconds

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def now(self) -> float:
        return self._clock()

    def hit(self, policy: RateLimitPolicy, subject: str) -> RateLimitDecision:
        """Count one request for *subject* under *policy*.

        Rejected requests are not counted against the window.
        Closed windows of other subjects are swept every ``sweep_seconds``.
        """
        key = f"{policy.name}:{subject}"
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._drop_expired(now)
                self._next_sweep = now + self._sweep_seconds
            window = self._windows.get(key)
            if window is None or window.reset_at <= now:
                window = _Window(count=0, reset_at=now + policy.window_seconds)
                self._windows[key] = window
            if window.count >= policy.max_requests:
                return RateLimitDecision(False, policy.max_requests, 0, window.reset_at)
            window.count += 1
            return RateLimitDecision(
                True, policy.max_requests, policy.max_requests - window.count, window.reset_at
            )

    def reset(self, key: str | None = None) -> int:
        """Forget one key, or every key when *key* is None."""
        with self._lock:
            if key is None:
                cleared = len(self._windows)
                self._windows.clear()
                return cleared
            return 1 if self._windows.pop(key, None) is not None else 0

    def prune(self) -> int:
        now = self._clock()
        with self._lock:
            return self._drop_expired(now)

    def _drop_expired(self, now: float) -> int:
        expired = [k for k, w in self._windows.items() if w.reset_at <= now]
        for k in expired:
            del self._windows[k]
        return len(expired)

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        now = self._clock()
        with self._lock:
            return {
                k: {"count": w.count, "resetAt": w.reset_at}
                for k, w in self._windows.items()
                if w.reset_at > now
            }


rate_limit_store = RateLimitStore(sweep_seconds=settings.RATE_LIMIT_SWEEP_SECONDS)

INVENTORY_POLICY = RateLimitPolicy(
    "inventory", settings.RATE_LIMIT_INVENTORY_MAX, settings.RATE_LIMIT_INVENTORY_WINDOW_SECONDS
)
BULK_POLICY = RateLimitPolicy(
    "bulk", settings.RATE_LIMIT_BULK_MAX, settings.RATE_LIMIT_BULK_WINDOW_SECONDS
)
LOGIN_POLICY = RateLimitPolicy(
    "login", settings.RATE_LIMIT_LOGIN_MAX, settings.RATE_LIMIT_LOGIN_WINDOW_SECONDS
)
SIGNUP_POLICY = RateLimitPolicy(
    "signup", settings.RATE_LIMIT_SIGNUP_MAX, settings.RATE_LIMIT_SIGNUP_WINDOW_SECONDS
)


def enforce(
    policy: RateLimitPolicy,
    subject: str,
    response: Response | None = None,
    store: RateLimitStore | None = None,
) -> None:
    """Count a request and raise HTTP 429 once *policy* is exhausted."""
    if not settings.RATE_LIMIT_ENABLED:
        return
    if store is None:
        store = rate_limit_store
    decision = store.hit(policy, subject)
    headers = decision.headers(store.now())
    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many requests. Try again in {headers['Retry-After']} seconds.",
            headers=headers,
        )
    if response is not None:
        response.headers.update(headers)
