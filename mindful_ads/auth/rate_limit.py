"""Fixed-window rate limiting keyed by ``(client_ip, user_key)``.

``InMemoryRateLimiter`` keeps its counters in process memory, so each app
instance limits independently. Deployments running several instances should
provide a shared-store implementation of :class:`RateLimiter` and override
the ``get_*_rate_limiter`` dependencies.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Tuple

from fastapi import Depends, Request

from mindful_ads.auth.dependencies import AuthContext, get_current_user
from mindful_ads.config import settings
from mindful_ads.errors import RateLimitError

logger = logging.getLogger("security.audit")

RateLimitKey = Tuple[str, str]


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: int = 0


class RateLimiter(Protocol):
    def check(self, key: RateLimitKey) -> RateLimitDecision: ...

    def hit(self, key: RateLimitKey) -> RateLimitDecision: ...

    def reset(self, key: RateLimitKey) -> None: ...


class InMemoryRateLimiter:
    def __init__(
        self,
        *,
        max_attempts: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[RateLimitKey, tuple[float, int]] = {}

    def _current(self, key: RateLimitKey, now: float) -> Optional[tuple[float, int]]:
        window = self._windows.get(key)
        if window is None:
            return None
        started_at, _count = window
        if now - started_at >= self.window_seconds:
            del self._windows[key]
            return None
        return window

    def _decision(self, started_at: float, count: int, now: float) -> RateLimitDecision:
        if count <= self.max_attempts:
            return RateLimitDecision(allowed=True, remaining=self.max_attempts - count)
        retry_after = max(1, math.ceil(started_at + self.window_seconds - now))
        return RateLimitDecision(allowed=False, remaining=0, retry_after=retry_after)

    def check(self, key: RateLimitKey) -> RateLimitDecision:
        """Would one more attempt be allowed? Does not count anything."""
        with self._lock:
            now = self._clock()
            window = self._current(key, now)
            if window is None:
                return RateLimitDecision(allowed=True, remaining=self.max_attempts)
            started_at, count = window
            return self._decision(started_at, count + 1, now)

    def hit(self, key: RateLimitKey) -> RateLimitDecision:
        with self._lock:
            now = self._clock()
            window = self._current(key, now)
            started_at, count = window if window is not None else (now, 0)
            count += 1
            self._windows[key] = (started_at, count)
            return self._decision(started_at, count, now)

    def reset(self, key: RateLimitKey) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()


_login_limiter = InMemoryRateLimiter(
    max_attempts=settings.LOGIN_RATE_LIMIT_ATTEMPTS,
    window_seconds=settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS,
)
_sensitive_limiter = InMemoryRateLimiter(
    max_attempts=settings.SENSITIVE_RATE_LIMIT_ATTEMPTS,
    window_seconds=settings.SENSITIVE_RATE_LIMIT_WINDOW_SECONDS,
)


def get_login_rate_limiter() -> RateLimiter:
    return _login_limiter


def get_sensitive_rate_limiter() -> RateLimiter:
    return _sensitive_limiter


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


def raise_rate_limited(key: RateLimitKey, decision: RateLimitDecision, *, scope: str) -> None:
    logger.warning(
        "Rate limit exceeded",
        extra={"scope": scope, "client_ip": key[0], "user_key": key[1], "retry_after": decision.retry_after},
    )
    raise RateLimitError(
        "Too many attempts. Please try again later.",
        retry_after=decision.retry_after,
    )


def enforce_sensitive_rate_limit(
    request: Request,
    auth: AuthContext = Depends(get_current_user),
    limiter: RateLimiter = Depends(get_sensitive_rate_limiter),
) -> None:
    key = (client_ip(request), auth.id)
    decision = limiter.hit(key)
    if not decision.allowed:
        raise_rate_limited(key, decision, scope="sensitive")
