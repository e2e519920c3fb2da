"""Runtime request-limiting helpers."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

from .constants import DEFAULT_RATE_LIMIT_MAX_REQUESTS, DEFAULT_RATE_LIMIT_WINDOW_MS
from .errors import ErrorKind, FirebaseMCPError


@dataclass(frozen=True)
class RateLimitConfig:
    """Request budget for one limiter instance."""

    max_requests: int = DEFAULT_RATE_LIMIT_MAX_REQUESTS
    window_ms: int = DEFAULT_RATE_LIMIT_WINDOW_MS

    def __post_init__(self) -> None:
        if self.max_requests <= 0:
            raise ValueError("rate-limit max_requests must be > 0.")
        if self.window_ms <= 0:
            raise ValueError("rate-limit window_ms must be > 0.")

    @property
    def window_seconds(self) -> float:
        return self.window_ms / 1000


@dataclass(frozen=True)
class RateLimitStatus:
    count: int
    remaining_time_ms: int


@dataclass
class _RateLimitRecord:
    count: int
    window_reset_at: float


class RateLimiter:
    """In-memory fixed-window limiter keyed by tool and caller."""

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        now_fn: Callable[[], float] | None = None,
    ) -> None:
        self._lock = Lock()
        self._records: dict[str, _RateLimitRecord] = {}
        self._now_fn = now_fn or time.monotonic
        self.config = config or RateLimitConfig()

    def configure(self, config: RateLimitConfig) -> None:
        """Swap the request budget and clear tracked windows."""
        with self._lock:
            self.config = config
            self._records.clear()

    def check(self, key: str) -> bool:
        """Record one hit for ``key`` and return whether it is admitted."""
        admitted, _ = self._hit(key)
        return admitted

    def enforce(self, key: str) -> None:
        """Record one hit for ``key`` and raise when the budget is exhausted."""
        admitted, retry_after_seconds = self._hit(key)
        if admitted:
            return
        raise FirebaseMCPError(
            ErrorKind.RATE_LIMIT,
            f"Rate limit exceeded for '{key}'. "
            f"Please try again in {retry_after_seconds} seconds.",
            "Wait for the current window to reset or raise rate_limit.max_requests.",
            {"retry_after_seconds": retry_after_seconds},
        )

    def reset(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)

    def get_status(self, key: str) -> RateLimitStatus | None:
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return None
            remaining = max(0.0, record.window_reset_at - self._now_fn())
            return RateLimitStatus(
                count=record.count,
                remaining_time_ms=int(remaining * 1000),
            )

    def _hit(self, key: str) -> tuple[bool, int]:
        with self._lock:
            now = self._now_fn()
            self._purge(now)
            record = self._records.get(key)
            if record is None:
                self._records[key] = _RateLimitRecord(
                    count=1,
                    window_reset_at=now + self.config.window_seconds,
                )
                return True, 0

            record.count += 1
            if record.count > self.config.max_requests:
                return False, max(1, math.ceil(record.window_reset_at - now))
            return True, 0

    def _purge(self, now: float) -> None:
        expired = [key for key, record in self._records.items() if now >= record.window_reset_at]
        for key in expired:
            del self._records[key]
