from __future__ import annotations

import threading

import pytest

from firebase_mcp.errors import ErrorKind, FirebaseMCPError
from firebase_mcp.limits import RateLimitConfig, RateLimiter


def test_rate_limiter_admits_up_to_max_requests_per_window(fake_clock) -> None:
    limiter = RateLimiter(RateLimitConfig(max_requests=2, window_ms=60_000), now_fn=fake_clock.now)

    assert limiter.check("get_document:alice") is True
    assert limiter.check("get_document:alice") is True
    assert limiter.check("get_document:alice") is False

    status = limiter.get_status("get_document:alice")
    assert status is not None
    assert status.count == 3
    assert status.remaining_time_ms == 60_000


def test_rate_limiter_keys_are_independent(fake_clock) -> None:
    limiter = RateLimiter(RateLimitConfig(max_requests=1, window_ms=1_000), now_fn=fake_clock.now)

    assert limiter.check("get_document:alice") is True
    assert limiter.check("get_document:bob") is True
    assert limiter.check("query_collection:alice") is True
    assert limiter.check("get_document:alice") is False


def test_rate_limiter_window_expiry_starts_fresh_record(fake_clock) -> None:
    limiter = RateLimiter(RateLimitConfig(max_requests=1, window_ms=10_000), now_fn=fake_clock.now)
    assert limiter.check("k") is True
    assert limiter.check("k") is False

    fake_clock.advance(9.5)
    assert limiter.check("k") is False

    fake_clock.advance(0.5)
    assert limiter.check("k") is True
    status = limiter.get_status("k")
    assert status is not None
    assert status.count == 1


def test_rate_limiter_purges_expired_records_lazily(fake_clock) -> None:
    limiter = RateLimiter(RateLimitConfig(max_requests=5, window_ms=1_000), now_fn=fake_clock.now)
    limiter.check("stale")
    fake_clock.advance(2)

    limiter.check("fresh")

    assert limiter.get_status("stale") is None
    assert limiter.get_status("fresh") is not None


def test_enforce_raises_rate_limit_with_retry_after(fake_clock) -> None:
    limiter = RateLimiter(RateLimitConfig(max_requests=1, window_ms=60_000), now_fn=fake_clock.now)
    limiter.enforce("delete_document:anonymous")
    fake_clock.advance(15.2)

    with pytest.raises(FirebaseMCPError) as exc_info:
        limiter.enforce("delete_document:anonymous")

    error = exc_info.value
    assert error.kind is ErrorKind.RATE_LIMIT
    assert error.message == (
        "Rate limit exceeded for 'delete_document:anonymous'. "
        "Please try again in 45 seconds."
    )
    assert error.details == {"retry_after_seconds": 45}


def test_enforce_reports_at_least_one_second(fake_clock) -> None:
    limiter = RateLimiter(RateLimitConfig(max_requests=1, window_ms=1_000), now_fn=fake_clock.now)
    limiter.enforce("k")
    fake_clock.advance(0.999)

    with pytest.raises(FirebaseMCPError) as exc_info:
        limiter.enforce("k")
    assert exc_info.value.details["retry_after_seconds"] == 1


def test_reset_and_configure_clear_tracked_windows(fake_clock) -> None:
    limiter = RateLimiter(RateLimitConfig(max_requests=1, window_ms=60_000), now_fn=fake_clock.now)
    limiter.check("a")
    limiter.check("b")

    limiter.reset("a")
    assert limiter.get_status("a") is None
    assert limiter.check("a") is True
    assert limiter.check("b") is False

    limiter.configure(RateLimitConfig(max_requests=3, window_ms=60_000))
    assert limiter.get_status("b") is None
    assert limiter.check("b") is True
    assert limiter.config.max_requests == 3


def test_get_status_for_unknown_key_is_none() -> None:
    assert RateLimiter().get_status("missing") is None


@pytest.mark.parametrize("kwargs", [{"max_requests": 0}, {"window_ms": 0}, {"max_requests": -1}])
def test_rate_limit_config_rejects_non_positive_values(kwargs) -> None:
    with pytest.raises(ValueError):
        RateLimitConfig(**kwargs)


def test_rate_limiter_counts_concurrent_hits_exactly() -> None:
    limiter = RateLimiter(RateLimitConfig(max_requests=50, window_ms=60_000))
    results: list[bool] = []
    results_lock = threading.Lock()

    def worker() -> None:
        for _ in range(10):
            admitted = limiter.check("shared")
            with results_lock:
                results.append(admitted)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 50
    assert results.count(False) == 50
