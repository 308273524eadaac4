"""Rate limiter tests: window arithmetic, key format, headers and concurrency."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from workhub.models.rate_limit import RateLimitCounter
from workhub.services.rate_limiter import (
    RateLimitResult,
    check_rate_limit,
    create_rate_limit_key,
    prune_stale_counters,
)

T0 = 1_700_000_000_000  # epoch ms
WINDOW_S = 60
WINDOW_MS = WINDOW_S * 1000


def _check(db: Session, key: str, now: int, max_requests: int = 3) -> RateLimitResult:
    return check_rate_limit(
        db, key, window_seconds=WINDOW_S, max_requests=max_requests, now_ms=now
    )


# ---------------------------------------------------------------------------
# Keys and result helpers
# ---------------------------------------------------------------------------


class TestRateLimitKey:
    def test_key_format(self) -> None:
        user_id = uuid.UUID("12345678-1234-5678-1234-567812345678")
        assert (
            create_rate_limit_key(user_id, "workspace-invite")
            == "rate_limit:workspace-invite:12345678-1234-5678-1234-567812345678"
        )

    def test_actions_do_not_share_keys(self) -> None:
        assert create_rate_limit_key("u1", "workspace-update") != create_rate_limit_key(
            "u1", "workspace-delete"
        )


class TestRateLimitResult:
    def test_retry_after_rounds_up(self) -> None:
        result = RateLimitResult(allowed=False, remaining=0, reset_at=T0 + 1_001, limit=1)
        assert result.retry_after_seconds(T0) == 2

    def test_retry_after_never_negative(self) -> None:
        result = RateLimitResult(allowed=False, remaining=0, reset_at=T0, limit=1)
        assert result.retry_after_seconds(T0 + 5_000) == 0

    def test_headers(self) -> None:
        result = RateLimitResult(allowed=True, remaining=4, reset_at=T0, limit=5)
        assert result.headers() == {
            "X-RateLimit-Limit": "5",
            "X-RateLimit-Remaining": "4",
            "X-RateLimit-Reset": str(T0),
        }


# ---------------------------------------------------------------------------
# Window behaviour
# ---------------------------------------------------------------------------


class TestCheckRateLimit:
    def test_first_request_allowed(self, db: Session) -> None:
        result = _check(db, "rate_limit:test:a", T0)
        assert result.allowed is True
        assert result.remaining == 2
        assert result.reset_at == T0 + WINDOW_MS
        assert result.limit == 3

    def test_exactly_max_allowed_then_denied(self, db: Session) -> None:
        key = "rate_limit:test:b"
        results = [_check(db, key, T0 + i) for i in range(4)]
        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]

    def test_denied_reset_is_last_counted_plus_window(self, db: Session) -> None:
        key = "rate_limit:test:c"
        _check(db, key, T0, max_requests=1)
        denied = _check(db, key, T0 + 10_000, max_requests=1)
        assert denied.allowed is False
        assert denied.reset_at == T0 + WINDOW_MS
        assert denied.retry_after_seconds(T0 + 10_000) == 50

    def test_denied_request_does_not_move_window(self, db: Session) -> None:
        key = "rate_limit:test:d"
        _check(db, key, T0, max_requests=1)
        _check(db, key, T0 + 30_000, max_requests=1)
        counter = db.scalar(select(RateLimitCounter).where(RateLimitCounter.key == key))
        assert counter.count == 1
        assert counter.last_request == T0

    def test_window_resets_after_elapsed(self, db: Session) -> None:
        key = "rate_limit:test:e"
        for i in range(3):
            _check(db, key, T0 + i)
        assert _check(db, key, T0 + 3).allowed is False
        later = T0 + 2 + WINDOW_MS + 1
        result = _check(db, key, later)
        assert result.allowed is True
        assert result.remaining == 2
        assert result.reset_at == later + WINDOW_MS

    def test_boundary_is_not_a_reset(self, db: Session) -> None:
        """Exactly one window after the last counted request still counts as inside it."""
        key = "rate_limit:test:f"
        _check(db, key, T0, max_requests=1)
        assert _check(db, key, T0 + WINDOW_MS, max_requests=1).allowed is False
        assert _check(db, key, T0 + WINDOW_MS + 1, max_requests=1).allowed is True

    def test_keys_are_independent(self, db: Session) -> None:
        _check(db, "rate_limit:test:g1", T0, max_requests=1)
        assert _check(db, "rate_limit:test:g2", T0, max_requests=1).allowed is True

    @pytest.mark.parametrize("max_requests,window", [(0, 60), (1, 0)])
    def test_invalid_policy_rejected(self, db: Session, max_requests: int, window: int) -> None:
        with pytest.raises(ValueError):
            check_rate_limit(db, "k", window_seconds=window, max_requests=max_requests, now_ms=T0)

    def test_one_row_per_key(self, db: Session) -> None:
        key = "rate_limit:test:h"
        for i in range(5):
            _check(db, key, T0 + i)
        rows = db.scalars(select(RateLimitCounter).where(RateLimitCounter.key == key)).all()
        assert len(rows) == 1


class TestPruneStaleCounters:
    def test_prunes_only_idle_counters(self, db: Session) -> None:
        _check(db, "rate_limit:test:old", T0)
        _check(db, "rate_limit:test:new", T0 + 3_600_000)
        deleted = prune_stale_counters(db, idle_seconds=1800, now_ms=T0 + 3_600_000)
        assert deleted == 1
        keys = db.scalars(select(RateLimitCounter.key)).all()
        assert keys == ["rate_limit:test:new"]


# ---------------------------------------------------------------------------
# Concurrency: separate connections against one file database
# ---------------------------------------------------------------------------


class TestConcurrentRequests:
    def test_exactly_one_allowed_under_contention(self, file_engine, run_concurrently) -> None:
        workers = 8

        def check(_index: int) -> bool:
            with Session(bind=file_engine) as session:
                return check_rate_limit(
                    session,
                    "rate_limit:test:race",
                    window_seconds=WINDOW_S,
                    max_requests=1,
                    now_ms=T0,
                ).allowed

        results, errors = run_concurrently(check, workers)

        assert errors == []
        assert results.count(True) == 1
        assert results.count(False) == workers - 1
