"""Per-actor, per-action rate limiting backed by the rate_limit_counters table.

Fixed window anchored on each key's last counted request: a key's window is
reset once more than ``window_seconds`` have passed since its last counted
request, not at wall-clock boundaries. A burst that straddles a reset can
therefore exceed ``max_requests`` inside a strict rolling window.

The read-modify-write runs in one transaction with the counter row locked
(SELECT ... FOR UPDATE), so concurrent requests sharing a key serialize on it.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from workhub.models.rate_limit import RateLimitCounter
from workhub.timeutils import now_ms as current_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one check. ``reset_at`` is epoch milliseconds."""

    allowed: bool
    remaining: int
    reset_at: int
    limit: int

    def retry_after_seconds(self, now_ms: int | None = None) -> int:
        """Whole seconds until ``reset_at`` (never negative)."""
        now = current_ms() if now_ms is None else now_ms
        remaining_ms = self.reset_at - now
        if remaining_ms <= 0:
            return 0
        return -(-remaining_ms // 1000)

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


def create_rate_limit_key(user_id: str | UUID, action: str) -> str:
    """Counter key for one (action, actor) pair."""
    return f"rate_limit:{action}:{user_id}"


def _ensure_counter_row(db: Session, key: str, now: int) -> None:
    """Insert a zero counter for ``key`` unless one exists. Safe under concurrency."""
    values = {"id": uuid.uuid4(), "key": key, "count": 0, "last_request": now}
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        db.execute(pg_insert(RateLimitCounter).values(**values).on_conflict_do_nothing(index_elements=["key"]))
        return
    if dialect == "sqlite":
        db.execute(sqlite_insert(RateLimitCounter).values(**values).on_conflict_do_nothing(index_elements=["key"]))
        return
    # Other backends: attempt the insert inside a savepoint and ignore the duplicate
    try:
        with db.begin_nested():
            db.add(RateLimitCounter(**values))
    except IntegrityError:
        pass


def check_rate_limit(
    db: Session,
    key: str,
    *,
    window_seconds: int,
    max_requests: int,
    now_ms: int | None = None,
) -> RateLimitResult:
    """Count one request against ``key`` and report whether it is allowed.

    Commits the session. Storage errors roll back and propagate.
    """
    if max_requests < 1:
        raise ValueError("max_requests must be at least 1")
    if window_seconds < 1:
        raise ValueError("window_seconds must be at least 1")

    now = current_ms() if now_ms is None else now_ms
    window_ms = window_seconds * 1000

    try:
        _ensure_counter_row(db, key, now)
        record = db.execute(
            select(RateLimitCounter)
            .where(RateLimitCounter.key == key)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()

        if record.count == 0 or now - record.last_request > window_ms:
            # First request for this key, or the previous window has elapsed
            record.count = 1
            record.last_request = now
            result = RateLimitResult(
                allowed=True,
                remaining=max_requests - 1,
                reset_at=now + window_ms,
                limit=max_requests,
            )
        elif record.count >= max_requests:
            result = RateLimitResult(
                allowed=False,
                remaining=0,
                reset_at=record.last_request + window_ms,
                limit=max_requests,
            )
        else:
            reset_at = record.last_request + window_ms
            record.count += 1
            record.last_request = now
            result = RateLimitResult(
                allowed=True,
                remaining=max_requests - record.count,
                reset_at=reset_at,
                limit=max_requests,
            )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    if not result.allowed:
        logger.warning(
            "Rate limit exceeded: key=%s limit=%d window_seconds=%d reset_at=%d",
            key,
            max_requests,
            window_seconds,
            result.reset_at,
        )
    return result


def prune_stale_counters(db: Session, idle_seconds: int, now_ms: int | None = None) -> int:
    """Delete counters whose last counted request is older than ``idle_seconds``.

    A pruned key behaves exactly like an expired window on its next request.
    Returns the number of rows deleted.
    """
    now = current_ms() if now_ms is None else now_ms
    cutoff = now - idle_seconds * 1000
    result = db.execute(delete(RateLimitCounter).where(RateLimitCounter.last_request < cutoff))
    db.commit()
    deleted = result.rowcount or 0
    logger.info("Pruned %d stale rate limit counters (idle > %ds)", deleted, idle_seconds)
    return deleted
