"""RateLimitCounter model: one row per (action, actor) key."""

from __future__ import annotations

import uuid

from sqlalchemy import BigInteger, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from workhub.db.session import Base


class RateLimitCounter(Base):
    """Fixed-window counter. ``last_request`` is epoch milliseconds."""

    __tablename__ = "rate_limit_counters"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_request: Mapped[int] = mapped_column(BigInteger, nullable=False)
