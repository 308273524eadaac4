#!/usr/bin/env python3
"""Delete rate limit counters that have been idle for a while.

Usage:
    python scripts/prune_rate_limits.py
    python scripts/prune_rate_limits.py --idle-hours 48

A counter idle for longer than every policy window carries no state: the next
request for its key starts a fresh window either way. Run from cron.
Exits 0 on success, 1 on failure.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from workhub.config import get_settings
from workhub.db.session import SessionLocal
from workhub.services.rate_limiter import prune_stale_counters


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--idle-hours",
        type=int,
        default=24,
        help="Delete counters with no counted request for this many hours (default: 24)",
    )
    args = parser.parse_args(argv)

    longest_window = max(p.window_seconds for p in get_settings().rate_limit_policies.values())
    idle_seconds = args.idle_hours * 3600
    if idle_seconds < longest_window:
        print(
            f"ERROR: --idle-hours must cover the longest window ({longest_window}s)",
            file=sys.stderr,
        )
        return 1

    db = SessionLocal()
    try:
        deleted = prune_stale_counters(db, idle_seconds)
        print(f"deleted={deleted} idle_seconds={idle_seconds}")
        return 0
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
