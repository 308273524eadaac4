#!/usr/bin/env python3
"""Create a local user and print an access token for it.

Usage:
    python scripts/create_dev_user.py --email dev@example.com --name "Dev User"

Users are normally provisioned by the identity provider. This script exists
for local development against an empty database. An existing user with the
same email is reused. Exits 0 on success, 1 on failure.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import select

from workhub.db.session import SessionLocal
from workhub.models.user import User
from workhub.services.auth import create_user_token


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a local user and print a token")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Dev User")
    parser.add_argument("--username", default=None)
    args = parser.parse_args(argv)

    email = args.email.strip().lower()
    db = SessionLocal()
    try:
        user = db.scalar(select(User).where(User.email == email))
        if user is None:
            user = User(name=args.name, email=email, username=args.username)
            db.add(user)
            db.commit()
            db.refresh(user)
            print(f"created user_id={user.id} email={email}")
        else:
            print(f"exists user_id={user.id} email={email}")
        print(create_user_token(user))
        return 0
    except Exception as e:
        db.rollback()
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
