"""Concurrency tests against PostgreSQL.

Skipped unless TEST_DATABASE_URL points at a disposable PostgreSQL database.
Each test creates the schema from the models and drops it afterwards.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

pytestmark = pytest.mark.integration

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "")
if not TEST_DATABASE_URL.startswith("postgresql"):
    pytest.skip("TEST_DATABASE_URL (PostgreSQL) not set", allow_module_level=True)


@pytest.fixture
def pg_engine():
    import workhub.models  # noqa: F401
    from workhub.db.session import Base, engine_options

    pg = create_engine(TEST_DATABASE_URL, **engine_options(TEST_DATABASE_URL))
    Base.metadata.drop_all(pg)
    Base.metadata.create_all(pg)
    try:
        yield pg
    finally:
        Base.metadata.drop_all(pg)
        pg.dispose()


def _run_concurrently(engine, workers: int, fn: Callable[[Session], object]) -> tuple[list, list]:
    barrier = threading.Barrier(workers)
    results: list = []
    errors: list = []
    lock = threading.Lock()

    def worker() -> None:
        session = Session(bind=engine, expire_on_commit=False)
        try:
            barrier.wait()
            value = fn(session)
            with lock:
                results.append(value)
        except Exception as e:  # collected for the caller to assert on
            with lock:
                errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


def _seed(engine):
    from workhub.models import Project, User, Workspace

    with Session(bind=engine, expire_on_commit=False) as session:
        owner = User(name="Owner", email="owner@example.com")
        session.add(owner)
        session.flush()
        workspace = Workspace(name="Acme", slug="acme", owner_id=owner.id)
        session.add(workspace)
        session.flush()
        project = Project(workspace_id=workspace.id, name="Platform", identifier="PLAT")
        session.add(project)
        session.commit()
        return owner, workspace, project


def test_rate_limit_allows_exactly_max(pg_engine) -> None:
    from workhub.services.rate_limiter import check_rate_limit

    def attempt(session: Session) -> bool:
        return check_rate_limit(
            session, "rate_limit:test:pg", window_seconds=60, max_requests=3, now_ms=1_700_000_000_000
        ).allowed

    results, errors = _run_concurrently(pg_engine, 10, attempt)
    assert errors == []
    assert results.count(True) == 3


def test_concurrent_issue_numbers_are_distinct(pg_engine) -> None:
    from workhub.models import Issue
    from workhub.services.issue_service import create_issue

    owner, workspace, project = _seed(pg_engine)

    def attempt(session: Session) -> int:
        return create_issue(session, workspace, project, owner, "Race").number

    results, errors = _run_concurrently(pg_engine, 10, attempt)
    assert errors == []
    assert sorted(results) == list(range(1, 11))
    with Session(bind=pg_engine) as session:
        assert session.scalar(select(func.count(Issue.id))) == 10


def test_concurrent_invites_create_one_pending(pg_engine) -> None:
    from workhub.errors import ConflictError
    from workhub.models import WorkspaceInvitation
    from workhub.services.invitation_service import create_invitation

    owner, workspace, _project = _seed(pg_engine)

    def attempt(session: Session) -> str:
        try:
            create_invitation(session, workspace, owner, "owner", "race@example.com", "member")
            return "created"
        except ConflictError:
            return "conflict"

    results, errors = _run_concurrently(pg_engine, 6, attempt)
    assert errors == []
    assert results.count("created") == 1
    with Session(bind=pg_engine) as session:
        pending = session.scalar(
            select(func.count(WorkspaceInvitation.id)).where(WorkspaceInvitation.status == "pending")
        )
        assert pending == 1
