"""
Pytest configuration and fixtures.

Tests run against an in-memory SQLite database created from the model
metadata; the PostgreSQL-only suite under tests/integration needs
TEST_DATABASE_URL.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from tests.test_constants import TEST_EMAIL_DOMAIN, TEST_SECRET_KEY

# Force test DB when pytest runs; don't inherit from .env
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.setdefault("SECRET_KEY", TEST_SECRET_KEY)
os.environ["RATE_LIMIT_ENABLED"] = "true"


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Settings are cached; tests that patch env vars need a fresh instance."""
    from workhub.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def engine() -> Engine:
    """Fresh in-memory database per test, one shared connection."""
    import workhub.models  # noqa: F401
    from workhub.db.session import Base, configure_sqlite_engine

    test_engine = configure_sqlite_engine(
        create_engine(
            "sqlite+pysqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    )
    Base.metadata.create_all(test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(test_engine)
        test_engine.dispose()


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """File-backed SQLite database for tests that race separate connections."""
    import workhub.models  # noqa: F401
    from workhub.db.session import Base, configure_sqlite_engine

    test_engine = configure_sqlite_engine(
        create_engine(
            f"sqlite+pysqlite:///{tmp_path / 'race.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    )
    Base.metadata.create_all(test_engine)
    try:
        yield test_engine
    finally:
        test_engine.dispose()


@pytest.fixture
def run_concurrently() -> Callable[..., tuple[list, list[BaseException]]]:
    """Start ``workers`` threads on ``target(index)`` behind a barrier.

    Returns the collected results and any raised exceptions.
    """
    import threading

    def _run(target: Callable[[int], object], workers: int) -> tuple[list, list[BaseException]]:
        barrier = threading.Barrier(workers)
        results: list = []
        errors: list[BaseException] = []
        lock = threading.Lock()

        def worker(index: int) -> None:
            try:
                barrier.wait()
                result = target(index)
                with lock:
                    results.append(result)
            except BaseException as e:  # collected for the caller to assert on
                with lock:
                    errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results, errors

    return _run


@pytest.fixture
def db(engine: Engine) -> Session:
    """Database session. Services commit, so isolation comes from the per-test engine."""
    session = Session(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db: Session) -> TestClient:
    """TestClient with get_db overridden to use the test session."""
    from workhub.db.session import get_db
    from workhub.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    c = TestClient(app, raise_server_exceptions=False)
    yield c
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def make_user(db: Session) -> Callable[..., "User"]:
    """Factory for persisted users with unique emails."""
    from workhub.models.user import User

    counter = itertools.count(1)

    def _make(name: str | None = None, email: str | None = None) -> User:
        n = next(counter)
        user = User(
            name=name or f"User {n}",
            email=email or f"user{n}@{TEST_EMAIL_DOMAIN}",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Bearer headers for a user."""
    from workhub.services.auth import create_user_token

    def _headers(user) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_user_token(user)}"}

    return _headers


@pytest.fixture
def owner(make_user):
    return make_user(name="Olivia Owner", email=f"owner@{TEST_EMAIL_DOMAIN}")


@pytest.fixture
def workspace(db: Session, owner):
    """Workspace ``acme`` owned by ``owner``."""
    from workhub.services.workspace_service import create_workspace

    return create_workspace(db, owner, "Acme", "acme")


@pytest.fixture
def add_member(db: Session):
    """Attach a user to a workspace with a stored role."""
    from workhub.models.workspace_member import WorkspaceMember

    def _add(workspace, user, role: str = "member"):
        member = WorkspaceMember(workspace_id=workspace.id, user_id=user.id, role=role)
        db.add(member)
        db.commit()
        return member

    return _add
