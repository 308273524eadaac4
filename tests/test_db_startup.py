"""
Database startup and fail-fast tests.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from workhub.db.session import engine_options


def test_app_fails_to_start_when_db_unreachable() -> None:
    """App fails fast when database is unreachable at startup."""
    with patch("workhub.main.check_db_connection") as mock_check:
        mock_check.side_effect = Exception("Database unreachable")

        from workhub.main import create_app

        app = create_app()

        with pytest.raises(Exception, match="Database unreachable"):
            with TestClient(app) as test_client:
                test_client.get("/health")


def test_postgres_engine_options_set_timeout_and_utc() -> None:
    options = engine_options("postgresql+psycopg://u@h/db", connect_timeout=7)
    assert options["pool_pre_ping"] is True
    assert options["connect_args"]["connect_timeout"] == 7
    assert options["connect_args"]["options"] == "-c timezone=UTC"


def test_sqlite_engine_options_allow_threads() -> None:
    options = engine_options("sqlite+pysqlite:///:memory:")
    assert options["connect_args"] == {"check_same_thread": False}
    assert "pool_size" not in options
