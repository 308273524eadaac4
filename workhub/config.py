"""
Application configuration. Loads from environment variables.
Secrets and sensitive config must never be hardcoded.
"""

import os

from dotenv import load_dotenv

load_dotenv()
from dataclasses import dataclass
from functools import lru_cache


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Return cached settings instance."""
    return Settings()


@dataclass(frozen=True)
class RateLimitPolicy:
    """Window and request ceiling for one rate-limited action."""

    max_requests: int
    window_seconds: int


# Action names used in rate-limit keys
ACTION_WORKSPACE_INVITE = "workspace-invite"
ACTION_WORKSPACE_UPDATE = "workspace-update"
ACTION_WORKSPACE_DELETE = "workspace-delete"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Settings:
    """Application settings loaded from environment."""

    # App
    app_name: str = "Workhub"
    debug: bool = False
    cors_allow_origins: list[str] = []

    # Database (postgresql+psycopg for psycopg3; sqlite:// accepted for local runs)
    database_url: str = "postgresql+psycopg://localhost:5432/workhub_dev"
    db_connect_timeout: int = 10  # seconds

    # Security
    secret_key: str = ""
    access_token_expire_minutes: int = 60 * 24

    # Invitations
    invitation_expiry_days: int = 7

    # Rate limiting (fixed window anchored on each key's last counted request)
    rate_limit_enabled: bool = True
    rate_limit_policies: dict[str, RateLimitPolicy] = {}

    def __init__(self) -> None:
        self.app_name = os.getenv("APP_NAME", self.app_name)
        self.debug = os.getenv("DEBUG", "false").lower() == "true"
        origins = os.getenv("CORS_ALLOW_ORIGINS", "")
        self.cors_allow_origins = [o.strip() for o in origins.split(",") if o.strip()]

        default_user = os.getenv("PGUSER") or os.getenv("USER") or "postgres"
        default_url = (
            f"postgresql+psycopg://{default_user}:"
            f"{os.getenv('PGPASSWORD', '')}@"
            f"{os.getenv('PGHOST', 'localhost')}:"
            f"{os.getenv('PGPORT', '5432')}/"
            f"{os.getenv('PGDATABASE', 'workhub_dev')}"
        )
        raw_url = os.getenv("DATABASE_URL", default_url)
        # Ensure psycopg3 driver if URL uses generic postgresql://
        if raw_url.startswith("postgres://"):
            raw_url = raw_url.replace("postgres://", "postgresql+psycopg://", 1)
        if raw_url.startswith("postgresql://") and not raw_url.startswith("postgresql+psycopg"):
            raw_url = raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
        self.database_url = raw_url
        self.db_connect_timeout = _env_int("DB_CONNECT_TIMEOUT", self.db_connect_timeout)

        self.secret_key = os.getenv("SECRET_KEY", "")
        self.access_token_expire_minutes = _env_int(
            "ACCESS_TOKEN_EXPIRE_MINUTES", self.access_token_expire_minutes
        )

        self.invitation_expiry_days = _env_int(
            "INVITATION_EXPIRY_DAYS", self.invitation_expiry_days
        )

        self.rate_limit_enabled = _env_bool("RATE_LIMIT_ENABLED", True)
        self.rate_limit_policies = {
            ACTION_WORKSPACE_INVITE: RateLimitPolicy(
                max_requests=_env_int("RATE_LIMIT_INVITE_MAX", 10),
                window_seconds=_env_int("RATE_LIMIT_INVITE_WINDOW_SECONDS", 60),
            ),
            ACTION_WORKSPACE_UPDATE: RateLimitPolicy(
                max_requests=_env_int("RATE_LIMIT_UPDATE_MAX", 10),
                window_seconds=_env_int("RATE_LIMIT_UPDATE_WINDOW_SECONDS", 60),
            ),
            ACTION_WORKSPACE_DELETE: RateLimitPolicy(
                max_requests=_env_int("RATE_LIMIT_DELETE_MAX", 3),
                window_seconds=_env_int("RATE_LIMIT_DELETE_WINDOW_SECONDS", 300),
            ),
        }

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def rate_limit_policy(self, action: str) -> RateLimitPolicy:
        """Return the policy for a rate-limited action. Raises KeyError for unknown actions."""
        return self.rate_limit_policies[action]
