from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "http://localhost:5173"]


def _parse_cors_origins(v: Any) -> List[str]:
    try:
        if v is None or v == "":
            return _DEFAULT_CORS.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return _DEFAULT_CORS.copy()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CORS.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or _DEFAULT_CORS.copy()
    except ValueError:
        return _DEFAULT_CORS.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    secret_key: str = Field(default="change-me-in-production-min-32-chars")

    # Ledger store: "mongo" or "memory"
    ledger_backend: str = Field(default="mongo", alias="LEDGER_BACKEND")
    transaction_max_attempts: int = Field(default=100, alias="TRANSACTION_MAX_ATTEMPTS")
    transaction_timeout_seconds: float = Field(default=120.0, alias="TRANSACTION_TIMEOUT_SECONDS")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="wildwatch", alias="MONGODB_DB_NAME")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(getattr(self, "cors_origins_raw", None))

    # Reward schedule (points)
    points_blog_publish: int = 150
    points_social_publish: int = 100
    points_like_received: int = 10
    points_comment_received: int = 10
    points_share_received: int = 10
    points_sighting_submission: int = 10
    points_sighting_approved: int = 50

    # Leaderboard
    leaderboard_cache_ttl_seconds: float = 60.0

    # Usernames registered as admin accounts
    admin_usernames_raw: str = Field(default="", alias="ADMIN_USERNAMES", description="Comma-separated")

    @property
    def admin_usernames(self) -> set[str]:
        return {u.strip().lower() for u in self.admin_usernames_raw.split(",") if u.strip()}


@lru_cache
def get_settings() -> Settings:
    return Settings()
