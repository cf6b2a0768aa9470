"""Application settings via Pydantic Settings.

Everything is read from the environment (or a local .env file). DATABASE_URL
picks the storage backend; CACHE_URL turns on the Redis mirror.
"""

from functools import lru_cache
import json
from typing import Annotated
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# libpq spelling of the SSL mode; asyncpg takes the same values as `ssl=`
_SSL_QUERY_KEYS = ("sslmode", "ssl")


def split_ssl_mode(database_url: str) -> tuple[str, dict[str, object]]:
    """Move an `sslmode=` query parameter into asyncpg connect_args.

    asyncpg rejects `sslmode` in the DSN, but hosted Postgres URLs usually
    carry it, e.g. `...?sslmode=require` -> (url without it, {"ssl": "require"}).
    """
    parts = urlsplit(database_url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    ssl_mode = next((v for k, v in query if k.lower() in _SSL_QUERY_KEYS), None)
    if ssl_mode is None:
        return database_url, {}

    kept = [(k, v) for k, v in query if k.lower() not in _SSL_QUERY_KEYS]
    url = urlunsplit(parts._replace(query=urlencode(kept)))
    if ssl_mode.lower() in ("disable", "false", "0"):
        return url, {"ssl": False}
    return url, {"ssl": ssl_mode.lower()}


def is_postgres_url(url: str) -> bool:
    """True when the URL points at a PostgreSQL server."""
    return url.strip().startswith(("postgres://", "postgresql://", "postgresql+asyncpg://"))


def normalize_database_url(url: str) -> str:
    """Map the accepted DATABASE_URL spellings onto SQLAlchemy async URLs.

    - postgres:// / postgresql:// -> postgresql+asyncpg://
    - file:./data/x.db / sqlite:///x.db -> sqlite+aiosqlite:///x.db
    """
    url = url.strip()
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    if url.startswith("file:"):
        return "sqlite+aiosqlite:///" + url[len("file:"):]
    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite:///" + url[len("sqlite:///"):]
    return url


def _split_origins(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                value = json.loads(text)
            except json.JSONDecodeError:
                value = text.strip("[]").split(",")
        else:
            value = text.split(",")
    if not isinstance(value, (list, tuple)):
        value = [value]
    return [str(v).strip().strip('"') for v in value if str(v).strip()]


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "Tally Stock Viewer API"
    app_version: str = "0.1.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Authoritative store: SQLite file by default, PostgreSQL when the URL says so
    database_url: str = "sqlite+aiosqlite:///./data/stockviewer.db"

    # Non-authoritative cache store (Redis). Empty disables the cache.
    cache_url: str = Field(
        default="",
        validation_alias=AliasChoices("CACHE_URL", "REDIS_URL"),
    )

    # CORS: JSON array or comma-separated list
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        validation_alias=AliasChoices("CORS_ORIGINS", "ALLOWED_ORIGINS"),
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v: object) -> list[str]:
        return _split_origins(v)

    # File import
    default_export_path: str = Field(
        default="C:\\Tally.ERP9\\Export\\GdwnSum.xlsx",
        validation_alias=AliasChoices("DEFAULT_EXPORT_PATH"),
    )

    # Tally XML HTTP API
    tally_host: str = Field(default="localhost", validation_alias=AliasChoices("TALLY_HOST"))
    tally_port: int = Field(default=9000, validation_alias=AliasChoices("TALLY_PORT"), ge=1, le=65535)
    tally_timeout_seconds: float = Field(
        default=30.0,
        validation_alias=AliasChoices("TALLY_TIMEOUT_SECONDS", "TALLY_TIMEOUT"),
        gt=0,
        le=600,
    )
    tally_company: str = Field(
        default="Ralhum Trading Company (Pv) Ltd - 21/22",
        validation_alias=AliasChoices("TALLY_COMPANY"),
    )
    tally_godown: str = Field(
        default="Feeder Stores",
        validation_alias=AliasChoices("TALLY_GODOWN", "TALLY_LOCATION"),
    )

    # Scheduled refresh
    tally_refresh_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("TALLY_REFRESH_ENABLED"),
    )
    tally_refresh_interval_seconds: float = Field(
        default=3600.0,
        validation_alias=AliasChoices("TALLY_REFRESH_INTERVAL_SECONDS"),
        gt=0,
    )
    tally_refresh_on_start: bool = Field(
        default=False,
        validation_alias=AliasChoices("TALLY_REFRESH_ON_START"),
    )
    tally_scheduler_mode: str = Field(
        default="",
        validation_alias=AliasChoices("TALLY_SCHEDULER_MODE"),
        description='"embedded" runs the timer in-process; "api" relies on an external cron.',
    )

    @property
    def tally_base_url(self) -> str:
        return f"http://{self.tally_host}:{self.tally_port}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
