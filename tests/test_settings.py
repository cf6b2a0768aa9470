"""Tests for configuration parsing and backend selection."""

import pytest

from stockviewer.settings import Settings, is_postgres_url, normalize_database_url, split_ssl_mode
from stockviewer.stores.factory import create_cache, create_provider


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("postgres://u:p@db/stock", "postgresql+asyncpg://u:p@db/stock"),
        ("postgresql://u:p@db/stock", "postgresql+asyncpg://u:p@db/stock"),
        ("file:./data/stock.db", "sqlite+aiosqlite:///./data/stock.db"),
        ("sqlite:///data/stock.db", "sqlite+aiosqlite:///data/stock.db"),
        (" sqlite+aiosqlite:///x.db ", "sqlite+aiosqlite:///x.db"),
    ],
)
def test_normalize_database_url(raw, expected):
    assert normalize_database_url(raw) == expected


def test_is_postgres_url():
    assert is_postgres_url("postgres://db/x")
    assert is_postgres_url("postgresql+asyncpg://db/x")
    assert not is_postgres_url("file:./x.db")


def test_split_ssl_mode():
    url, args = split_ssl_mode("postgresql+asyncpg://u@db:5432/stock?sslmode=require&application_name=sv")
    assert url == "postgresql+asyncpg://u@db:5432/stock?application_name=sv"
    assert args == {"ssl": "require"}

    assert split_ssl_mode("postgresql+asyncpg://u@db/stock?sslmode=disable")[1] == {"ssl": False}
    assert split_ssl_mode("postgresql+asyncpg://u@db/stock") == ("postgresql+asyncpg://u@db/stock", {})


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("https://a.com, http://localhost:3000", ["https://a.com", "http://localhost:3000"]),
        ('["https://a.com","http://b.com"]', ["https://a.com", "http://b.com"]),
        ("", []),
    ],
)
def test_cors_origins_from_env(monkeypatch: pytest.MonkeyPatch, raw, expected):
    monkeypatch.setenv("CORS_ORIGINS", raw)
    assert Settings(_env_file=None).cors_origins == expected


def test_tally_settings_from_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("TALLY_HOST", "10.0.0.5")
    monkeypatch.setenv("TALLY_PORT", "9001")
    monkeypatch.setenv("TALLY_LOCATION", "Main Location")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/0")

    settings = Settings(_env_file=None)

    assert settings.tally_base_url == "http://10.0.0.5:9001"
    assert settings.tally_godown == "Main Location"
    assert settings.cache_url == "redis://cache:6379/0"


async def test_create_provider_by_scheme(tmp_path):
    sqlite = create_provider(f"file:{tmp_path / 'nested' / 'stock.db'}")
    assert sqlite.kind == "sqlite"
    assert (tmp_path / "nested").is_dir()
    await sqlite.close()

    postgres = create_provider("postgres://u:p@localhost:5432/stock?sslmode=disable")
    assert postgres.kind == "postgres"
    await postgres.close()

    with pytest.raises(ValueError, match="Unsupported DATABASE_URL"):
        create_provider("mysql://localhost/stock")


def test_cache_is_optional(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("CACHE_URL", raising=False)
    monkeypatch.delenv("REDIS_URL", raising=False)
    assert create_cache(Settings(_env_file=None)) is None
