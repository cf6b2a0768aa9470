"""Embedded SQLite backend (aiosqlite).

The database file is created on first use. Every connection runs in WAL mode
with foreign keys enforced, so deleting a product cascades to its price and
change rows.
"""

from pathlib import Path

from sqlalchemy import Table, event
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import create_async_engine

from stockviewer.settings import normalize_database_url
from stockviewer.stores.sql import SqlStockProvider


def _ensure_parent_dir(url: str) -> None:
    database = make_url(url).database
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


class SqliteStockProvider(SqlStockProvider):
    """Single-file provider for local installs."""

    kind = "sqlite"
    # 90 rows x 10 columns stays under SQLite's 999 bound-parameter limit
    chunk_size = 90

    def __init__(self, database_url: str, echo: bool = False):
        url = normalize_database_url(database_url)
        _ensure_parent_dir(url)
        engine = create_async_engine(url, echo=echo)

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        super().__init__(engine)

    def _insert(self, table: Table):
        return sqlite_insert(table)
