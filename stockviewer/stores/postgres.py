"""PostgreSQL backend with async SQLAlchemy.

Handles:
- Connection pooling (asyncpg)
- `sslmode=` in hosted DATABASE_URLs, passed to asyncpg as `ssl`
- ON CONFLICT upserts via the postgresql dialect insert
"""

import logging

from sqlalchemy import Table
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import create_async_engine

from stockviewer.settings import normalize_database_url, split_ssl_mode
from stockviewer.stores.sql import SqlStockProvider

logger = logging.getLogger("uvicorn.error")


class PostgresStockProvider(SqlStockProvider):
    """Networked provider for shared deployments."""

    kind = "postgres"
    # 400 rows x 10 columns, far below asyncpg's 32767 bind-parameter cap
    chunk_size = 400

    def __init__(self, database_url: str, echo: bool = False):
        url, connect_args = split_ssl_mode(normalize_database_url(database_url))
        if connect_args:
            logger.info(f"[db] asyncpg ssl={connect_args['ssl']!r}")
        engine = create_async_engine(
            url,
            echo=echo,
            connect_args=connect_args,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
        )
        super().__init__(engine)

    def _insert(self, table: Table):
        return pg_insert(table)
