"""Shared fixtures: SQLite providers on tmp_path, an in-memory Redis, workbook builders."""

from io import BytesIO

import pytest
from openpyxl import Workbook
from openpyxl.styles import Font

from stockviewer.stores.redis import RedisCatalogCache
from stockviewer.stores.sqlite import SqliteStockProvider


class FakeRedis:
    """The handful of hash commands RedisCatalogCache uses."""

    def __init__(self):
        self.hashes: dict[str, dict[str, str]] = {}
        self.closed = False

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True

    async def hset(self, name: str, key: str | None = None, value: str | None = None, mapping=None) -> int:
        bucket = self.hashes.setdefault(name, {})
        items = dict(mapping or {})
        if key is not None:
            items[key] = value
        added = sum(1 for k in items if k not in bucket)
        bucket.update(items)
        return added

    async def hmget(self, name: str, keys: list[str]) -> list[str | None]:
        bucket = self.hashes.get(name, {})
        return [bucket.get(k) for k in keys]

    async def hgetall(self, name: str) -> dict[str, str]:
        return dict(self.hashes.get(name, {}))

    async def hlen(self, name: str) -> int:
        return len(self.hashes.get(name, {}))


@pytest.fixture
async def provider(tmp_path):
    """Fresh SQLite-backed provider per test."""
    p = SqliteStockProvider(f"sqlite+aiosqlite:///{tmp_path / 'stock.db'}")
    await p.ensure_schema()
    yield p
    await p.close()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis: FakeRedis) -> RedisCatalogCache:
    return RedisCatalogCache(fake_redis)


def make_xlsx(
    rows: list[list[object]],
    bold_rows: set[int] | None = None,
    number_formats: dict[tuple[int, int], str] | None = None,
    title: str = "Godown Summary",
) -> bytes:
    """Build an .xlsx payload. Row/column indexes are 0-based."""
    wb = Workbook()
    ws = wb.active
    ws.title = title
    bold_rows = bold_rows or set()
    number_formats = number_formats or {}

    for r, row in enumerate(rows):
        for c, value in enumerate(row):
            cell = ws.cell(row=r + 1, column=c + 1, value=value)
            if r in bold_rows:
                cell.font = Font(bold=True)
            if (r, c) in number_formats:
                cell.number_format = number_formats[(r, c)]

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


HEADER_EXPORT_ROWS: list[list[object]] = [
    ["Ralhum Trading Company", None, None],
    ["Godown Summary", None, None],
    ["Particulars", "Closing Qty", "Unit"],
    ["Babolat", None, None],
    ["Pure Drive Racket 300g", 5, "nos"],
    ["Pure Aero Racket", 0, "nos"],
    ["Yonex", None, None],
    ["Astrox 88D Racket", -2, "nos"],
    ["Total", 3, None],
    ["Grand Total", 3, None],
    ["After Grand Total Ball 1", 1, "nos"],
]


@pytest.fixture
def header_export_xlsx() -> bytes:
    return make_xlsx(HEADER_EXPORT_ROWS)


@pytest.fixture
def xlsx_builder():
    return make_xlsx
