#!/usr/bin/env python3
"""Import a Tally stock export (.xlsx or .xml) from disk.

Run (local):
  python -m scripts.import_file path/to/GdwnSum.xlsx

Without an argument the file at DEFAULT_EXPORT_PATH is imported.

Optional env vars:
  DATABASE_URL   (default: sqlite+aiosqlite:///./data/stockviewer.db)
  CACHE_URL      (mirror imported products into Redis)
"""

import asyncio
from dataclasses import asdict
import os
import sys

# Ensure imports work when executed as a script/module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stockviewer.parsers.common import IngestionError  # noqa: E402
from stockviewer.services.importer import import_from_path  # noqa: E402
from stockviewer.settings import get_settings  # noqa: E402
from stockviewer.stores.factory import create_cache, create_provider  # noqa: E402


async def main(path: str) -> int:
    settings = get_settings()
    provider = create_provider(settings.database_url)
    cache = create_cache(settings)
    if cache is not None:
        try:
            await cache.ping()
        except Exception:
            # Import still runs without Redis; the mirror is optional.
            await cache.close()
            cache = None

    try:
        result = await import_from_path(provider, path, cache, source="cli")
    except (IngestionError, FileNotFoundError) as e:
        print({"ok": False, "error": str(e)})
        return 1
    finally:
        if cache is not None:
            await cache.close()
        await provider.close()

    print({"ok": True, **asdict(result)})
    return 0


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else get_settings().default_export_path
    sys.exit(asyncio.run(main(target)))
