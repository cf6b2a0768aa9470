#!/usr/bin/env python3
"""One-off Tally refresh, for an external cron (TALLY_SCHEDULER_MODE=api).

Run (local / cron):
  python -m scripts.refresh_tally

Optional env vars:
  TALLY_HOST, TALLY_PORT, TALLY_TIMEOUT_SECONDS
  TALLY_COMPANY, TALLY_GODOWN
  TALLY_AS_OF=2024-03-31   (closing stock as of this date; default: today)
"""

import asyncio
from datetime import date
import os
import sys

# Ensure imports work when executed as a script/module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stockviewer.schemas import RefreshResultOut  # noqa: E402
from stockviewer.services.refresh import refresh_from_tally  # noqa: E402
from stockviewer.services.seed import seed_from_cache_if_empty  # noqa: E402
from stockviewer.settings import get_settings  # noqa: E402
from stockviewer.stores.factory import create_cache, create_provider  # noqa: E402


def _as_of_from_env() -> date | None:
    raw = os.getenv("TALLY_AS_OF", "").strip()
    return date.fromisoformat(raw) if raw else None


async def main() -> int:
    settings = get_settings()
    provider = create_provider(settings.database_url)
    cache = create_cache(settings)
    if cache is not None:
        try:
            await cache.ping()
        except Exception:
            await cache.close()
            cache = None

    try:
        await seed_from_cache_if_empty(provider, cache)
        result = await refresh_from_tally(provider, cache=cache, as_of=_as_of_from_env())
    finally:
        if cache is not None:
            await cache.close()
        await provider.close()

    # Final output for cron logs (single JSON blob)
    print(RefreshResultOut.from_result(result).model_dump_json(by_alias=True))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
