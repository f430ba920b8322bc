"""
Itinerary cache reaper.

Deletes itinerary_cache rows whose createdAt is older than the cache TTL
(settings.itinerary_cache_ttl_days). Access recency is ignored on purpose:
lookups never extend an entry's life, so a frequently read entry is reaped on
the same schedule as an untouched one.

lookup() already ignores expired rows, so a late or skipped run only costs
disk, never correctness. Re-running is safe.

Entry point:
    async def run_cache_reap(pool, now=None)
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any

from services.planner.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_REAP_SQL = """
WITH reaped AS (
    DELETE FROM itinerary_cache
    WHERE "createdAt" < $1
    RETURNING "userId"
)
SELECT COUNT(*) AS deleted, COUNT(DISTINCT "userId") AS owners
FROM reaped
"""


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

async def run_cache_reap(
    pool: Any,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Delete every expired itinerary cache entry.

    Args:
        pool: asyncpg connection pool.
        now:  Reference time. Defaults to UTC now.

    Raises whatever the DELETE raised, after logging it; nothing is deleted
    in that case since the statement runs in its own transaction.

    Returns:
        A result dict::

            {
                "cutoff": "2026-02-17T03:00:00+00:00",
                "status": "success",
                "entries_deleted": int,
                "owners_affected": int,
                "duration_ms": int,
            }
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=settings.itinerary_cache_ttl_days)
    cutoff_label = cutoff.isoformat()
    logger.info("cache_reaper: starting cutoff=%s", cutoff_label)

    start_ts = time.monotonic()

    async with pool.acquire() as conn:
        try:
            async with conn.transaction():
                row = await conn.fetchrow(_REAP_SQL, cutoff)
        except Exception as exc:
            duration_ms = int((time.monotonic() - start_ts) * 1000)
            logger.error(
                "cache_reaper: failed cutoff=%s after %dms: %s",
                cutoff_label,
                duration_ms,
                exc,
                exc_info=True,
            )
            raise

    deleted = int(row["deleted"]) if row else 0
    owners = int(row["owners"]) if row else 0
    duration_ms = int((time.monotonic() - start_ts) * 1000)

    logger.info(
        "cache_reaper: complete cutoff=%s deleted=%d owners=%d duration_ms=%d",
        cutoff_label,
        deleted,
        owners,
        duration_ms,
    )
    return {
        "cutoff": cutoff_label,
        "status": "success",
        "entries_deleted": deleted,
        "owners_affected": owners,
        "duration_ms": duration_ms,
    }


# ---------------------------------------------------------------------------
# Standalone entry point
# ---------------------------------------------------------------------------

async def main() -> None:
    """Standalone entry point for running from cron."""
    import os

    import asyncpg
    from dotenv import load_dotenv

    load_dotenv()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    # settings was built at import time, before .env was loaded
    database_url = os.environ.get("DATABASE_URL", settings.database_url)

    pool = await asyncpg.create_pool(database_url, min_size=1, max_size=2)
    try:
        result = await run_cache_reap(pool)
        print(f"cache_reaper complete: {result}")
    finally:
        await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
