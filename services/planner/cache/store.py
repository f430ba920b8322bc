"""
Postgres-backed itinerary cache (itinerary_cache table).

Keyed per owner per fingerprint (see cache.fingerprint). Entries live for
settings.itinerary_cache_ttl_days counted from createdAt; reading an entry
bumps accessCount/lastAccessedAt but never moves createdAt, so a hot entry
still expires on schedule.

Both the read and the write are single statements:
  lookup -> UPDATE ... SET "accessCount" = "accessCount" + 1 ... RETURNING
  store  -> INSERT ... ON CONFLICT ("userId", fingerprint) DO UPDATE
so concurrent callers can neither lose an access increment nor create a
second entry for the same key.

Expired rows are deleted by jobs.cache_reaper; lookup simply ignores them.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete, distinct, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from services.planner.cache.fingerprint import fingerprint as make_fingerprint
from services.planner.cache.fingerprint import normalize_destination
from services.planner.config import settings
from services.planner.db.models import ItineraryCacheEntry
from services.planner.errors import ValidationError

logger = logging.getLogger(__name__)

GENERATOR_TAGS: tuple[str, ...] = ("ai", "mock")


@dataclass(frozen=True)
class CacheHit:
    payload: dict[str, Any]
    generator_tag: str
    created_at: datetime
    last_accessed_at: datetime
    access_count: int


def _ttl() -> timedelta:
    return timedelta(days=settings.itinerary_cache_ttl_days)


def _normalized_destination_column():
    """SQL mirror of normalize_destination: trim, lower, whitespace runs -> '_'."""
    trimmed = func.regexp_replace(
        func.lower(ItineraryCacheEntry.destination), r"^\s+|\s+$", "", "g"
    )
    return func.regexp_replace(trimmed, r"\s+", "_", "g")


async def lookup(
    session: AsyncSession,
    owner: str,
    fingerprint: str,
    now: datetime | None = None,
) -> CacheHit | None:
    """
    Return the live entry for (owner, fingerprint), recording the access.

    Returns None on a miss or when the entry is older than the TTL.
    """
    now = now or datetime.now(timezone.utc)
    stmt = (
        update(ItineraryCacheEntry)
        .where(
            ItineraryCacheEntry.userId == owner,
            ItineraryCacheEntry.fingerprint == fingerprint,
            ItineraryCacheEntry.createdAt > now - _ttl(),
        )
        .values(
            accessCount=ItineraryCacheEntry.accessCount + 1,
            lastAccessedAt=now,
        )
        .returning(
            ItineraryCacheEntry.payload,
            ItineraryCacheEntry.generatorTag,
            ItineraryCacheEntry.createdAt,
            ItineraryCacheEntry.lastAccessedAt,
            ItineraryCacheEntry.accessCount,
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    row = result.first()
    await session.commit()

    if row is None:
        logger.debug("itinerary_cache: miss owner=%s fingerprint=%s", owner, fingerprint)
        return None

    logger.debug(
        "itinerary_cache: hit owner=%s fingerprint=%s access_count=%d",
        owner,
        fingerprint,
        row.accessCount,
    )
    return CacheHit(
        payload=row.payload,
        generator_tag=row.generatorTag,
        created_at=row.createdAt,
        last_accessed_at=row.lastAccessedAt,
        access_count=row.accessCount,
    )


async def store(
    session: AsyncSession,
    owner: str,
    destination: str,
    dna_snapshot: Mapping[str, Any],
    trip_params: Mapping[str, Any],
    payload: Mapping[str, Any],
    generator_tag: str,
) -> str:
    """
    Insert or overwrite the entry for this key. Returns the fingerprint.

    An overwrite starts a fresh TTL window and resets accessCount to 1.
    """
    if generator_tag not in GENERATOR_TAGS:
        raise ValidationError(f"unknown generator tag: {generator_tag!r}")

    key = make_fingerprint(destination, dna_snapshot, trip_params)
    now = datetime.now(timezone.utc)

    stmt = pg_insert(ItineraryCacheEntry).values(
        id=str(uuid.uuid4()),
        userId=owner,
        fingerprint=key,
        destination=destination,
        dnaSnapshot=dict(dna_snapshot),
        tripParams=dict(trip_params),
        payload=dict(payload),
        generatorTag=generator_tag,
        createdAt=now,
        lastAccessedAt=now,
        accessCount=1,
    )
    stmt = stmt.on_conflict_do_update(
        constraint="uq_itinerary_cache_user_fingerprint",
        set_={
            "destination": stmt.excluded.destination,
            "dnaSnapshot": stmt.excluded.dnaSnapshot,
            "tripParams": stmt.excluded.tripParams,
            "payload": stmt.excluded.payload,
            "generatorTag": stmt.excluded.generatorTag,
            "createdAt": stmt.excluded.createdAt,
            "lastAccessedAt": stmt.excluded.lastAccessedAt,
            "accessCount": 1,
        },
    )
    await session.execute(stmt)
    await session.commit()

    logger.info(
        "itinerary_cache: stored owner=%s fingerprint=%s tag=%s",
        owner,
        key,
        generator_tag,
    )
    return key


async def evict_all(
    session: AsyncSession,
    owner: str,
    destination: str | None = None,
) -> int:
    """
    Delete the owner's entries, optionally only for one destination. Returns the count.

    Destinations match the way fingerprints normalise them, so "New  York"
    and " new york" evict the same entries.
    """
    stmt = delete(ItineraryCacheEntry).where(ItineraryCacheEntry.userId == owner)
    if destination is not None:
        stmt = stmt.where(
            _normalized_destination_column() == normalize_destination(destination)
        )
    result = await session.execute(stmt.execution_options(synchronize_session=False))
    await session.commit()

    deleted = result.rowcount or 0
    logger.info(
        "itinerary_cache: evicted owner=%s destination=%s deleted=%d",
        owner,
        destination,
        deleted,
    )
    return deleted


async def cache_stats(session: AsyncSession, owner: str) -> dict[str, Any]:
    """Entry count, distinct destination names (sorted) and summed accessCount."""
    stmt = select(
        func.count(ItineraryCacheEntry.id),
        func.array_agg(distinct(ItineraryCacheEntry.destination)),
        func.coalesce(func.sum(ItineraryCacheEntry.accessCount), 0),
    ).where(ItineraryCacheEntry.userId == owner)
    count, destinations, total_access = (await session.execute(stmt)).one()
    return {
        "count": int(count),
        "destinations": sorted(destinations or []),
        "totalAccess": int(total_access),
    }
