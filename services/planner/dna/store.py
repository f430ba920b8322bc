"""
DNA profile persistence (travel_dna table).

Every mutation runs as lock -> apply pure evolution rule -> write back inside a
single transaction, so concurrent feedback for the same user serializes on the
row lock instead of losing updates:

    SELECT ... FROM travel_dna WHERE "userId" = :uid FOR UPDATE
    -- dna.evolution.apply_feedback(...)
    UPDATE travel_dna SET ... WHERE id = :id
    COMMIT

Creation is a single INSERT ... ON CONFLICT ("userId") DO UPDATE, so retaking
the quiz concurrently can never produce two profiles.

Functions that mutate accept commit=False so the trip service can fold the DNA
update into its own transaction.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from services.planner.db.models import TravelDNA, Trip
from services.planner.dna.evolution import (
    apply_feedback,
    derive_trip_stats,
    initialize_from_quiz,
    update_trip_stats,
)
from services.planner.dna.types import (
    DNAProfile,
    EvolutionEntry,
    Insights,
    QuizAnswers,
    TripStats,
)
from services.planner.errors import NotFound

logger = logging.getLogger(__name__)

# TripStats attribute -> tripStats JSON key
_TRIP_STATS_KEYS: dict[str, str] = {
    "total_trips": "totalTrips",
    "planned_trips": "plannedTrips",
    "ongoing_trips": "ongoingTrips",
    "completed_trips": "completedTrips",
    "total_activities_completed": "totalActivitiesCompleted",
    "total_activities_skipped": "totalActivitiesSkipped",
    "total_alternatives_requested": "totalAlternativesRequested",
}


# ---------------------------------------------------------------------------
# Row <-> profile conversion
# ---------------------------------------------------------------------------

def _entry_to_json(entry: EvolutionEntry) -> dict[str, Any]:
    return {
        "timestamp": entry.timestamp.isoformat(),
        "action": entry.action,
        "category": entry.category,
        "scoreChanges": dict(entry.deltas),
        "tripId": entry.trip_id,
    }


def _entry_from_json(raw: Mapping[str, Any]) -> EvolutionEntry:
    return EvolutionEntry(
        timestamp=datetime.fromisoformat(raw["timestamp"]),
        action=raw["action"],
        category=raw["category"],
        deltas=dict(raw["scoreChanges"]),
        trip_id=raw.get("tripId"),
    )


def profile_to_values(profile: DNAProfile) -> dict[str, Any]:
    """Column values for a travel_dna row (excluding id/userId/timestamps)."""
    return {
        "initialScores": profile.initial.model_dump(),
        "adventureScore": profile.scores["adventure"],
        "cultureScore": profile.scores["culture"],
        "foodieScore": profile.scores["foodie"],
        "relaxationScore": profile.scores["relaxation"],
        "categoryCounters": {bucket: dict(v) for bucket, v in profile.counters.items()},
        "tripStats": {
            key: getattr(profile.trip_stats, attr)
            for attr, key in _TRIP_STATS_KEYS.items()
        },
        "insights": {
            "dominantTrait": profile.insights.dominant_trait,
            "travelStyle": profile.insights.travel_style,
            "profileTitle": profile.insights.profile_title,
        },
        "evolutionHistory": [_entry_to_json(e) for e in profile.history],
    }


def profile_from_row(row: TravelDNA) -> DNAProfile:
    stats_raw = row.tripStats or {}
    insights_raw = row.insights or {}
    profile = DNAProfile(
        user_id=row.userId,
        initial=QuizAnswers.model_validate(row.initialScores),
        scores={
            "adventure": row.adventureScore,
            "culture": row.cultureScore,
            "foodie": row.foodieScore,
            "relaxation": row.relaxationScore,
        },
        trip_stats=TripStats(**{
            attr: int(stats_raw.get(key, 0))
            for attr, key in _TRIP_STATS_KEYS.items()
        }),
        insights=Insights(
            dominant_trait=insights_raw.get("dominantTrait", "adventure"),
            travel_style=insights_raw.get("travelStyle", "balanced_traveler"),
            profile_title=insights_raw.get("profileTitle", "Balanced Traveler"),
        ),
        history=[_entry_from_json(e) for e in (row.evolutionHistory or [])],
    )
    for bucket, per_category in (row.categoryCounters or {}).items():
        profile.counters.setdefault(bucket, {}).update(per_category)
    return profile


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def _fetch_row(session: AsyncSession, user_id: str, *, for_update: bool) -> TravelDNA:
    stmt = select(TravelDNA).where(TravelDNA.userId == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    row = result.scalars().first()
    if row is None:
        raise NotFound("travel_dna", user_id)
    return row


async def get_profile(session: AsyncSession, user_id: str) -> DNAProfile:
    """Return the user's profile. Raises NotFound; never creates one."""
    return profile_from_row(await _fetch_row(session, user_id, for_update=False))


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def upsert_from_quiz(
    session: AsyncSession,
    user_id: str,
    answers: QuizAnswers | Mapping[str, Any],
) -> DNAProfile:
    """
    Create the profile, or reset an existing one's snapshot and scores.

    Counters, trip stats and history of an existing profile are preserved.
    Answers are validated before anything is written.
    """
    fresh = initialize_from_quiz(user_id, answers)
    values = profile_to_values(fresh)
    now = datetime.now(timezone.utc)

    stmt = pg_insert(TravelDNA).values(
        id=str(uuid.uuid4()),
        userId=user_id,
        createdAt=now,
        updatedAt=now,
        **values,
    )
    stmt = stmt.on_conflict_do_update(
        constraint="uq_travel_dna_user",
        set_={
            "initialScores": stmt.excluded.initialScores,
            "adventureScore": stmt.excluded.adventureScore,
            "cultureScore": stmt.excluded.cultureScore,
            "foodieScore": stmt.excluded.foodieScore,
            "relaxationScore": stmt.excluded.relaxationScore,
            "insights": stmt.excluded.insights,
            "updatedAt": now,
        },
    ).returning(TravelDNA)

    result = await session.execute(stmt, execution_options={"populate_existing": True})
    row = result.scalars().first()
    await session.commit()

    logger.info(
        "dna_store: quiz applied user=%s style=%s",
        user_id,
        fresh.insights.travel_style,
    )
    return profile_from_row(row)


async def _write_back(session: AsyncSession, row_id: str, profile: DNAProfile) -> None:
    stmt = (
        update(TravelDNA)
        .where(TravelDNA.id == row_id)
        .values(updatedAt=datetime.now(timezone.utc), **profile_to_values(profile))
    )
    await session.execute(stmt)


async def record_feedback(
    session: AsyncSession,
    user_id: str,
    category: str,
    action: str,
    trip_id: str | None = None,
    *,
    commit: bool = True,
) -> DNAProfile:
    """Apply one feedback event under a row lock. Raises NotFound without writing."""
    try:
        row = await _fetch_row(session, user_id, for_update=True)
        profile = profile_from_row(row)
        apply_feedback(profile, category, action, trip_id=trip_id)
        await _write_back(session, row.id, profile)
        if commit:
            await session.commit()
    except Exception:
        if commit:
            await session.rollback()
        raise
    return profile


async def record_trip_transition(
    session: AsyncSession,
    user_id: str,
    transition: str,
    *,
    commit: bool = True,
) -> DNAProfile:
    """Apply a guarded trip-stat transition under a row lock."""
    try:
        row = await _fetch_row(session, user_id, for_update=True)
        profile = profile_from_row(row)
        update_trip_stats(profile, transition)
        await _write_back(session, row.id, profile)
        if commit:
            await session.commit()
    except Exception:
        if commit:
            await session.rollback()
        raise
    logger.info("dna_store: trip transition user=%s transition=%s", user_id, transition)
    return profile


async def resync_trip_stats(session: AsyncSession, user_id: str) -> DNAProfile:
    """Rebuild trip counters from the user's live trip statuses."""
    try:
        row = await _fetch_row(session, user_id, for_update=True)
        counts_stmt = (
            select(Trip.status, func.count())
            .where(Trip.userId == user_id)
            .group_by(Trip.status)
        )
        counts = {status: n for status, n in (await session.execute(counts_stmt)).all()}

        profile = profile_from_row(row)
        profile.trip_stats = derive_trip_stats(counts, base=profile.trip_stats)
        await _write_back(session, row.id, profile)
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    logger.info("dna_store: trip stats resynced user=%s counts=%s", user_id, counts)
    return profile
