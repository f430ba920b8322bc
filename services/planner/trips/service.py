"""
Trip service: persistence and DNA side effects around the trip state machine.

Each mutating call is one transaction:
  1. SELECT the trip FOR UPDATE (scoped to the owner)
  2. apply a pure trips.state function
  3. fold the matching DNA feedback / trip-stat transition into the same
     transaction (dna.store with commit=False)
  4. write the trip back and COMMIT

Lock order is always trip row, then travel_dna row.

DNA side effects are best effort with respect to the profile's existence:
an owner without a profile gets a log line, never a fabricated profile. A
trip-stat transition that the profile's counters cannot absorb (drift from
trips created before the profile existed) triggers resync_trip_stats after
the trip commit instead of failing the trip update.
"""

from __future__ import annotations

import logging
import random
import uuid
from collections.abc import Awaitable, Callable, Mapping
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from services.planner.db.models import Trip
from services.planner.dna import store as dna_store
from services.planner.errors import (
    DuplicateResource,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from services.planner.generation.alternatives import propose_alternative
from services.planner.generation.catalog import DestinationPool, resolve_destination
from services.planner.trips import state
from services.planner.trips.schema import (
    DayPlan,
    Itinerary,
    count_activities,
    itinerary_to_json,
    parse_itinerary,
    rebase_dates,
)
from services.planner.trips.state import TripRecord

logger = logging.getLogger(__name__)

TRIP_STATUSES: tuple[str, ...] = ("planned", "ongoing", "completed", "cancelled")
ACTIVITY_OUTCOMES: tuple[str, ...] = ("done", "skipped")

# async (destination, day) -> enrichment dict or None
EnrichmentProvider = Callable[[str, DayPlan], Awaitable[Optional[Mapping[str, Any]]]]


# ---------------------------------------------------------------------------
# Row <-> record
# ---------------------------------------------------------------------------

def record_from_row(row: Trip) -> TripRecord:
    return TripRecord(
        id=row.id,
        user_id=row.userId,
        destination=row.destination,
        start_date=row.startDate,
        end_date=row.endDate,
        status=row.status,
        itinerary=parse_itinerary(row.itinerary),
        total_activities=row.totalActivities,
        completed_activities=row.completedActivities,
        skipped_activities=row.skippedActivities,
        alternatives_requested=row.alternativesRequested,
        started_at=row.startedAt,
        completed_at=row.completedAt,
    )


def _write_record(row: Trip, trip: TripRecord) -> None:
    row.itinerary = itinerary_to_json(trip.itinerary)
    row.status = trip.status
    row.totalActivities = trip.total_activities
    row.completedActivities = trip.completed_activities
    row.skippedActivities = trip.skipped_activities
    row.alternativesRequested = trip.alternatives_requested
    row.startedAt = trip.started_at
    row.completedAt = trip.completed_at


async def _locked_trip(session: AsyncSession, user_id: str, trip_id: str) -> Trip:
    stmt = (
        select(Trip)
        .where(Trip.id == trip_id, Trip.userId == user_id)
        .with_for_update()
    )
    row = (await session.execute(stmt)).scalars().first()
    if row is None:
        raise NotFound("trip", trip_id)
    return row


async def get_trip(session: AsyncSession, user_id: str, trip_id: str) -> TripRecord:
    stmt = select(Trip).where(Trip.id == trip_id, Trip.userId == user_id)
    row = (await session.execute(stmt)).scalars().first()
    if row is None:
        raise NotFound("trip", trip_id)
    return record_from_row(row)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

PREPLANNED_DEFAULT_LIMIT = 50
PREPLANNED_MAX_LIMIT = 100

# Everything a stranger may see of someone else's trip; no owner, no DNA.
PREPLANNED_FIELDS: tuple[str, ...] = (
    "id",
    "destination",
    "startDate",
    "endDate",
    "budget",
    "travelers",
    "accommodation",
    "transportation",
    "itinerary",
    "generatorTag",
    "createdAt",
)


async def list_trips(session: AsyncSession, user_id: str) -> list[TripRecord]:
    """The owner's trips, newest first."""
    stmt = (
        select(Trip)
        .where(Trip.userId == user_id)
        .order_by(Trip.createdAt.desc())
    )
    rows = (await session.execute(stmt)).scalars().all()
    return [record_from_row(row) for row in rows]


async def list_preplanned(
    session: AsyncSession,
    destination: str | None = None,
    limit: int = PREPLANNED_DEFAULT_LIMIT,
) -> list[dict[str, Any]]:
    """
    Anonymised trips from every owner, newest first, as candidates for clone_trip.

    Only PREPLANNED_FIELDS are selected. destination matches case-insensitively;
    limit is capped at PREPLANNED_MAX_LIMIT.
    """
    if limit < 1:
        raise ValidationError(f"limit must be >= 1, got {limit}")
    limit = min(limit, PREPLANNED_MAX_LIMIT)

    stmt = select(*(getattr(Trip, name) for name in PREPLANNED_FIELDS))
    if destination:
        stmt = stmt.where(func.lower(Trip.destination) == destination.strip().lower())
    stmt = stmt.order_by(Trip.createdAt.desc()).limit(limit)

    result = await session.execute(stmt)
    return [dict(row) for row in result.mappings().all()]


# ---------------------------------------------------------------------------
# DNA side effects
# ---------------------------------------------------------------------------

async def _feedback(
    session: AsyncSession,
    user_id: str,
    category: str,
    action: str,
    trip_id: str,
) -> None:
    try:
        await dna_store.record_feedback(
            session, user_id, category, action, trip_id=trip_id, commit=False,
        )
    except NotFound:
        logger.info(
            "trip_service: no DNA profile user=%s, skipping %s feedback",
            user_id,
            action,
        )


async def _profile_transition(session: AsyncSession, user_id: str, transition: str) -> bool:
    """Apply a trip-stat transition. Returns False when the profile needs a resync."""
    try:
        await dna_store.record_trip_transition(session, user_id, transition, commit=False)
    except NotFound:
        logger.info(
            "trip_service: no DNA profile user=%s, skipping %s transition",
            user_id,
            transition,
        )
    except InvalidTransition as exc:
        logger.warning("trip_service: trip stats out of sync user=%s: %s", user_id, exc)
        return False
    return True


async def _resync(session: AsyncSession, user_id: str) -> None:
    try:
        await dna_store.resync_trip_stats(session, user_id)
    except NotFound:
        logger.info("trip_service: profile for user=%s vanished before resync", user_id)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

async def attach_enrichment(
    itinerary: Itinerary,
    providers: Mapping[str, EnrichmentProvider],
) -> Itinerary:
    """
    Run every provider for every day, storing results under day.enrichment[name].

    A failing provider is logged and skipped; it never blocks the trip.
    """
    for day in itinerary.days:
        for name, provider in providers.items():
            try:
                extra = await provider(itinerary.destination, day)
            except Exception as exc:
                logger.warning(
                    "trip_service: enrichment %s failed destination=%s day=%d: %s",
                    name,
                    itinerary.destination,
                    day.day,
                    exc,
                )
                continue
            if extra:
                day.enrichment[name] = dict(extra)
    return itinerary


async def create_trip(
    session: AsyncSession,
    user_id: str,
    destination: str,
    start_date: date,
    end_date: date,
    itinerary: Itinerary | Mapping[str, Any],
    *,
    budget: float,
    travelers: int,
    dna_snapshot: Mapping[str, Any],
    accommodation: str | None = None,
    transportation: str | None = None,
    generator_tag: str = "ai",
    enrichers: Mapping[str, EnrichmentProvider] | None = None,
) -> tuple[TripRecord, bool]:
    """
    Persist a new trip, or return the existing one for the same
    (owner, destination, start, end).

    The itinerary must hold exactly one day per date in start..end; its day
    dates are rebased onto that range.

    Returns:
        (trip, created). created is False when an identical trip already existed.
    """
    if end_date < start_date:
        raise ValidationError(f"end date {end_date} is before start date {start_date}")
    if travelers < 1:
        raise ValidationError(f"travelers must be >= 1, got {travelers}")
    if budget < 0:
        raise ValidationError(f"budget must be >= 0, got {budget}")
    if generator_tag not in ("ai", "mock"):
        raise ValidationError(f"unknown generator tag: {generator_tag!r}")

    parsed = parse_itinerary(itinerary)
    span = (end_date - start_date).days + 1
    if parsed.totalDays != span:
        raise ValidationError(
            f"itinerary has {parsed.totalDays} days but {start_date}..{end_date} spans {span}"
        )
    parsed = rebase_dates(parsed, start_date)
    if enrichers:
        await attach_enrichment(parsed, enrichers)

    now = datetime.now(timezone.utc)
    stmt = (
        pg_insert(Trip)
        .values(
            id=str(uuid.uuid4()),
            userId=user_id,
            destination=destination,
            startDate=start_date,
            endDate=end_date,
            budget=budget,
            travelers=travelers,
            accommodation=accommodation,
            transportation=transportation,
            status="planned",
            itinerary=itinerary_to_json(parsed),
            dnaSnapshot=dict(dna_snapshot),
            totalActivities=count_activities(parsed),
            completedActivities=0,
            skippedActivities=0,
            alternativesRequested=0,
            generatorTag=generator_tag,
            createdAt=now,
        )
        .on_conflict_do_nothing(constraint="uq_trips_user_destination_dates")
        .returning(Trip)
    )

    try:
        row = (await session.execute(stmt)).scalars().first()
        if row is None:
            existing_stmt = select(Trip).where(
                Trip.userId == user_id,
                Trip.destination == destination,
                Trip.startDate == start_date,
                Trip.endDate == end_date,
            )
            existing = (await session.execute(existing_stmt)).scalars().first()
            await session.commit()
            if existing is None:
                raise DuplicateResource(
                    f"trip for user {user_id} to {destination} "
                    f"{start_date}..{end_date} collided but is not visible yet"
                )
            logger.info(
                "trip_service: deduplicated trip user=%s destination=%s trip=%s",
                user_id,
                destination,
                existing.id,
            )
            return record_from_row(existing), False

        in_sync = await _profile_transition(session, user_id, "planned")
        trip = record_from_row(row)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    if not in_sync:
        await _resync(session, user_id)
    logger.info(
        "trip_service: created trip=%s user=%s destination=%s activities=%d",
        trip.id,
        user_id,
        destination,
        trip.total_activities,
    )
    return trip, True


def _reset_progress(itinerary: Itinerary) -> Itinerary:
    fresh = itinerary.model_copy(deep=True)
    for day in fresh.days:
        for activity in day.activities:
            activity.status = "active"
            activity.completedAt = None
            activity.skippedAt = None
            activity.alternativesRequested = 0
        for meal in day.meals:
            meal.status = "active"
    return fresh


async def clone_trip(
    session: AsyncSession,
    user_id: str,
    source_trip_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
) -> tuple[TripRecord, bool]:
    """
    Copy any trip into user_id's trips with fresh progress.

    With a custom start_date and no end_date, the end is derived from the
    itinerary length.
    """
    source = (
        await session.execute(select(Trip).where(Trip.id == source_trip_id))
    ).scalars().first()
    if source is None:
        raise NotFound("trip", source_trip_id)

    itinerary = _reset_progress(parse_itinerary(source.itinerary))
    if start_date is not None:
        new_start = start_date
        new_end = end_date or start_date + timedelta(days=max(0, itinerary.totalDays - 1))
    else:
        new_start = source.startDate
        new_end = end_date or source.endDate

    logger.info(
        "trip_service: cloning trip=%s into user=%s start=%s",
        source_trip_id,
        user_id,
        new_start,
    )
    return await create_trip(
        session,
        user_id,
        source.destination,
        new_start,
        new_end,
        itinerary,
        budget=source.budget,
        travelers=source.travelers,
        dna_snapshot=source.dnaSnapshot or {},
        accommodation=source.accommodation,
        transportation=source.transportation,
        generator_tag=source.generatorTag,
    )


# ---------------------------------------------------------------------------
# Activity interactions
# ---------------------------------------------------------------------------

async def mark_activity(
    session: AsyncSession,
    user_id: str,
    trip_id: str,
    day_index: int,
    activity_index: int,
    outcome: str,
    now: datetime | None = None,
) -> TripRecord:
    """
    Mark one activity done or skipped and feed the outcome into the owner's DNA.

    Marking an activity that is no longer active changes nothing.
    """
    if outcome not in ACTIVITY_OUTCOMES:
        raise ValidationError(f"unknown activity outcome: {outcome!r}")

    in_sync = True
    try:
        row = await _locked_trip(session, user_id, trip_id)
        trip = record_from_row(row)
        marker = state.mark_done if outcome == "done" else state.mark_skipped
        category = marker(trip, day_index, activity_index, now=now)
        if category is None:
            await session.rollback()
            logger.debug(
                "trip_service: activity %d/%d on trip=%s already settled",
                day_index,
                activity_index,
                trip_id,
            )
            return trip

        action = "completed" if outcome == "done" else "skipped"
        await _feedback(session, user_id, category, action, trip.id)

        was_status = trip.status
        state.check_completion(trip, now=now)
        if was_status != trip.status:
            in_sync = await _profile_transition(session, user_id, "ongoing->completed")

        _write_record(row, trip)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    if not in_sync:
        await _resync(session, user_id)
    return trip


async def request_alternative(
    session: AsyncSession,
    user_id: str,
    trip_id: str,
    day_index: int,
    activity_index: int,
    catalog: Mapping[str, DestinationPool] | None = None,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Count the request, penalise the activity's category, and return a proposal."""
    try:
        row = await _locked_trip(session, user_id, trip_id)
        trip = record_from_row(row)
        activity = state.request_alternative(trip, day_index, activity_index)
        await _feedback(session, user_id, activity.category, "alternative_requested", trip.id)

        proposal = propose_alternative(
            activity,
            pool=resolve_destination(trip.destination, catalog),
            rng=rng,
        )
        _write_record(row, trip)
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return proposal


async def accept_alternative(
    session: AsyncSession,
    user_id: str,
    trip_id: str,
    day_index: int,
    activity_index: int,
    proposal: Mapping[str, Any],
) -> TripRecord:
    try:
        row = await _locked_trip(session, user_id, trip_id)
        trip = record_from_row(row)
        category = state.accept_alternative(trip, day_index, activity_index, proposal)
        await _feedback(session, user_id, category, "completed", trip.id)
        _write_record(row, trip)
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return trip


async def update_status(
    session: AsyncSession,
    user_id: str,
    trip_id: str,
    new_status: str,
    now: datetime | None = None,
) -> TripRecord:
    if new_status not in TRIP_STATUSES:
        raise ValidationError(f"unknown trip status: {new_status!r}")

    try:
        row = await _locked_trip(session, user_id, trip_id)
        trip = record_from_row(row)
        transition = state.transition_status(trip, new_status, now=now)
        in_sync = await _profile_transition(session, user_id, transition)
        _write_record(row, trip)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    if not in_sync:
        await _resync(session, user_id)
    logger.info("trip_service: trip=%s status %s", trip_id, transition)
    return trip
