"""
Trip activity state machine.

Pure functions over TripRecord. The trip service loads a TripRecord under a
row lock, calls one of these, and writes the record back.

Activity lifecycle:
    active --mark_done-->    done     (stamps completedAt)
    active --mark_skipped--> skipped  (stamps skippedAt)
Marking an activity that is not active is a no-op and returns None, so
retries and double taps never double-count.

Trip lifecycle:
    planned -> ongoing    (stamps startedAt)
    ongoing -> completed  (stamps completedAt)
    planned | ongoing -> cancelled
An ongoing trip also completes automatically once every activity is done or
skipped (check_completion).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional

from services.planner.dna.types import CATEGORIES
from services.planner.errors import InvalidTransition, NotFound, ValidationError
from services.planner.trips.schema import Activity, Itinerary, count_activities

logger = logging.getLogger(__name__)

# (from, to) -> trip-stat transition label understood by dna.evolution
STATUS_TRANSITIONS: dict[tuple[str, str], str] = {
    ("planned", "ongoing"): "planned->ongoing",
    ("ongoing", "completed"): "ongoing->completed",
    ("planned", "cancelled"): "planned->cancelled",
    ("ongoing", "cancelled"): "ongoing->cancelled",
}


@dataclass
class TripRecord:
    id: str
    user_id: str
    destination: str
    start_date: date
    end_date: date
    status: str
    itinerary: Itinerary
    total_activities: int = 0
    completed_activities: int = 0
    skipped_activities: int = 0
    alternatives_requested: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_activity(trip: TripRecord, day_index: int, activity_index: int) -> Activity:
    """Raises NotFound for any out-of-range (including negative) index."""
    days = trip.itinerary.days
    if not 0 <= day_index < len(days):
        raise NotFound("day", f"{trip.id}/{day_index}")
    activities = days[day_index].activities
    if not 0 <= activity_index < len(activities):
        raise NotFound("activity", f"{trip.id}/{day_index}/{activity_index}")
    return activities[activity_index]


def recount(trip: TripRecord) -> None:
    """Recompute total/completed/skipped from the itinerary."""
    activities = [a for day in trip.itinerary.days for a in day.activities]
    trip.total_activities = count_activities(trip.itinerary)
    trip.completed_activities = sum(1 for a in activities if a.status == "done")
    trip.skipped_activities = sum(1 for a in activities if a.status == "skipped")


def mark_done(
    trip: TripRecord,
    day_index: int,
    activity_index: int,
    now: datetime | None = None,
) -> str | None:
    """Return the activity category if it transitioned, None if it was not active."""
    activity = get_activity(trip, day_index, activity_index)
    if activity.status != "active":
        return None
    activity.status = "done"
    activity.completedAt = now or _now()
    trip.completed_activities += 1
    return activity.category


def mark_skipped(
    trip: TripRecord,
    day_index: int,
    activity_index: int,
    now: datetime | None = None,
) -> str | None:
    """Return the activity category if it transitioned, None if it was not active."""
    activity = get_activity(trip, day_index, activity_index)
    if activity.status != "active":
        return None
    activity.status = "skipped"
    activity.skippedAt = now or _now()
    trip.skipped_activities += 1
    return activity.category


def request_alternative(trip: TripRecord, day_index: int, activity_index: int) -> Activity:
    """Count an alternative request. Allowed from any status."""
    activity = get_activity(trip, day_index, activity_index)
    activity.alternativesRequested += 1
    trip.alternatives_requested += 1
    return activity


def accept_alternative(
    trip: TripRecord,
    day_index: int,
    activity_index: int,
    proposal: Mapping[str, Any],
) -> str:
    """
    Replace the activity wholesale with an accepted proposal.

    Fields the proposal omits keep the current activity's values. The new
    activity starts active and carries the old alternativesRequested count.
    Returns the new category.
    """
    category = proposal.get("category") or proposal.get("type")
    if category not in CATEGORIES:
        raise ValidationError(f"alternative needs a valid category, got {category!r}")

    current = get_activity(trip, day_index, activity_index)
    cost = proposal.get("cost")
    if isinstance(cost, bool) or not isinstance(cost, (int, float)):
        cost = current.cost

    replacement = Activity(
        id=current.id,
        name=proposal.get("name") or proposal.get("activity") or current.name,
        location=proposal.get("location") or current.location,
        description=proposal.get("description") or current.description,
        cost=max(0.0, float(cost)),
        duration=proposal.get("duration") or current.duration,
        time=proposal.get("time") or current.time,
        category=category,
        status="active",
        alternativesRequested=current.alternativesRequested,
    )
    trip.itinerary.days[day_index].activities[activity_index] = replacement
    recount(trip)
    return category


def check_completion(trip: TripRecord, now: datetime | None = None) -> bool:
    """
    True once every activity is done or skipped.

    An ongoing trip is moved to completed the first time this holds; calling
    again changes nothing.
    """
    finished = trip.completed_activities + trip.skipped_activities >= trip.total_activities
    if finished and trip.status == "ongoing":
        trip.status = "completed"
        trip.completed_at = trip.completed_at or now or _now()
        logger.info("trip_state: trip=%s completed by activity progress", trip.id)
    return finished


def transition_status(trip: TripRecord, new_status: str, now: datetime | None = None) -> str:
    """Apply a manual status change. Returns the trip-stat transition label."""
    key = (trip.status, new_status)
    if key not in STATUS_TRANSITIONS:
        raise InvalidTransition(f"trip {trip.id}: cannot go from {trip.status!r} to {new_status!r}")

    now = now or _now()
    trip.status = new_status
    if new_status == "ongoing" and trip.started_at is None:
        trip.started_at = now
    if new_status == "completed" and trip.completed_at is None:
        trip.completed_at = now
    return STATUS_TRANSITIONS[key]
