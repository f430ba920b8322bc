"""
Weighted activity generator.

Picks DNA categories for the three daily slots with probability proportional
to the traveler's current scores, then a uniform activity name within the
chosen category.

Slots:
  morning    09:00  3 hours
  afternoon  13:00  2 hours
  evening    18:00  2 hours

Diversity: each later slot excludes the categories already used that day,
falling back to all categories only when exclusion leaves nothing. With
distinct positive weights a day therefore spans three categories.

Sampling is probabilistic per draw. Over many days the category mix tracks
the weights; no single day is guaranteed to.

All randomness goes through an injectable random.Random so callers and tests
can seed it.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Collection, Mapping
from datetime import date, timedelta
from typing import Any

from services.planner.config import settings
from services.planner.dna.types import CATEGORIES
from services.planner.generation.catalog import DestinationPool, resolve_destination
from services.planner.trips.schema import Activity, DayPlan, Itinerary

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# (slot name, start time, duration label)
DAY_SLOTS: tuple[tuple[str, str, str], ...] = (
    ("morning", "09:00", "3 hours"),
    ("afternoon", "13:00", "2 hours"),
    ("evening", "18:00", "2 hours"),
)

DAY_THEMES: dict[str, str] = {
    "adventure": "Adventure & Exploration",
    "culture": "Culture & Heritage",
    "foodie": "Flavors of the City",
    "relaxation": "Slow Down & Recharge",
}

# Fallback when the DNA snapshot carries no budget signal
DEFAULT_BUDGET_MULTIPLIER = 0.5

BUDGET_MULTIPLIER_BY_TIER: dict[str, float] = {
    "budget": 0.2,
    "mid-range": 0.5,
    "luxury": 1.0,
}


def _rng(rng: random.Random | None) -> random.Random:
    return rng if rng is not None else random.Random()


# ---------------------------------------------------------------------------
# Core logic
# ---------------------------------------------------------------------------

def select_category(
    weights: Mapping[str, float],
    excluded: Collection[str] = (),
    rng: random.Random | None = None,
) -> str:
    """
    Draw one category with probability proportional to max(0, weight).

    Args:
        weights:  category -> score. Missing categories weigh 0.
        excluded: Categories to leave out. If that empties the candidate set,
                  every category is a candidate again.
        rng:      Random source.

    Returns:
        The chosen category. All-zero candidate weights mean a uniform pick.
    """
    rng = _rng(rng)
    candidates = [c for c in CATEGORIES if c not in excluded] or list(CATEGORIES)
    cat_weights = [max(0.0, float(weights.get(c, 0.0) or 0.0)) for c in candidates]
    total = sum(cat_weights)

    if total <= 0:
        return rng.choice(candidates)

    r = rng.random() * total
    cumulative = 0.0
    last_positive = candidates[0]
    for category, weight in zip(candidates, cat_weights):
        if weight <= 0:
            continue
        last_positive = category
        cumulative += weight
        if r < cumulative:
            return category
    # float rounding can leave r == total
    return last_positive


def generate_day_slots(
    pool: DestinationPool,
    weights: Mapping[str, float],
    day_number: int = 1,
    rng: random.Random | None = None,
) -> list[Activity]:
    """
    Build the activities for one day.

    A slot whose category has no activities in the pool is omitted.
    """
    rng = _rng(rng)
    used: set[str] = set()
    activities: list[Activity] = []
    slot_cost = round(pool.base_cost_per_day / len(DAY_SLOTS))

    for slot, start_time, duration in DAY_SLOTS:
        category = select_category(weights, excluded=used, rng=rng)
        used.add(category)

        names = pool.names_for(category)
        if not names:
            logger.debug(
                "generator: no %s activities in %s, omitting %s slot",
                category,
                pool.name,
                slot,
            )
            continue

        activities.append(Activity(
            id=f"{day_number}-{slot}",
            name=rng.choice(names),
            location=pool.name,
            description=f"A {category} experience in {pool.name}",
            cost=slot_cost,
            duration=duration,
            time=start_time,
            category=category,
        ))
    return activities


def _budget_multiplier(dna_snapshot: Mapping[str, Any]) -> float:
    budget = dna_snapshot.get("budget")
    if isinstance(budget, bool) or budget is None:
        return DEFAULT_BUDGET_MULTIPLIER
    if isinstance(budget, (int, float)):
        return float(budget) or DEFAULT_BUDGET_MULTIPLIER
    return BUDGET_MULTIPLIER_BY_TIER.get(str(budget), DEFAULT_BUDGET_MULTIPLIER)


def estimate_cost(
    base_cost_per_day: float,
    days: int,
    dna_snapshot: Mapping[str, Any],
    requested_budget: float | None,
) -> float:
    """
    base x days x (1 + budget multiplier) x (1 + mean interest x 0.5),
    capped at settings.trip_cost_budget_cap x the requested budget.
    """
    interests = [float(dna_snapshot.get(c) or 0.0) for c in ("adventure", "culture", "foodie")]
    activity_multiplier = sum(interests) / len(interests)

    estimated = round(
        base_cost_per_day * days
        * (1 + _budget_multiplier(dna_snapshot))
        * (1 + activity_multiplier * 0.5)
    )
    if requested_budget is None:
        return float(estimated)
    return float(min(estimated, requested_budget * settings.trip_cost_budget_cap))


def generate_itinerary(
    destination: str,
    start_date: date,
    days: int,
    weights: Mapping[str, float],
    dna_snapshot: Mapping[str, Any],
    budget: float | None,
    catalog: Mapping[str, DestinationPool] | None = None,
    rng: random.Random | None = None,
) -> Itinerary:
    """Mock generator: a full Itinerary of `days` DayPlans starting at start_date."""
    if days < 1:
        raise ValueError(f"days must be >= 1, got {days}")

    rng = _rng(rng)
    pool = resolve_destination(destination, catalog)

    plans: list[DayPlan] = []
    for day_number in range(1, days + 1):
        activities = generate_day_slots(pool, weights, day_number=day_number, rng=rng)
        lead = activities[0].category if activities else None
        plans.append(DayPlan(
            day=day_number,
            date=start_date + timedelta(days=day_number - 1),
            theme=DAY_THEMES.get(lead, "Free Exploration"),
            activities=activities,
        ))

    itinerary = Itinerary(
        destination=destination,
        totalDays=days,
        estimatedTotalCost=estimate_cost(pool.base_cost_per_day, days, dna_snapshot, budget),
        days=plans,
    )
    logger.info(
        "generator: itinerary built destination=%s pool=%s days=%d activities=%d",
        destination,
        pool.name,
        days,
        sum(len(p.activities) for p in plans),
    )
    return itinerary
