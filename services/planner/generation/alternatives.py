"""
Alternative activity proposals.

A proposal always switches category (uniformly among the other three), keeps
the slot's location, time and duration, and is slightly cheaper:
cost = max(0, round(cost * (1 - settings.alternative_cost_discount))).

The proposal is a plain dict in the Activity field shape so the caller can
hand it straight back to trips.state.accept_alternative.
"""

from __future__ import annotations

import random
from typing import Any

from services.planner.config import settings
from services.planner.dna.types import CATEGORIES
from services.planner.generation.catalog import DestinationPool
from services.planner.trips.schema import Activity


def propose_alternative(
    activity: Activity,
    pool: DestinationPool | None = None,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    rng = rng if rng is not None else random.Random()
    others = [c for c in CATEGORIES if c != activity.category]
    category = rng.choice(others)

    names = pool.names_for(category) if pool is not None else ()
    name = rng.choice(names) if names else f"Alternative {category} activity"

    return {
        "name": name,
        "location": activity.location,
        "description": f"An alternative {category} experience in the same area",
        "cost": max(0, round(activity.cost * (1 - settings.alternative_cost_discount))),
        "category": category,
        "duration": activity.duration,
        "time": activity.time,
    }
