from services.planner.generation.alternatives import propose_alternative
from services.planner.generation.catalog import CATALOG, DestinationPool, resolve_destination
from services.planner.generation.weighted import (
    estimate_cost,
    generate_day_slots,
    generate_itinerary,
    select_category,
)

__all__ = [
    "CATALOG",
    "DestinationPool",
    "estimate_cost",
    "generate_day_slots",
    "generate_itinerary",
    "propose_alternative",
    "resolve_destination",
    "select_category",
]
