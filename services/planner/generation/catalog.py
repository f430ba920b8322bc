"""
Static per-destination activity pools used by the mock itinerary generator.

Each DestinationPool lists activity names per DNA category plus a per-day base
cost. Lookups are whitespace- and case-insensitive ("New York", "newyork" and
" new  york " all resolve to the same pool). Unknown destinations fall back to
Paris so generation never fails on a destination we have no data for.

Callers that own a richer catalog pass it to the generator as a plain
Mapping[str, DestinationPool].
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field

_WHITESPACE = re.compile(r"\s+")

DEFAULT_DESTINATION = "paris"


@dataclass(frozen=True)
class DestinationPool:
    name: str
    base_cost_per_day: int
    activities: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def names_for(self, category: str) -> tuple[str, ...]:
        return tuple(self.activities.get(category, ()))


CATALOG: dict[str, DestinationPool] = {
    "paris": DestinationPool(
        name="Paris",
        base_cost_per_day=150,
        activities={
            "adventure": (
                "Seine River kayaking",
                "Catacombs exploration",
                "Bike tour through Montmartre",
                "Rock climbing at Fontainebleau",
                "Hot air balloon ride",
            ),
            "culture": (
                "Louvre Museum tour",
                "Notre-Dame Cathedral visit",
                "Versailles Palace day trip",
                "Musée d'Orsay art collection",
                "Latin Quarter walking tour",
                "Opera house performance",
            ),
            "foodie": (
                "French cooking class",
                "Wine tasting in Montmartre",
                "Cheese and charcuterie tour",
                "Michelin-starred restaurant",
                "Local market food tour",
                "Pastry making workshop",
            ),
            "relaxation": (
                "Luxembourg Gardens stroll",
                "Seine river cruise",
                "Spa day at luxury hotel",
                "Picnic at Champ de Mars",
                "Café culture experience",
            ),
        },
    ),
    "tokyo": DestinationPool(
        name="Tokyo",
        base_cost_per_day=180,
        activities={
            "adventure": (
                "Mount Fuji hiking",
                "Tokyo Skytree bungee jump",
                "Shibuya crossing challenge",
                "Robot restaurant experience",
                "Ninja training workshop",
            ),
            "culture": (
                "Traditional tea ceremony",
                "Senso-ji Temple visit",
                "Kabuki theater performance",
                "Imperial Palace tour",
                "Meiji Shrine exploration",
                "Samurai museum visit",
            ),
            "foodie": (
                "Sushi making class",
                "Ramen tour in Shibuya",
                "Tsukiji fish market visit",
                "Sake tasting experience",
                "Street food in Harajuku",
                "Kaiseki dining experience",
            ),
            "relaxation": (
                "Traditional onsen visit",
                "Japanese garden meditation",
                "Shinjuku Park cherry blossoms",
                "Ryokan stay experience",
                "Zen temple meditation",
            ),
        },
    ),
    "new york": DestinationPool(
        name="New York",
        base_cost_per_day=200,
        activities={
            "adventure": (
                "Central Park rock climbing",
                "Brooklyn Bridge bike ride",
                "Helicopter tour of Manhattan",
                "Coney Island roller coasters",
                "High Line elevated park walk",
            ),
            "culture": (
                "Metropolitan Museum of Art",
                "Broadway show experience",
                "Statue of Liberty visit",
                "Ellis Island immigration museum",
                "Guggenheim Museum tour",
                "Lincoln Center performance",
            ),
            "foodie": (
                "Pizza tour in Brooklyn",
                "Deli sandwich crawl",
                "Rooftop dining experience",
                "Food truck festival",
                "Chinatown food tour",
                "Fine dining in SoHo",
            ),
            "relaxation": (
                "Central Park picnic",
                "Hudson River waterfront walk",
                "Spa day in Midtown",
                "Sunset at Top of the Rock",
                "Coffee shop hopping in Greenwich Village",
            ),
        },
    ),
}


def _compact(destination: str) -> str:
    return _WHITESPACE.sub("", destination.lower())


def resolve_destination(
    destination: str,
    catalog: Mapping[str, DestinationPool] | None = None,
) -> DestinationPool:
    """Return the pool for a destination, falling back to Paris (or the catalog's first pool)."""
    catalog = CATALOG if catalog is None else catalog
    wanted = _compact(destination)
    for key, pool in catalog.items():
        if _compact(key) == wanted:
            return pool
    if DEFAULT_DESTINATION in catalog:
        return catalog[DEFAULT_DESTINATION]
    if catalog:
        return next(iter(catalog.values()))
    return CATALOG[DEFAULT_DESTINATION]
