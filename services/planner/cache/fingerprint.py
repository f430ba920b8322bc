"""
Itinerary cache fingerprint.

Format:
    {destination}_{adventure}_{culture}_{foodie}_{budget}_{pace}
        _{accommodation}_{transportation}_{travelers}_{duration}

  "Paris", {adventure: 0.8, culture: 0.3, foodie: 0.5, budget: "mid-range",
  pace: "slow"}, {accommodation: "hotel", transportation: "metro",
  travelers: 2, duration: 5}
    -> "paris_0.8_0.3_0.5_mid-range_slow_hotel_metro_2_5"

Destination normalisation:
  "  New   York " -> "new_york"

Missing fields render as empty strings. Integral floats render without a
trailing ".0" so 2 and 2.0 produce the same key.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

_DNA_FIELDS: tuple[str, ...] = ("adventure", "culture", "foodie", "budget", "pace")
_TRIP_FIELDS: tuple[str, ...] = ("accommodation", "transportation", "travelers", "duration")

_WHITESPACE = re.compile(r"\s+")


def normalize_destination(destination: str) -> str:
    return _WHITESPACE.sub("_", destination.strip().lower())


def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def fingerprint(
    destination: str,
    dna_snapshot: Mapping[str, Any],
    trip_params: Mapping[str, Any],
) -> str:
    """Deterministic cache key for (destination, DNA snapshot, trip parameters)."""
    parts = [normalize_destination(destination)]
    parts.extend(_render(dna_snapshot.get(f)) for f in _DNA_FIELDS)
    parts.extend(_render(trip_params.get(f)) for f in _TRIP_FIELDS)
    return "_".join(parts)
