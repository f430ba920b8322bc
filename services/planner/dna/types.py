"""
Travel DNA types.

QuizAnswers is the validated, frozen quiz snapshot. DNAProfile is the mutable
evolved state the Evolution Engine works on; the store converts it to and from
the travel_dna row.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from services.planner.config import settings

CATEGORIES: tuple[str, ...] = ("adventure", "culture", "foodie", "relaxation")
"""Fixed order. Also the tie-break order for the dominant trait."""

FEEDBACK_ACTIONS: tuple[str, ...] = ("completed", "skipped", "alternative_requested")

BUDGET_TIERS: tuple[str, ...] = ("budget", "mid-range", "luxury")
PACE_TIERS: tuple[str, ...] = ("slow", "moderate", "fast")

# Quiz UI pace labels -> stored pace tier
_PACE_LABELS: dict[str, str] = {
    "relaxed": "slow",
    "balanced": "moderate",
    "active": "fast",
}


def budget_tier(value: float) -> str:
    """Map a numeric 0-1 budget answer onto a budget tier."""
    if value <= settings.budget_tier_budget_max:
        return "budget"
    if value <= settings.budget_tier_mid_max:
        return "mid-range"
    return "luxury"


def pace_tier(label: str) -> str:
    """Map a quiz pace label (relaxed/balanced/active or a tier name) onto a pace tier."""
    label = label.strip().lower()
    if label in PACE_TIERS:
        return label
    return _PACE_LABELS.get(label, label)


class QuizAnswers(BaseModel):
    """Immutable quiz snapshot. Accepts numeric budgets and UI pace labels."""

    model_config = {"frozen": True, "extra": "ignore"}

    adventure: float = Field(ge=0.0, le=1.0)
    culture: float = Field(ge=0.0, le=1.0)
    foodie: float = Field(ge=0.0, le=1.0)
    budget: Literal["budget", "mid-range", "luxury"]
    pace: Literal["slow", "moderate", "fast"]

    @field_validator("budget", mode="before")
    @classmethod
    def numeric_budget_to_tier(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            if not 0.0 <= v <= 1.0:
                raise ValueError(f"numeric budget must be within [0, 1], got {v}")
            return budget_tier(float(v))
        return v

    @field_validator("pace", mode="before")
    @classmethod
    def pace_label_to_tier(cls, v: Any) -> Any:
        if isinstance(v, str):
            return pace_tier(v)
        return v


@dataclass
class Insights:
    """Derived from scores by recompute_insights(). Never set by hand."""

    dominant_trait: str = "adventure"
    travel_style: str = "balanced_traveler"
    profile_title: str = "Balanced Traveler"


@dataclass
class TripStats:
    total_trips: int = 0
    planned_trips: int = 0
    ongoing_trips: int = 0
    completed_trips: int = 0
    total_activities_completed: int = 0
    total_activities_skipped: int = 0
    total_alternatives_requested: int = 0


@dataclass
class EvolutionEntry:
    """One append-only evolutionHistory record."""

    timestamp: datetime
    action: str
    """activity_completed | activity_skipped | alternative_requested"""

    category: str
    deltas: dict[str, float]
    """Full per-category delta vector; zero for every category but one."""

    trip_id: str | None = None


def _empty_counters() -> dict[str, dict[str, int]]:
    return {
        bucket: {c: 0 for c in CATEGORIES}
        for bucket in ("completed", "skipped", "alternativesRequested")
    }


@dataclass
class DNAProfile:
    user_id: str
    initial: QuizAnswers
    scores: dict[str, float]
    """category -> score in [0, 10]"""

    counters: dict[str, dict[str, int]] = field(default_factory=_empty_counters)
    """bucket (completed | skipped | alternativesRequested) -> category -> count"""

    trip_stats: TripStats = field(default_factory=TripStats)
    insights: Insights = field(default_factory=Insights)
    history: list[EvolutionEntry] = field(default_factory=list)
