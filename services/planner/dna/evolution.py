"""
Travel DNA evolution engine.

Pure functions over DNAProfile. Persistence and locking live in dna.store;
nothing here touches the database, so every rule is unit-testable directly.

Scores:
  - Quiz answers (0-1) become initial scores on a 0-10 scale.
  - Relaxation comes from the pace answer (slow 0.9, moderate 0.6, fast 0.3),
    not from adventure, so the two axes move independently.
  - Feedback nudges exactly one category:
        completed              +step
        skipped                -step
        alternative_requested  -step * alternative_penalty_ratio
    with step = settings.evolution_step (0.1) and ratio 0.5.
  - Scores are clamped to [0, 10] after every change.

Insights:
  - dominant trait = highest score, ties broken by CATEGORIES order
  - balanced iff (top - runner-up) < settings.balanced_gap_threshold (1.0)

Trip stats:
  - Incremental transitions are guarded: a decrement below zero, or a
    transition outside TRIP_TRANSITIONS, raises InvalidTransition and leaves
    the profile untouched.
  - derive_trip_stats() rebuilds the counters from live trip statuses and is
    the authoritative repair path.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

import pydantic

from services.planner.config import settings
from services.planner.dna.types import (
    CATEGORIES,
    FEEDBACK_ACTIONS,
    DNAProfile,
    EvolutionEntry,
    Insights,
    QuizAnswers,
    TripStats,
)
from services.planner.errors import InvalidTransition, ValidationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SCORE_MIN = 0.0
SCORE_MAX = 10.0

# Quiz scale (0-1) -> display scale (0-10)
QUIZ_SCALE = 10.0

RELAXATION_BY_PACE: dict[str, float] = {
    "slow": 0.9,
    "moderate": 0.6,
    "fast": 0.3,
}

TRAVEL_STYLE_BY_TRAIT: dict[str, str] = {
    "adventure": "explorer",
    "culture": "cultural_immersion",
    "foodie": "foodie_adventure",
    "relaxation": "relaxation_seeker",
}

PROFILE_TITLE_BY_TRAIT: dict[str, str] = {
    "adventure": "Adventure-Driven Traveler (Explorer)",
    "culture": "Culture-Focused Traveler (Cultural Immersion)",
    "foodie": "Culinary Explorer (Foodie Adventure)",
    "relaxation": "Relaxation Seeker",
}

BALANCED_STYLE = "balanced_traveler"
BALANCED_TITLE = "Balanced Traveler"

# feedback action -> evolutionHistory action label
HISTORY_ACTIONS: dict[str, str] = {
    "completed": "activity_completed",
    "skipped": "activity_skipped",
    "alternative_requested": "alternative_requested",
}

# feedback action -> (counters bucket, TripStats aggregate field)
_COUNTER_TARGETS: dict[str, tuple[str, str]] = {
    "completed": ("completed", "total_activities_completed"),
    "skipped": ("skipped", "total_activities_skipped"),
    "alternative_requested": ("alternativesRequested", "total_alternatives_requested"),
}

# transition -> (fields decremented, fields incremented)
TRIP_TRANSITIONS: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "planned": ((), ("total_trips", "planned_trips")),
    "planned->ongoing": (("planned_trips",), ("ongoing_trips",)),
    "ongoing->completed": (("ongoing_trips",), ("completed_trips",)),
    "planned->cancelled": (("planned_trips",), ()),
    "ongoing->cancelled": (("ongoing_trips",), ()),
}

# Rounding keeps repeated 0.1 steps from drifting across the balanced boundary.
_SCORE_PRECISION = 6


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _now() -> datetime:
    return datetime.now(timezone.utc)


def clamp_score(value: float) -> float:
    return round(max(SCORE_MIN, min(SCORE_MAX, value)), _SCORE_PRECISION)


def feedback_delta(action: str) -> float:
    """Score change for a single feedback action."""
    step = settings.evolution_step
    if action == "completed":
        return step
    if action == "skipped":
        return -step
    if action == "alternative_requested":
        return -step * settings.alternative_penalty_ratio
    raise ValidationError(f"unknown feedback action: {action!r}")


def parse_quiz(answers: QuizAnswers | Mapping[str, Any]) -> QuizAnswers:
    """Validate raw quiz answers. Raises ValidationError on malformed input."""
    if isinstance(answers, QuizAnswers):
        return answers
    try:
        return QuizAnswers.model_validate(dict(answers))
    except pydantic.ValidationError as exc:
        raise ValidationError(f"invalid quiz answers: {exc}") from exc


def scores_from_quiz(quiz: QuizAnswers) -> dict[str, float]:
    return {
        "adventure": clamp_score(quiz.adventure * QUIZ_SCALE),
        "culture": clamp_score(quiz.culture * QUIZ_SCALE),
        "foodie": clamp_score(quiz.foodie * QUIZ_SCALE),
        "relaxation": clamp_score(RELAXATION_BY_PACE[quiz.pace] * QUIZ_SCALE),
    }


# ---------------------------------------------------------------------------
# Core logic
# ---------------------------------------------------------------------------

def initialize_from_quiz(user_id: str, answers: QuizAnswers | Mapping[str, Any]) -> DNAProfile:
    """Build a brand-new profile from quiz answers, with insights already computed."""
    quiz = parse_quiz(answers)
    profile = DNAProfile(user_id=user_id, initial=quiz, scores=scores_from_quiz(quiz))
    recompute_insights(profile)
    return profile


def reset_from_quiz(profile: DNAProfile, answers: QuizAnswers | Mapping[str, Any]) -> DNAProfile:
    """
    Retake the quiz: replace the snapshot and current scores.

    Counters, trip stats and evolution history are kept.
    """
    quiz = parse_quiz(answers)
    profile.initial = quiz
    profile.scores = scores_from_quiz(quiz)
    recompute_insights(profile)
    return profile


def recompute_insights(profile: DNAProfile) -> Insights:
    """Derive dominant trait, travel style and profile title from current scores."""
    # sorted() is stable, so equal scores keep CATEGORIES order
    ranked = sorted(CATEGORIES, key=lambda c: profile.scores[c], reverse=True)
    top, runner_up = ranked[0], ranked[1]
    gap = profile.scores[top] - profile.scores[runner_up]
    balanced = gap < settings.balanced_gap_threshold

    profile.insights = Insights(
        dominant_trait=top,
        travel_style=BALANCED_STYLE if balanced else TRAVEL_STYLE_BY_TRAIT[top],
        profile_title=BALANCED_TITLE if balanced else PROFILE_TITLE_BY_TRAIT[top],
    )
    return profile.insights


def apply_feedback(
    profile: DNAProfile,
    category: str,
    action: str,
    trip_id: str | None = None,
    now: datetime | None = None,
) -> EvolutionEntry:
    """
    Apply one feedback event to a profile in place.

    Args:
        profile:  Profile to mutate.
        category: adventure | culture | foodie | relaxation
        action:   completed | skipped | alternative_requested
        trip_id:  Optional trip reference stored on the history entry.
        now:      Timestamp for the history entry (defaults to UTC now).

    Returns:
        The appended EvolutionEntry.
    """
    if category not in CATEGORIES:
        raise ValidationError(f"unknown activity category: {category!r}")
    if action not in FEEDBACK_ACTIONS:
        raise ValidationError(f"unknown feedback action: {action!r}")

    delta = feedback_delta(action)
    bucket, aggregate = _COUNTER_TARGETS[action]

    profile.counters[bucket][category] += 1
    setattr(profile.trip_stats, aggregate, getattr(profile.trip_stats, aggregate) + 1)

    before = profile.scores[category]
    profile.scores[category] = clamp_score(before + delta)

    entry = EvolutionEntry(
        timestamp=now or _now(),
        action=HISTORY_ACTIONS[action],
        category=category,
        deltas={c: (delta if c == category else 0.0) for c in CATEGORIES},
        trip_id=trip_id,
    )
    profile.history.append(entry)
    recompute_insights(profile)

    logger.debug(
        "dna_evolution: user=%s category=%s action=%s score=%.2f->%.2f",
        profile.user_id,
        category,
        action,
        before,
        profile.scores[category],
    )
    return entry


def update_trip_stats(profile: DNAProfile, transition: str) -> TripStats:
    """
    Apply a guarded incremental trip-stat transition.

    Raises InvalidTransition (profile untouched) for unknown transitions or when a
    decrement would drop a counter below zero.
    """
    if transition not in TRIP_TRANSITIONS:
        raise InvalidTransition(f"unknown trip-stat transition: {transition!r}")

    decrements, increments = TRIP_TRANSITIONS[transition]
    stats = profile.trip_stats
    for name in decrements:
        if getattr(stats, name) <= 0:
            raise InvalidTransition(
                f"cannot apply {transition!r}: {name} is already 0 for user {profile.user_id}"
            )

    for name in decrements:
        setattr(stats, name, getattr(stats, name) - 1)
    for name in increments:
        setattr(stats, name, getattr(stats, name) + 1)
    return stats


def derive_trip_stats(status_counts: Mapping[str, int], base: TripStats | None = None) -> TripStats:
    """
    Rebuild the trip counters from the live set of trip statuses.

    Activity aggregates are carried over from ``base`` unchanged. Cancelled trips
    count toward total_trips only.
    """
    base = base or TripStats()
    planned = status_counts.get("planned", 0)
    ongoing = status_counts.get("ongoing", 0)
    completed = status_counts.get("completed", 0)
    cancelled = status_counts.get("cancelled", 0)
    return dataclasses.replace(
        base,
        total_trips=planned + ongoing + completed + cancelled,
        planned_trips=planned,
        ongoing_trips=ongoing,
        completed_trips=completed,
    )
