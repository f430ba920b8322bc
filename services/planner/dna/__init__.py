"""
services.planner.dna: Travel DNA profile model, evolution rules and store.

Usage:
    from services.planner.dna import initialize_from_quiz, apply_feedback

    profile = initialize_from_quiz("user-123", {
        "adventure": 0.8, "culture": 0.3, "foodie": 0.5,
        "budget": "mid-range", "pace": "slow",
    })
    apply_feedback(profile, "foodie", "completed")
"""

from __future__ import annotations

from services.planner.dna.evolution import (
    apply_feedback,
    derive_trip_stats,
    initialize_from_quiz,
    recompute_insights,
    reset_from_quiz,
    update_trip_stats,
)
from services.planner.dna.types import CATEGORIES, DNAProfile, QuizAnswers

__all__ = [
    "CATEGORIES",
    "DNAProfile",
    "QuizAnswers",
    "apply_feedback",
    "derive_trip_stats",
    "initialize_from_quiz",
    "recompute_insights",
    "reset_from_quiz",
    "update_trip_stats",
]
