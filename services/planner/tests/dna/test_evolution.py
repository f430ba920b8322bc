"""
Tests for services/planner/dna/evolution.py (pure Travel DNA rules).

Covers:
- Quiz -> initial scores, relaxation from pace
- Quiz input mapping (numeric budget, UI pace labels)
- Feedback deltas, counters, clamping, history
- Insights: dominant trait, tie order, balanced threshold
- Guarded trip-stat transitions
- Trip-stat derivation from live statuses
- Retaking the quiz
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from services.planner.dna.evolution import (
    BALANCED_STYLE,
    BALANCED_TITLE,
    apply_feedback,
    clamp_score,
    derive_trip_stats,
    feedback_delta,
    initialize_from_quiz,
    recompute_insights,
    reset_from_quiz,
    update_trip_stats,
)
from services.planner.dna.types import CATEGORIES, TripStats, budget_tier, pace_tier
from services.planner.errors import InvalidTransition, ValidationError
from services.planner.tests.conftest import make_quiz


# ===========================================================================
# 1. Initialization from quiz
# ===========================================================================

class TestInitializeFromQuiz:
    def test_scales_quiz_answers_to_ten(self):
        profile = initialize_from_quiz("u1", make_quiz())
        assert profile.scores == {
            "adventure": 8.0,
            "culture": 3.0,
            "foodie": 5.0,
            "relaxation": 9.0,
        }

    def test_gap_of_exactly_one_is_not_balanced(self):
        """relaxation 9 vs adventure 8: gap 1.0 is not < 1.0."""
        profile = initialize_from_quiz("u1", make_quiz())
        assert profile.insights.dominant_trait == "relaxation"
        assert profile.insights.travel_style == "relaxation_seeker"
        assert profile.insights.profile_title == "Relaxation Seeker"

    @pytest.mark.parametrize("pace,expected", [("slow", 9.0), ("moderate", 6.0), ("fast", 3.0)])
    def test_relaxation_comes_from_pace(self, pace, expected):
        profile = initialize_from_quiz("u1", make_quiz(pace=pace))
        assert profile.scores["relaxation"] == expected

    def test_relaxation_independent_of_adventure(self):
        low = initialize_from_quiz("u1", make_quiz(adventure=0.0))
        high = initialize_from_quiz("u1", make_quiz(adventure=1.0))
        assert low.scores["relaxation"] == high.scores["relaxation"]

    def test_fresh_counters_and_history(self):
        profile = initialize_from_quiz("u1", make_quiz())
        assert profile.history == []
        assert profile.trip_stats == TripStats()
        for bucket in ("completed", "skipped", "alternativesRequested"):
            assert profile.counters[bucket] == {c: 0 for c in CATEGORIES}

    def test_out_of_range_answer_rejected(self):
        with pytest.raises(ValidationError):
            initialize_from_quiz("u1", make_quiz(adventure=1.5))

    def test_unknown_budget_tier_rejected(self):
        with pytest.raises(ValidationError):
            initialize_from_quiz("u1", make_quiz(budget="backpacker"))

    def test_missing_field_rejected(self):
        quiz = make_quiz()
        del quiz["foodie"]
        with pytest.raises(ValidationError):
            initialize_from_quiz("u1", quiz)


# ===========================================================================
# 2. Quiz input mapping
# ===========================================================================

class TestQuizMapping:
    @pytest.mark.parametrize("value,tier", [
        (0.0, "budget"),
        (0.4, "budget"),
        (0.41, "mid-range"),
        (0.8, "mid-range"),
        (0.81, "luxury"),
        (1.0, "luxury"),
    ])
    def test_budget_tier_boundaries(self, value, tier):
        assert budget_tier(value) == tier

    @pytest.mark.parametrize("label,tier", [
        ("relaxed", "slow"),
        ("balanced", "moderate"),
        ("active", "fast"),
        ("Relaxed", "slow"),
        ("moderate", "moderate"),
    ])
    def test_pace_labels(self, label, tier):
        assert pace_tier(label) == tier

    def test_numeric_budget_accepted_in_quiz(self):
        profile = initialize_from_quiz("u1", make_quiz(budget=0.9, pace="active"))
        assert profile.initial.budget == "luxury"
        assert profile.initial.pace == "fast"
        assert profile.scores["relaxation"] == 3.0

    def test_numeric_budget_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            initialize_from_quiz("u1", make_quiz(budget=2))


# ===========================================================================
# 3. Feedback
# ===========================================================================

class TestApplyFeedback:
    def test_deltas(self):
        assert feedback_delta("completed") == pytest.approx(0.1)
        assert feedback_delta("skipped") == pytest.approx(-0.1)
        assert feedback_delta("alternative_requested") == pytest.approx(-0.05)

    def test_completed_raises_one_category_only(self):
        profile = initialize_from_quiz("u1", make_quiz())
        apply_feedback(profile, "foodie", "completed")
        assert profile.scores["foodie"] == pytest.approx(5.1)
        assert profile.scores["adventure"] == 8.0
        assert profile.scores["culture"] == 3.0
        assert profile.scores["relaxation"] == 9.0

    def test_counters_and_aggregates(self):
        profile = initialize_from_quiz("u1", make_quiz())
        apply_feedback(profile, "culture", "completed")
        apply_feedback(profile, "culture", "skipped")
        apply_feedback(profile, "adventure", "alternative_requested")
        assert profile.counters["completed"]["culture"] == 1
        assert profile.counters["skipped"]["culture"] == 1
        assert profile.counters["alternativesRequested"]["adventure"] == 1
        assert profile.trip_stats.total_activities_completed == 1
        assert profile.trip_stats.total_activities_skipped == 1
        assert profile.trip_stats.total_alternatives_requested == 1

    def test_history_entry_has_full_delta_vector(self):
        profile = initialize_from_quiz("u1", make_quiz())
        ts = datetime(2026, 5, 1, 12, tzinfo=timezone.utc)
        entry = apply_feedback(profile, "culture", "skipped", trip_id="trip-1", now=ts)
        assert entry.action == "activity_skipped"
        assert entry.category == "culture"
        assert entry.trip_id == "trip-1"
        assert entry.timestamp == ts
        assert set(entry.deltas) == set(CATEGORIES)
        assert entry.deltas["culture"] == pytest.approx(-0.1)
        assert entry.deltas["adventure"] == 0.0
        assert profile.history == [entry]

    def test_sixty_skips_clamp_at_zero(self):
        profile = initialize_from_quiz("u1", make_quiz(foodie=0.5))
        for _ in range(60):
            apply_feedback(profile, "foodie", "skipped")
        assert profile.scores["foodie"] == 0.0
        assert profile.counters["skipped"]["foodie"] == 60

    def test_completions_clamp_at_ten(self):
        profile = initialize_from_quiz("u1", make_quiz(adventure=1.0))
        for _ in range(5):
            apply_feedback(profile, "adventure", "completed")
        assert profile.scores["adventure"] == 10.0

    def test_scores_stay_in_range_for_mixed_sequence(self):
        profile = initialize_from_quiz("u1", make_quiz())
        actions = ["completed", "skipped", "alternative_requested"]
        for i in range(300):
            apply_feedback(profile, CATEGORIES[i % 4], actions[i % 3])
            assert all(0.0 <= s <= 10.0 for s in profile.scores.values())

    def test_unknown_category_rejected_without_mutation(self):
        profile = initialize_from_quiz("u1", make_quiz())
        before = dict(profile.scores)
        with pytest.raises(ValidationError):
            apply_feedback(profile, "nightlife", "completed")
        assert profile.scores == before
        assert profile.history == []

    def test_unknown_action_rejected(self):
        profile = initialize_from_quiz("u1", make_quiz())
        with pytest.raises(ValidationError):
            apply_feedback(profile, "culture", "loved")

    def test_feedback_recomputes_insights(self):
        profile = initialize_from_quiz("u1", make_quiz(adventure=0.9, pace="fast"))
        assert profile.insights.travel_style == "explorer"
        for _ in range(45):
            apply_feedback(profile, "adventure", "skipped")
        # adventure 4.5 < foodie 5.0
        assert profile.scores["adventure"] == 4.5
        assert profile.insights.dominant_trait == "foodie"
        assert profile.insights.travel_style == BALANCED_STYLE


# ===========================================================================
# 4. Insights
# ===========================================================================

class TestRecomputeInsights:
    def _profile(self, **scores):
        profile = initialize_from_quiz("u1", make_quiz())
        profile.scores = {c: scores.get(c, 0.0) for c in CATEGORIES}
        return profile

    def test_ties_follow_category_order(self):
        profile = self._profile(adventure=6.0, culture=6.0, foodie=6.0, relaxation=6.0)
        insights = recompute_insights(profile)
        assert insights.dominant_trait == "adventure"
        assert insights.travel_style == BALANCED_STYLE
        assert insights.profile_title == BALANCED_TITLE

    def test_tie_between_later_categories(self):
        profile = self._profile(adventure=1.0, culture=2.0, foodie=7.0, relaxation=7.0)
        assert recompute_insights(profile).dominant_trait == "foodie"

    def test_small_gap_is_balanced(self):
        profile = self._profile(adventure=3.0, culture=7.5, foodie=7.0)
        insights = recompute_insights(profile)
        assert insights.dominant_trait == "culture"
        assert insights.travel_style == BALANCED_STYLE

    @pytest.mark.parametrize("trait,style,title", [
        ("adventure", "explorer", "Adventure-Driven Traveler (Explorer)"),
        ("culture", "cultural_immersion", "Culture-Focused Traveler (Cultural Immersion)"),
        ("foodie", "foodie_adventure", "Culinary Explorer (Foodie Adventure)"),
        ("relaxation", "relaxation_seeker", "Relaxation Seeker"),
    ])
    def test_style_table(self, trait, style, title):
        profile = self._profile(**{trait: 9.0})
        insights = recompute_insights(profile)
        assert insights.travel_style == style
        assert insights.profile_title == title

    def test_repeated_steps_do_not_drift_past_threshold(self):
        """Ten +0.1 steps from 5.0 land exactly on 6.0."""
        profile = self._profile(adventure=5.0, culture=5.0)
        for _ in range(10):
            profile.scores["adventure"] = clamp_score(profile.scores["adventure"] + 0.1)
        assert profile.scores["adventure"] == 6.0
        assert recompute_insights(profile).travel_style == "explorer"


# ===========================================================================
# 5. Trip-stat transitions
# ===========================================================================

class TestUpdateTripStats:
    def test_full_lifecycle(self):
        profile = initialize_from_quiz("u1", make_quiz())
        update_trip_stats(profile, "planned")
        update_trip_stats(profile, "planned->ongoing")
        update_trip_stats(profile, "ongoing->completed")
        stats = profile.trip_stats
        assert (stats.total_trips, stats.planned_trips, stats.ongoing_trips, stats.completed_trips) == (1, 0, 0, 1)

    def test_decrement_below_zero_rejected_without_mutation(self):
        profile = initialize_from_quiz("u1", make_quiz())
        with pytest.raises(InvalidTransition):
            update_trip_stats(profile, "planned->ongoing")
        assert profile.trip_stats == TripStats()

    def test_unknown_transition_rejected(self):
        profile = initialize_from_quiz("u1", make_quiz())
        with pytest.raises(InvalidTransition):
            update_trip_stats(profile, "completed->planned")

    def test_cancellation_only_decrements(self):
        profile = initialize_from_quiz("u1", make_quiz())
        update_trip_stats(profile, "planned")
        update_trip_stats(profile, "planned->cancelled")
        assert profile.trip_stats.planned_trips == 0
        assert profile.trip_stats.total_trips == 1


class TestDeriveTripStats:
    def test_counts_from_statuses(self):
        stats = derive_trip_stats({"planned": 2, "ongoing": 1, "completed": 3, "cancelled": 1})
        assert stats.total_trips == 7
        assert stats.planned_trips == 2
        assert stats.ongoing_trips == 1
        assert stats.completed_trips == 3

    def test_activity_aggregates_preserved(self):
        base = TripStats(total_trips=9, planned_trips=9, total_activities_completed=12)
        stats = derive_trip_stats({"completed": 1}, base=base)
        assert stats.total_trips == 1
        assert stats.planned_trips == 0
        assert stats.total_activities_completed == 12


# ===========================================================================
# 6. Retaking the quiz
# ===========================================================================

class TestResetFromQuiz:
    def test_keeps_counters_and_history(self):
        profile = initialize_from_quiz("u1", make_quiz())
        apply_feedback(profile, "culture", "completed")
        update_trip_stats(profile, "planned")

        reset_from_quiz(profile, make_quiz(adventure=0.1, culture=0.9, pace="fast"))

        assert profile.scores["culture"] == 9.0
        assert profile.initial.culture == 0.9
        assert profile.insights.travel_style == "cultural_immersion"
        assert len(profile.history) == 1
        assert profile.counters["completed"]["culture"] == 1
        assert profile.trip_stats.total_trips == 1
