"""Tests for services/planner/generation/alternatives.py."""

from __future__ import annotations

import random

from services.planner.generation.alternatives import propose_alternative
from services.planner.generation.catalog import CATALOG
from services.planner.trips.schema import Activity
from services.planner.tests.conftest import make_activity


def _activity(**overrides) -> Activity:
    return Activity.model_validate(make_activity(**overrides))


class TestProposeAlternative:
    def test_never_same_category(self):
        for seed in range(100):
            proposal = propose_alternative(_activity(category="culture"), rng=random.Random(seed))
            assert proposal["category"] != "culture"

    def test_covers_other_three_categories(self):
        seen = {
            propose_alternative(_activity(category="foodie"), rng=random.Random(seed))["category"]
            for seed in range(200)
        }
        assert seen == {"adventure", "culture", "relaxation"}

    def test_keeps_slot_and_discounts_cost(self, rng):
        proposal = propose_alternative(_activity(cost=50), rng=rng)
        assert proposal["location"] == "Paris"
        assert proposal["time"] == "09:00"
        assert proposal["duration"] == "3 hours"
        assert proposal["cost"] == 45

    def test_zero_cost_stays_zero(self, rng):
        assert propose_alternative(_activity(cost=0), rng=rng)["cost"] == 0

    def test_placeholder_without_pool(self, rng):
        proposal = propose_alternative(_activity(), rng=rng)
        category = proposal["category"]
        assert proposal["name"] == f"Alternative {category} activity"
        assert proposal["description"] == f"An alternative {category} experience in the same area"

    def test_name_from_pool(self, rng):
        pool = CATALOG["tokyo"]
        proposal = propose_alternative(_activity(), pool=pool, rng=rng)
        assert proposal["name"] in pool.activities[proposal["category"]]
