"""
Pydantic schema for the itinerary document stored on trips.itinerary.

Payloads are validated on the way in (parse_itinerary) so the state machine
can index days and activities without defensive checks. Legacy field names
from older clients are accepted on input ("activity" for name, "type" for
category) and always written back under the canonical names.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from typing import Any, Literal, Optional

import pydantic
from pydantic import AliasChoices, BaseModel, Field, model_validator

from services.planner.errors import ValidationError

Category = Literal["adventure", "culture", "foodie", "relaxation"]
ActivityStatus = Literal["active", "done", "skipped"]


class Activity(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True}

    id: Optional[str] = None
    name: str = Field(min_length=1, validation_alias=AliasChoices("name", "activity"))
    location: str
    description: str = ""
    cost: float = Field(default=0.0, ge=0.0)
    duration: str = ""
    time: Optional[str] = None
    category: Category = Field(validation_alias=AliasChoices("category", "type"))
    status: ActivityStatus = "active"
    alternativesRequested: int = Field(default=0, ge=0)
    completedAt: Optional[dt.datetime] = None
    skippedAt: Optional[dt.datetime] = None
    enrichment: dict[str, Any] = Field(default_factory=dict)


class Meal(BaseModel):
    model_config = {"extra": "ignore"}

    type: Literal["breakfast", "lunch", "dinner", "snack"]
    restaurant: str
    cuisine: str
    cost: float = Field(ge=0.0)
    location: str
    status: ActivityStatus = "active"


class Accommodation(BaseModel):
    model_config = {"extra": "ignore"}

    name: str
    type: str
    cost: float = Field(ge=0.0)
    location: str


class DayPlan(BaseModel):
    model_config = {"extra": "ignore"}

    day: int = Field(ge=1)
    date: dt.date
    theme: str = ""
    activities: list[Activity] = Field(default_factory=list)
    meals: list[Meal] = Field(default_factory=list)
    accommodation: Optional[Accommodation] = None
    weather: Optional[dict[str, Any]] = None
    enrichment: dict[str, Any] = Field(default_factory=dict)


class Itinerary(BaseModel):
    model_config = {"extra": "ignore"}

    destination: str = Field(min_length=1)
    totalDays: int = Field(ge=1)
    estimatedTotalCost: float = Field(default=0.0, ge=0.0)
    days: list[DayPlan] = Field(validation_alias=AliasChoices("days", "dailyItinerary"))

    @model_validator(mode="after")
    def days_match_total(self) -> "Itinerary":
        if len(self.days) != self.totalDays:
            raise ValueError(
                f"totalDays is {self.totalDays} but itinerary has {len(self.days)} days"
            )
        return self


def parse_itinerary(raw: Itinerary | Mapping[str, Any]) -> Itinerary:
    """Validate an itinerary payload. Raises ValidationError on malformed input."""
    if isinstance(raw, Itinerary):
        return raw
    try:
        return Itinerary.model_validate(dict(raw))
    except pydantic.ValidationError as exc:
        raise ValidationError(f"invalid itinerary: {exc}") from exc


def itinerary_to_json(itinerary: Itinerary) -> dict[str, Any]:
    return itinerary.model_dump(mode="json")


def count_activities(itinerary: Itinerary) -> int:
    return sum(len(day.activities) for day in itinerary.days)


def rebase_dates(itinerary: Itinerary, start: dt.date) -> Itinerary:
    """Return a copy whose day N is dated start + (N - 1) days, by position."""
    rebased = itinerary.model_copy(deep=True)
    for index, day in enumerate(rebased.days):
        day.date = start + dt.timedelta(days=index)
    return rebased
