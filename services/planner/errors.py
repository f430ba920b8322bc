"""
Error taxonomy shared by the DNA store, itinerary cache and trip service.

Callers map these onto their own transport (HTTP status, CLI exit code, ...).
Activity status changes on a non-active activity are NOT errors: they are
no-ops and never raise InvalidTransition.
"""

from __future__ import annotations


class PlannerError(Exception):
    """Base class for every error raised by services.planner."""


class NotFound(PlannerError):
    """A profile, trip, activity or cache entry does not exist."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class InvalidTransition(PlannerError):
    """A trip status or trip-stat transition is not allowed from the current state."""


class ValidationError(PlannerError):
    """Malformed input rejected before any mutation happened."""


class DuplicateResource(PlannerError):
    """A unique-constraint collision that could not be resolved to an existing row."""
