"""
SQLAlchemy async database module.

Re-exports engine and model utilities for the planner core.
"""

from services.planner.db.engine import create_engine, create_schema
from services.planner.db.models import (
    Base,
    ItineraryCacheEntry,
    TravelDNA,
    Trip,
)

__all__ = [
    "create_engine",
    "create_schema",
    "Base",
    "ItineraryCacheEntry",
    "TravelDNA",
    "Trip",
]
