"""
SQLAlchemy DeclarativeBase models for the three tables the planner core owns.

Column names use camelCase to match the document shape the calling layer
already exchanges (initialScores, tripStats, ...). SA does not convert them.

Uniqueness lives here, at the storage layer, as table constraints:
  - travel_dna:       one profile per userId
  - itinerary_cache:  one live entry per (userId, fingerprint)
  - trips:            one trip per (userId, destination, startDate, endDate)
The stores rely on these constraints for ON CONFLICT upserts, so they must not
be dropped in favour of application-level checks.
"""

import uuid as _uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, Enum, Float, Index, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


GeneratorTagEnum = Enum("ai", "mock", name="GeneratorTag")
TripStatusEnum = Enum("planned", "ongoing", "completed", "cancelled", name="TripStatus")


class Base(DeclarativeBase):
    pass


class TravelDNA(Base):
    """One row per traveler. evolutionHistory is append-only."""

    __tablename__ = "travel_dna"
    __table_args__ = (UniqueConstraint("userId", name="uq_travel_dna_user"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(_uuid.uuid4()))
    userId: Mapped[str] = mapped_column(String)
    initialScores: Mapped[dict] = mapped_column(JSON)
    adventureScore: Mapped[float] = mapped_column(Float, default=5.0)
    cultureScore: Mapped[float] = mapped_column(Float, default=5.0)
    foodieScore: Mapped[float] = mapped_column(Float, default=5.0)
    relaxationScore: Mapped[float] = mapped_column(Float, default=5.0)
    categoryCounters: Mapped[dict] = mapped_column(JSON)
    tripStats: Mapped[dict] = mapped_column(JSON)
    insights: Mapped[dict] = mapped_column(JSON)
    evolutionHistory: Mapped[list] = mapped_column(JSON, default=list)
    createdAt: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updatedAt: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class ItineraryCacheEntry(Base):
    """Fingerprint-keyed itinerary cache. createdAt is the TTL anchor."""

    __tablename__ = "itinerary_cache"
    __table_args__ = (
        UniqueConstraint("userId", "fingerprint", name="uq_itinerary_cache_user_fingerprint"),
        Index("ix_itinerary_cache_user_destination", "userId", "destination"),
        Index("ix_itinerary_cache_created", "createdAt"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(_uuid.uuid4()))
    userId: Mapped[str] = mapped_column(String)
    fingerprint: Mapped[str] = mapped_column(String)
    destination: Mapped[str] = mapped_column(String)
    dnaSnapshot: Mapped[dict] = mapped_column(JSON)
    tripParams: Mapped[dict] = mapped_column(JSON)
    payload: Mapped[dict] = mapped_column(JSON)
    generatorTag: Mapped[str] = mapped_column(GeneratorTagEnum)
    createdAt: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    lastAccessedAt: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    accessCount: Mapped[int] = mapped_column(Integer, default=1)


class Trip(Base):
    __tablename__ = "trips"
    __table_args__ = (
        UniqueConstraint(
            "userId", "destination", "startDate", "endDate",
            name="uq_trips_user_destination_dates",
        ),
        Index("ix_trips_user_status", "userId", "status"),
        Index("ix_trips_user_created", "userId", "createdAt"),
        Index("ix_trips_destination_created", "destination", "createdAt"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(_uuid.uuid4()))
    userId: Mapped[str] = mapped_column(String)
    destination: Mapped[str] = mapped_column(String)
    startDate: Mapped[date] = mapped_column(Date)
    endDate: Mapped[date] = mapped_column(Date)
    budget: Mapped[float] = mapped_column(Float)
    travelers: Mapped[int] = mapped_column(Integer)
    accommodation: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    transportation: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(TripStatusEnum, default="planned")
    itinerary: Mapped[dict] = mapped_column(JSON)
    dnaSnapshot: Mapped[dict] = mapped_column(JSON)
    totalActivities: Mapped[int] = mapped_column(Integer, default=0)
    completedActivities: Mapped[int] = mapped_column(Integer, default=0)
    skippedActivities: Mapped[int] = mapped_column(Integer, default=0)
    alternativesRequested: Mapped[int] = mapped_column(Integer, default=0)
    generatorTag: Mapped[str] = mapped_column(GeneratorTagEnum, default="ai")
    createdAt: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    startedAt: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completedAt: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
