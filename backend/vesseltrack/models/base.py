"""Shared declarative base and enums for all models."""
from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TripStatusEnum(str, enum.Enum):
    """Known voyage statuses.

    The ``all_trips.status`` column is plain text; these are the values the
    dashboard offers, not a constraint on what may be stored.
    """
    IN_TRANSIT = "in-transit"
    DELAYED = "delayed"
    DOCKED = "docked"
