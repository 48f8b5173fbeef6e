"""SuccessfulTrip entity: archive entry for a completed voyage."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from vesseltrack.models.base import Base, utcnow


class SuccessfulTrip(Base):
    __tablename__ = "successful_trips"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # One archive entry per voyage
    trip_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("all_trips.id"), unique=True, nullable=False, index=True
    )
    vessel_id: Mapped[str] = mapped_column(String(100), nullable=False)
    vessel_name: Mapped[str] = mapped_column(String(255), nullable=False)
    destination: Mapped[str] = mapped_column(String(255), nullable=False)
    arrival_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    completion_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("auth_users.id", ondelete="SET NULL"), nullable=True
    )

    trip: Mapped["Trip"] = relationship("Trip", back_populates="completion")
