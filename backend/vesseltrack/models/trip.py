"""Trip entity: a tracked vessel voyage (the ``all_trips`` table)."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from vesseltrack.models.base import Base, TripStatusEnum, utcnow


class Trip(Base):
    __tablename__ = "all_trips"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vessel_name: Mapped[str] = mapped_column(String(255), nullable=False)
    vessel_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    destination: Mapped[str] = mapped_column(String(255), nullable=False)
    eta: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Free-form on purpose: TripStatusEnum lists the known values only
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=TripStatusEnum.IN_TRANSIT.value)
    added_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("auth_users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    completion: Mapped[Optional["SuccessfulTrip"]] = relationship(
        "SuccessfulTrip", back_populates="trip", uselist=False
    )
