"""Pydantic schemas for voyage and archive operations."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class TripCreateRequest(BaseModel):
    vessel_name: str = Field(..., min_length=1, max_length=255)
    vessel_id: str = Field(..., min_length=1, max_length=100)
    destination: str = Field(..., min_length=1, max_length=255)
    eta: datetime
    status: str = Field(default="in-transit", min_length=1, max_length=50)
    added_by: Optional[str] = Field(None, max_length=255)


class TripStatusUpdate(BaseModel):
    status: str = Field(..., min_length=1, max_length=50)


class TripOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    vessel_name: str
    vessel_id: str
    destination: str
    eta: datetime
    status: str
    added_by: Optional[str] = None
    user_id: Optional[str] = None
    added_at: datetime


class SuccessfulTripCreateRequest(BaseModel):
    trip_id: int
    vessel_id: str = Field(..., min_length=1, max_length=100)
    vessel_name: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    arrival_time: datetime
    completion_notes: Optional[str] = None


class SuccessfulTripOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    trip_id: int
    vessel_id: str
    vessel_name: str
    destination: str
    arrival_time: datetime
    completed_at: datetime
    completion_notes: Optional[str] = None
    user_id: Optional[str] = None
