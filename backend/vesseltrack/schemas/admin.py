"""Pydantic schemas for admin membership operations."""
from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class AdminUserCreateRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


class AdminUserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    created_at: datetime
