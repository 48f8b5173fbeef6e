"""Pydantic schemas for the auth endpoints."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class SignUpRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1, max_length=100)
    name: Optional[str] = Field(None, max_length=255)


class SignInRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RecoverRequest(BaseModel):
    email: str = Field(..., min_length=1)


class RecoverConfirmRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserUpdateRequest(BaseModel):
    email: Optional[str] = Field(None, min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: Optional[str] = Field(None, min_length=1)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    created_at: datetime
    last_sign_in_at: Optional[datetime] = None


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    name: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=255)


class SessionOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserOut
    profile: Optional[ProfileOut] = None


class IsAdminRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
