# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the auth endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


# -- Requests --------------------------------------------------------------


class LoginRequest(BaseModel):
    email: str
    password: str


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


# -- Responses -------------------------------------------------------------


class LoginResponse(BaseModel):
    access_token: str
    token_type: str  # always "bearer"
    session_token: str
    role: str
    force_password_change: bool


class ExpirationInfoResponse(BaseModel):
    expires_at: datetime
    status: str
    is_expired: bool
    is_trial: bool
    is_expiring_soon: bool
    days_remaining: int
    hours_remaining: int
    minutes_remaining: int
    time_text: str

    model_config = {"from_attributes": True}


class CurrentUserResponse(BaseModel):
    id: int
    email: str
    role: str
    is_blocked: bool
    created_at: datetime
    last_login: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    force_password_change: bool = False
    expiration: Optional[ExpirationInfoResponse] = None
