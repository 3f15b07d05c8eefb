# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the session endpoint."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

ACTIONS = ("create", "validate", "cleanup")


# -- Requests --------------------------------------------------------------


class SessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str  # "create" | "validate" | "cleanup"
    # Any shape is accepted; the registry treats non-strings as unknown tokens
    session_token: Optional[Any] = Field(None, alias="sessionToken")


# -- Responses -------------------------------------------------------------


class SessionRow(BaseModel):
    id: int
    user_id: int
    is_active: bool
    created_at: datetime
    last_activity: datetime

    model_config = ConfigDict(from_attributes=True)


class CreateSessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    session_token: str = Field(serialization_alias="sessionToken")
    session_id: int = Field(serialization_alias="sessionId")


class ValidateSessionResponse(BaseModel):
    valid: bool
    session: Optional[SessionRow] = None
    error: Optional[str] = None


class CleanupResponse(BaseModel):
    success: bool = True
    message: str = "Cleanup completed"
    deactivated: int
