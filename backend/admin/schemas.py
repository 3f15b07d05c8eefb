# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the admin endpoints."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel

# "trial" (a few hours), a whole number of months, or "never"
Duration = Literal["trial", "never", 1, 3, 6, 12]


# -- Requests --------------------------------------------------------------


class CreateUserRequest(BaseModel):
    email: str
    password: str
    role: str = "user"  # "admin" or "user"
    duration: Optional[Duration] = 3  # ignored for admins


class UpdateUserRequest(BaseModel):
    role: Optional[str] = None
    # None leaves the expiration untouched
    duration: Optional[Duration] = None


class ResetPasswordRequest(BaseModel):
    new_password: str


class AssignDomainRequest(BaseModel):
    domain_id: int


# -- Responses -------------------------------------------------------------


class UserRow(BaseModel):
    id: int
    email: str
    role: str
    is_blocked: bool
    expires_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    created_at: datetime
    # "expired" | "trial" | "expiring" | "active", None when it never expires
    expiration_status: Optional[str] = None
    expiration_text: Optional[str] = None


class UserListResponse(BaseModel):
    users: List[UserRow]


class AssignmentRow(BaseModel):
    id: int
    user_id: int
    domain_id: int
    masked_name: str
    assigned_at: datetime


class AssignmentListResponse(BaseModel):
    assignments: List[AssignmentRow]


# -- Session monitor -------------------------------------------------------


class ActiveUserRow(BaseModel):
    id: int
    email: str
    role: str
    is_blocked: bool
    last_login: datetime
    status: str  # "active" | "recent" | "idle" | "blocked"
    has_active_session: bool
    last_activity: Optional[datetime] = None


class ActiveUserListResponse(BaseModel):
    users: List[ActiveUserRow]


# -- Audit log responses ---------------------------------------------------


class AuditLogRow(BaseModel):
    id: int
    admin_email: Optional[str] = None       # resolved from admin_id join
    target_email: Optional[str] = None      # resolved from target_user_id join
    action: str
    detail: Optional[str] = None
    request_ip: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogRow]
