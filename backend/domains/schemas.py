# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the domain endpoints."""

from datetime import datetime
from typing import List, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, field_validator


def _check_target(value: str) -> str:
    value = value.strip()
    parts = urlsplit(value)
    # Anything else (javascript:, data:, relative paths) must never reach
    # the redirect page.
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError("Target must be an absolute http(s) URL")
    return value


def _check_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Display name must not be empty")
    return value


# -- Requests --------------------------------------------------------------


class DomainCreate(BaseModel):
    target_url: str
    masked_name: str
    image_alt: Optional[str] = None

    @field_validator("target_url")
    @classmethod
    def validate_target(cls, value: str) -> str:
        return _check_target(value)

    @field_validator("masked_name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _check_name(value)


class DomainUpdate(BaseModel):
    target_url: Optional[str] = None
    masked_name: Optional[str] = None
    image_alt: Optional[str] = None

    @field_validator("target_url")
    @classmethod
    def validate_target(cls, value):
        return None if value is None else _check_target(value)

    @field_validator("masked_name")
    @classmethod
    def validate_name(cls, value):
        return None if value is None else _check_name(value)


# -- Responses -------------------------------------------------------------
# Only the admin row carries the decrypted target.  The user-facing shapes
# below deliberately have no field that could hold it.


class DomainAdminRow(BaseModel):
    id: int
    target_url: str
    masked_name: str
    image_url: Optional[str] = None
    image_alt: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime
    assigned_users: int = 0


class DomainAdminListResponse(BaseModel):
    domains: List[DomainAdminRow]


class DomainPublic(BaseModel):
    id: int
    masked_name: str
    image_url: Optional[str] = None
    image_alt: Optional[str] = None

    model_config = {"from_attributes": True}


class AssignedDomain(BaseModel):
    assignment_id: int
    assigned_at: datetime
    domain: DomainPublic
    access_path: str  # relay path; the client appends &token=<access token>


class AssignedDomainListResponse(BaseModel):
    domains: List[AssignedDomain]
