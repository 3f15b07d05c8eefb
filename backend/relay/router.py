# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
GET /redirect – the redirect relay.

Given ``?domain=<id>&token=<access token>`` the relay checks, in order:

    domain present (400) → token present (401) → token resolves through the
    access gate (401, expired accounts are signed out) → account not blocked
    (403) → domain exists (404) → caller is assigned to it (403)

Only then is the hidden target decrypted and rendered into a page that
shows the masked name and navigates to the target after a short delay.
Admins have no bypass: access is purely assignment based.

Failures are JSON ``{"error": ...}`` bodies (see core.errors).
"""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlalchemy.orm import Session

from database import get_db
from core.access import resolve_identity
from core.config import settings
from core.errors import (
    AccessDeniedError,
    AccountBlockedError,
    AuthenticationError,
    InvalidRequestError,
    NotFoundError,
    PortalError,
)
from core.logger import logger
from core.security import decrypt_value, resolve_principal
from models.assignment import Assignment
from models.domain import Domain

router = APIRouter(tags=["relay"])

_TEMPLATES = Environment(
    loader=FileSystemLoader(str(Path(__file__).resolve().parent / "templates")),
    autoescape=select_autoescape(["html"]),
)


def render_redirect(masked_name: str, target_url: str, delay_seconds: Optional[int] = None) -> str:
    """Render the self-redirecting page.  Autoescaped; the script gets a JSON literal."""
    delay = settings.redirect_delay_seconds if delay_seconds is None else delay_seconds
    return _TEMPLATES.get_template("redirect.html").render(
        masked_name=masked_name,
        target_url=target_url,
        delay_ms=int(delay * 1000),
    )


def _parse_domain_id(raw: str) -> Optional[int]:
    try:
        return int(raw)
    except ValueError:
        return None


@router.get("/redirect", response_class=HTMLResponse)
def redirect(
    domain: Optional[str] = Query(None),
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    if not domain:
        raise InvalidRequestError("Domain ID required")
    if not token:
        raise AuthenticationError("Authorization token required")

    try:
        principal = resolve_principal(db, token)
    except AuthenticationError:
        raise AuthenticationError("Invalid authentication token")

    profile = resolve_identity(db, principal)
    if profile.is_blocked:
        raise AccountBlockedError()

    domain_id = _parse_domain_id(domain)
    record = db.get(Domain, domain_id) if domain_id is not None else None
    if record is None:
        raise NotFoundError("Domain not found")

    assigned = (
        db.query(Assignment.id)
        .filter(Assignment.user_id == profile.id, Assignment.domain_id == record.id)
        .first()
    )
    if assigned is None:
        logger.info("relay denied | user_id=%s domain_id=%s", profile.id, record.id)
        raise AccessDeniedError("Access denied - user not assigned to this domain")

    try:
        target_url = decrypt_value(record.encrypted_target, record.iv)
    except ValueError:
        logger.error("hidden target could not be decrypted | domain_id=%s", record.id)
        raise PortalError()

    logger.info("relay granted | user_id=%s domain_id=%s", profile.id, record.id)
    return HTMLResponse(render_redirect(record.masked_name, target_url))
