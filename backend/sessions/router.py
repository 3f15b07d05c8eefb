# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
POST /session – create, validate and clean up single-login sessions.

The caller must present a bearer access token; the access gate runs before
any session row is read, so an unauthenticated request never touches
session storage and an expired account is signed out here too.  A token
that does not match is reported as ``valid: false`` with status 200, never
as a distinct error.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.errors import InvalidRequestError
from core.security import get_current_user
from database import get_db
from models.profile import Profile
from sessions.registry import SessionRegistry
from sessions.schemas import (
    ACTIONS,
    CleanupResponse,
    CreateSessionResponse,
    SessionRequest,
    SessionRow,
    ValidateSessionResponse,
)

router = APIRouter(tags=["session"])


@router.post("/session")
def manage_session(
    body: SessionRequest,
    profile: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if body.action not in ACTIONS:
        raise InvalidRequestError("Invalid action")

    registry = SessionRegistry(db)

    if body.action == "create":
        session = registry.create_session(profile.id)
        payload = CreateSessionResponse(
            session_token=session.session_token,
            session_id=session.id,
        )
        return JSONResponse(payload.model_dump(by_alias=True))

    if body.action == "validate":
        if body.session_token is None or body.session_token == "":
            raise InvalidRequestError("Session token required")
        check = registry.validate_session(profile.id, body.session_token)
        if not check.valid:
            payload = ValidateSessionResponse(valid=False, error="Invalid or inactive session")
        else:
            payload = ValidateSessionResponse(
                valid=True, session=SessionRow.model_validate(check.session)
            )
        return JSONResponse(payload.model_dump(mode="json", exclude_none=True))

    deactivated = registry.cleanup()
    return CleanupResponse(deactivated=deactivated)
