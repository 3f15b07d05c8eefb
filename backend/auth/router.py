# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Auth endpoints – login, logout, password change, current-user info.

Security notes
--------------
* Login returns the *same* error message whether the email doesn't exist or
  the password is wrong.  This prevents user-enumeration attacks.
* A successful login supersedes every other session of the account: the
  response carries the one session token that the client must keep polling
  with (see POST /session).
* Expired accounts cannot log in; blocked accounts can, and are then denied
  by the resource guards.
"""

import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import get_db
from core.access import expiration_info, is_expired, load_profile
from core.clock import now_utc
from core.errors import AccountExpiredError, AuthenticationError, PortalError
from core.logger import logger
from core.security import (
    Principal,
    create_access_token,
    decode_access_token,
    get_client_ip,
    get_current_identity,
    get_current_user,
    hash_password,
    require_principal,
    revoke_access_token,
    verify_password,
)
from models.audit_log import AuditLog
from models.profile import Profile
from models.user import User
from sessions.registry import SessionRegistry
from auth.schemas import (
    ChangePasswordRequest,
    CurrentUserResponse,
    ExpirationInfoResponse,
    LoginRequest,
    LoginResponse,
)

router = APIRouter(prefix="/auth", tags=["auth"])

# Generic message used for both "no such email" and "wrong password"
_LOGIN_FAIL = "Invalid email or password"


def validate_new_password(pw: str) -> str | None:
    """
    Return an error string if the password does not meet the minimum policy,
    or None if it is acceptable.

    Policy: >= 8 chars, at least one uppercase, one lowercase, one digit.
    """
    if len(pw) < 8:
        return "Password must be at least 8 characters"
    if not re.search(r"[A-Z]", pw):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", pw):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"[0-9]", pw):
        return "Password must contain at least one digit"
    return None


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Authenticate, issue a signed JWT and open the account's only session."""
    user = db.query(User).filter(User.email == body.email).first()

    # Unified failure path – no information leaks about whether the email exists
    if not user or not verify_password(body.password, user.password_hash):
        raise AuthenticationError(_LOGIN_FAIL)

    profile = load_profile(db, user)
    if is_expired(profile):
        raise AccountExpiredError()

    profile.last_login = now_utc()
    db.add(AuditLog(
        admin_id=None,
        target_user_id=user.id,
        action="user_login",
        request_ip=get_client_ip(request),
    ))
    db.commit()

    token = create_access_token(
        {"sub": user.email, "user_id": user.id, "role": profile.role}
    )

    try:
        session = SessionRegistry(db).create_session(user.id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("session creation failed at login | user_id=%s", user.id)
        # Do not leave a usable access token without a session behind it
        revoke_access_token(db, decode_access_token(token))
        db.commit()
        raise PortalError("Failed to create session. Please try again.")

    return LoginResponse(
        access_token=token,
        token_type="bearer",
        session_token=session.session_token,
        role=profile.role,
        force_password_change=user.force_password_change,
    )


# ---------------------------------------------------------------------------
# POST /auth/logout
# ---------------------------------------------------------------------------


@router.post("/logout")
def logout(
    request: Request,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    """Revoke the presented access token and close every session of the account."""
    revoke_access_token(db, principal.claims)
    SessionRegistry(db).invalidate_all_sessions(principal.user_id, commit=False)
    db.add(AuditLog(
        admin_id=None,
        target_user_id=principal.user_id,
        action="user_logout",
        request_ip=get_client_ip(request),
    ))
    db.commit()
    return {"detail": "Signed out"}


# ---------------------------------------------------------------------------
# PUT /auth/change-password
# ---------------------------------------------------------------------------


@router.put("/change-password")
def change_password(
    body: ChangePasswordRequest,
    profile: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Change the authenticated user's login password.
    Also clears the force_password_change flag.
    """
    user = db.get(User, profile.id)
    if not verify_password(body.old_password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Old password is incorrect",
        )

    err = validate_new_password(body.new_password)
    if err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=err)

    user.password_hash = hash_password(body.new_password)
    user.force_password_change = False
    db.commit()

    return {"detail": "Password changed successfully"}


# ---------------------------------------------------------------------------
# GET /auth/me
# ---------------------------------------------------------------------------


@router.get("/me", response_model=Optional[CurrentUserResponse])
def me(
    profile: Optional[Profile] = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """
    Return the caller's profile with its expiration view, or ``null`` for an
    anonymous caller.  Expired accounts get 401 and are signed out.
    """
    if profile is None:
        return None

    user = db.get(User, profile.id)
    info = expiration_info(profile)
    return CurrentUserResponse(
        id=profile.id,
        email=profile.email,
        role=profile.role,
        is_blocked=profile.is_blocked,
        created_at=profile.created_at,
        last_login=profile.last_login,
        expires_at=profile.expires_at,
        force_password_change=user.force_password_change,
        expiration=ExpirationInfoResponse.model_validate(info) if info else None,
    )
