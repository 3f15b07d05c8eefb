# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Access gate – evaluated on every "who is the current user" query.

Order of evaluation
-------------------
1. No principal                       → None (anonymous, not an error).
2. Profile row missing                → auto-provision one.
3. Bootstrap admin with another role  → reconcile the stored role to admin.
4. Non-admin past ``expires_at``      → revoke the access token, invalidate
                                        all sessions, raise AccountExpiredError.
5. Blocked                            → returned as-is with ``is_blocked``.
                                        The login survives; guards deny access.
6. Otherwise                          → the profile.

Expiry signs the user out, blocking does not.  The two are kept apart on
purpose and ``evaluate_lifecycle`` reports expiry even for blocked accounts.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from core.clock import as_utc, now_utc
from core.config import settings
from core.errors import AccountExpiredError
from core.logger import logger
from core.security import Principal, revoke_access_token
from models.audit_log import AuditLog
from models.profile import Profile
from sessions.registry import SessionRegistry

LIFECYCLE_OK = "ok"
LIFECYCLE_BLOCKED = "blocked"
LIFECYCLE_EXPIRED = "expired"

_DAY = timedelta(days=1)
_TRIAL_WINDOW = timedelta(hours=24)
_EXPIRING_SOON_DAYS = 7


def is_bootstrap_admin(email: Optional[str]) -> bool:
    configured = settings.bootstrap_admin_email.strip().lower()
    return bool(configured) and (email or "").strip().lower() == configured


def is_expired(profile: Profile, now: Optional[datetime] = None) -> bool:
    """Admins never expire; everyone else expires once ``expires_at`` has passed."""
    if profile.role == "admin" or profile.expires_at is None:
        return False
    return as_utc(profile.expires_at) < (now or now_utc())


def evaluate_lifecycle(profile: Profile, now: Optional[datetime] = None) -> str:
    """Pure lifecycle verdict: expiry wins over blocking."""
    if is_expired(profile, now):
        return LIFECYCLE_EXPIRED
    if profile.is_blocked:
        return LIFECYCLE_BLOCKED
    return LIFECYCLE_OK


def provision_profile(db: Session, user) -> Profile:
    """Create the default profile for a credential row that has none."""
    role = "admin" if is_bootstrap_admin(user.email) else "user"
    profile = Profile(id=user.id, email=user.email, role=role, is_blocked=False)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    logger.info("profile provisioned | user_id=%s role=%s", user.id, role)
    return profile


def load_profile(db: Session, user) -> Profile:
    """Steps 2 and 3: fetch the profile of *user*, provisioning or reconciling it."""
    profile = db.get(Profile, user.id)
    if profile is None:
        return provision_profile(db, user)
    if is_bootstrap_admin(profile.email) and profile.role != "admin":
        profile.role = "admin"
        db.commit()
        logger.warning("bootstrap admin role restored | user_id=%s", profile.id)
    return profile


def resolve_identity(
    db: Session,
    principal: Optional[Principal],
    now: Optional[datetime] = None,
) -> Optional[Profile]:
    """Run the gate for *principal*.  See the module docstring for the rules."""
    if principal is None:
        return None

    profile = load_profile(db, principal.user)

    if evaluate_lifecycle(profile, now) == LIFECYCLE_EXPIRED:
        sign_out_expired(db, principal, profile)
        raise AccountExpiredError()

    return profile


def sign_out_expired(db: Session, principal: Principal, profile: Profile) -> None:
    """Terminate the login of an expired account.  Commits."""
    revoke_access_token(db, principal.claims)
    SessionRegistry(db).invalidate_all_sessions(profile.id, commit=False)
    db.add(AuditLog(admin_id=None, target_user_id=profile.id, action="account_expired"))
    db.commit()
    logger.info("expired account signed out | user_id=%s", profile.id)


# ---------------------------------------------------------------------------
# Expiration view for dashboards
# ---------------------------------------------------------------------------


@dataclass
class ExpirationInfo:
    expires_at: datetime
    status: str                 # "expired" | "trial" | "expiring" | "active"
    is_expired: bool
    is_trial: bool
    is_expiring_soon: bool
    days_remaining: int
    hours_remaining: int
    minutes_remaining: int
    time_text: str


def _ceil_units(delta: timedelta, unit: timedelta) -> int:
    return math.ceil(delta / unit)


def expiration_info(profile: Profile, now: Optional[datetime] = None) -> Optional[ExpirationInfo]:
    """
    Describe how long *profile* has left.  None when the account never
    expires.  A trial is anything with at most 24 hours remaining.
    """
    if profile.expires_at is None:
        return None

    expires_at = as_utc(profile.expires_at)
    remaining = expires_at - (now or now_utc())
    days = _ceil_units(remaining, _DAY)
    hours = _ceil_units(remaining, timedelta(hours=1))
    minutes = _ceil_units(remaining, timedelta(minutes=1))

    expired = remaining < timedelta(0)
    trial = timedelta(0) < remaining <= _TRIAL_WINDOW
    expiring_soon = not expired and 0 < days <= _EXPIRING_SOON_DAYS

    if trial:
        time_text = f"{hours} hours" if hours > 1 else f"{minutes} minutes"
    else:
        time_text = f"{abs(days)} days"

    if expired:
        status = "expired"
    elif trial:
        status = "trial"
    elif expiring_soon:
        status = "expiring"
    else:
        status = "active"

    return ExpirationInfo(
        expires_at=expires_at,
        status=status,
        is_expired=expired,
        is_trial=trial,
        is_expiring_soon=expiring_soon,
        days_remaining=days,
        hours_remaining=hours,
        minutes_remaining=minutes,
        time_text=time_text,
    )
