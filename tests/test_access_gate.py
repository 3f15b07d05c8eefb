from datetime import timedelta

import pytest

from conftest import hours_from_now, token_for
from core.access import (
    LIFECYCLE_BLOCKED,
    LIFECYCLE_EXPIRED,
    LIFECYCLE_OK,
    evaluate_lifecycle,
    expiration_info,
    resolve_identity,
)
from core.clock import now_utc
from core.errors import AccountExpiredError, AuthenticationError
from core.security import resolve_principal
from models.audit_log import AuditLog
from models.profile import Profile
from models.user_session import UserSession
from sessions.registry import SessionRegistry


def _principal(db, user):
    return resolve_principal(db, token_for(user))


def test_anonymous_caller_has_no_identity(db):
    assert resolve_identity(db, None) is None


def test_missing_profile_is_provisioned_as_regular_user(db, make_user):
    user = make_user("new@example.com", profile=False)

    profile = resolve_identity(db, _principal(db, user))

    assert profile.id == user.id
    assert profile.role == "user"
    assert profile.is_blocked is False
    assert profile.expires_at is None
    assert db.get(Profile, user.id) is not None


def test_bootstrap_email_is_provisioned_as_admin(db, make_user):
    user = make_user("root@example.com", profile=False)

    profile = resolve_identity(db, _principal(db, user))

    assert profile.role == "admin"


def test_bootstrap_admin_role_is_reconciled(db, make_user):
    user = make_user("root@example.com", role="user")

    profile = resolve_identity(db, _principal(db, user))

    assert profile.role == "admin"
    db.expire_all()
    assert db.get(Profile, user.id).role == "admin"


def test_expired_account_is_signed_out(db, make_user):
    user = make_user(expires_at=hours_from_now(-2))
    SessionRegistry(db).create_session(user.id)
    token = token_for(user)

    with pytest.raises(AccountExpiredError):
        resolve_identity(db, resolve_principal(db, token))

    db.expire_all()
    assert db.query(UserSession).filter(UserSession.is_active.is_(True)).count() == 0
    assert db.query(AuditLog).filter(AuditLog.action == "account_expired").count() == 1
    # The same access token is dead from now on
    with pytest.raises(AuthenticationError):
        resolve_principal(db, token)


def test_expiry_wins_over_block(db, make_user):
    user = make_user(expires_at=hours_from_now(-1), is_blocked=True)

    with pytest.raises(AccountExpiredError):
        resolve_identity(db, _principal(db, user))


def test_blocked_account_keeps_its_login(db, make_user):
    user = make_user(is_blocked=True)
    session = SessionRegistry(db).create_session(user.id)
    token = token_for(user)

    profile = resolve_identity(db, resolve_principal(db, token))

    assert profile.is_blocked is True
    assert SessionRegistry(db).validate_session(user.id, session.session_token).valid is True
    assert resolve_principal(db, token).user_id == user.id


def test_admins_never_expire(db, make_user):
    user = make_user("boss@example.com", role="admin", expires_at=hours_from_now(-24))

    profile = resolve_identity(db, _principal(db, user))

    assert profile.role == "admin"


def test_evaluate_lifecycle():
    now = now_utc()
    active = Profile(role="user", is_blocked=False, expires_at=now + timedelta(days=3))
    blocked = Profile(role="user", is_blocked=True, expires_at=None)
    expired = Profile(role="user", is_blocked=True, expires_at=now - timedelta(seconds=1))

    assert evaluate_lifecycle(active, now) == LIFECYCLE_OK
    assert evaluate_lifecycle(blocked, now) == LIFECYCLE_BLOCKED
    assert evaluate_lifecycle(expired, now) == LIFECYCLE_EXPIRED


def test_expiration_info_for_a_trial():
    now = now_utc()
    info = expiration_info(Profile(role="user", expires_at=now + timedelta(minutes=50)), now)

    assert info.status == "trial"
    assert info.is_trial is True
    assert info.is_expired is False
    assert info.minutes_remaining == 50
    assert info.time_text == "50 minutes"


def test_expiration_info_buckets():
    now = now_utc()

    soon = expiration_info(Profile(role="user", expires_at=now + timedelta(days=5)), now)
    assert soon.status == "expiring"
    assert soon.days_remaining == 5
    assert soon.time_text == "5 days"

    later = expiration_info(Profile(role="user", expires_at=now + timedelta(days=40)), now)
    assert later.status == "active"
    assert later.is_expiring_soon is False

    gone = expiration_info(Profile(role="user", expires_at=now - timedelta(days=3)), now)
    assert gone.status == "expired"
    assert gone.is_expired is True

    assert expiration_info(Profile(role="user", expires_at=None), now) is None
