import threading
from datetime import timedelta

from core.clock import now_utc
from database import SessionLocal
from models.user_session import UserSession
from sessions.registry import SessionRegistry


def _active(db, user_id):
    db.expire_all()
    return db.query(UserSession).filter(
        UserSession.user_id == user_id, UserSession.is_active.is_(True)
    ).all()


def test_create_session_returns_fresh_active_row(db, make_user):
    user = make_user()
    session = SessionRegistry(db).create_session(user.id)

    assert session.is_active is True
    assert session.user_id == user.id
    assert len(session.session_token) >= 32
    assert session.created_at == session.last_activity


def test_second_create_supersedes_the_first(db, make_user):
    user = make_user()
    registry = SessionRegistry(db)

    first = registry.create_session(user.id)
    first_token = first.session_token
    second = registry.create_session(user.id)

    assert first_token != second.session_token
    active = _active(db, user.id)
    assert [s.session_token for s in active] == [second.session_token]

    assert registry.validate_session(user.id, first_token).valid is False
    assert registry.validate_session(user.id, second.session_token).valid is True


def test_sessions_of_other_accounts_are_untouched(db, make_user):
    alice = make_user("alice@example.com")
    bob = make_user("bob@example.com")
    registry = SessionRegistry(db)

    bob_session = registry.create_session(bob.id)
    registry.create_session(alice.id)

    assert registry.validate_session(bob.id, bob_session.session_token).valid is True


def test_validate_refreshes_last_activity(db, make_user):
    user = make_user()
    registry = SessionRegistry(db)
    session = registry.create_session(user.id)

    stale = now_utc() - timedelta(hours=1)
    session.last_activity = stale
    db.commit()

    check = registry.validate_session(user.id, session.session_token)
    assert check.valid is True
    db.refresh(check.session)
    assert check.session.last_activity > stale


def test_validate_rejects_token_of_another_user(db, make_user):
    alice = make_user("alice@example.com")
    bob = make_user("bob@example.com")
    registry = SessionRegistry(db)
    session = registry.create_session(alice.id)

    assert registry.validate_session(bob.id, session.session_token).valid is False


def test_malformed_tokens_are_simply_invalid(db, make_user):
    user = make_user()
    registry = SessionRegistry(db)
    registry.create_session(user.id)

    for token in (None, "", "x" * 500, 12345, "not-a-real-token"):
        check = registry.validate_session(user.id, token)
        assert check.valid is False
        assert check.session is None


def test_invalidate_all_sessions_is_idempotent(db, make_user):
    user = make_user()
    registry = SessionRegistry(db)
    session = registry.create_session(user.id)

    assert registry.invalidate_all_sessions(user.id) == 1
    assert registry.invalidate_all_sessions(user.id) == 0
    assert registry.validate_session(user.id, session.session_token).valid is False
    assert registry.active_session(user.id) is None


def test_cleanup_deactivates_only_stale_sessions(db, make_user):
    idle = make_user("idle@example.com")
    busy = make_user("busy@example.com")
    registry = SessionRegistry(db)

    idle_session = registry.create_session(idle.id)
    busy_session = registry.create_session(busy.id)
    idle_session.last_activity = now_utc() - timedelta(days=2)
    db.commit()

    assert registry.cleanup() == 1
    assert registry.validate_session(idle.id, idle_session.session_token).valid is False
    assert registry.validate_session(busy.id, busy_session.session_token).valid is True


def test_concurrent_creates_leave_exactly_one_active_session(db, make_user):
    user_id = make_user().id
    workers = 8
    barrier = threading.Barrier(workers)
    tokens, errors = [], []

    def login():
        session = SessionLocal()
        try:
            barrier.wait()
            tokens.append(SessionRegistry(session).create_session(user_id).session_token)
        except Exception as exc:
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=login) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(tokens) == workers
    db.expire_all()
    assert db.query(UserSession).filter(UserSession.user_id == user_id).count() == workers
    active = _active(db, user_id)
    assert len(active) == 1
    assert active[0].session_token in tokens
