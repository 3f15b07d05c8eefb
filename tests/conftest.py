"""Shared fixtures: a throwaway SQLite database, the app and account helpers."""

import base64
import os
import tempfile
from datetime import timedelta
from pathlib import Path

# Settings are read at import time, so the environment goes first.
_TMP = Path(tempfile.mkdtemp(prefix="maskportal-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'portal.sqlite3'}"
os.environ["SECRET_KEY"] = "tests-secret-key-that-is-long-enough-for-hs256"
os.environ["MASTER_ENCRYPTION_KEY"] = base64.b64encode(b"k" * 32).decode()
os.environ["BOOTSTRAP_ADMIN_EMAIL"] = "root@example.com"
os.environ["IMAGE_DIR"] = str(_TMP / "images")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from core.clock import now_utc  # noqa: E402
from core.images import ImageStore, get_image_store  # noqa: E402
from core.security import create_access_token, encrypt_value, hash_password  # noqa: E402
from database import Base, SessionLocal, engine  # noqa: E402
from main import app  # noqa: E402
from models.assignment import Assignment  # noqa: E402
from models.domain import Domain  # noqa: E402
from models.profile import Profile  # noqa: E402
from models.user import User  # noqa: E402
import models.audit_log  # noqa: F401, E402
import models.revoked_token  # noqa: F401, E402
import models.user_session  # noqa: F401, E402

PASSWORD = "Str0ngPassw0rd"
# Hashing is deliberately slow; do it once for every account in the suite.
_PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def images(tmp_path):
    return ImageStore(root=str(tmp_path / "images"), base_url="/images")


@pytest.fixture
def client(images):
    app.dependency_overrides[get_image_store] = lambda: images
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Insert a credential row and, unless ``profile=False``, its profile."""

    def _make(email="user@example.com", role="user", expires_at=None,
              is_blocked=False, profile=True):
        user = User(email=email, password_hash=_PASSWORD_HASH, force_password_change=False)
        db.add(user)
        db.flush()
        if profile:
            db.add(Profile(
                id=user.id,
                email=email,
                role=role,
                is_blocked=is_blocked,
                expires_at=expires_at,
            ))
        db.commit()
        return user

    return _make


@pytest.fixture
def make_domain(db):
    def _make(target_url="https://hidden.example.net/app", masked_name="Research Portal"):
        encrypted, iv = encrypt_value(target_url)
        domain = Domain(encrypted_target=encrypted, iv=iv, masked_name=masked_name)
        db.add(domain)
        db.commit()
        return domain

    return _make


@pytest.fixture
def assign(db):
    def _assign(user, domain):
        row = Assignment(user_id=user.id, domain_id=domain.id)
        db.add(row)
        db.commit()
        return row

    return _assign


def token_for(user, expires_delta=None) -> str:
    return create_access_token(
        {"sub": user.email, "user_id": user.id}, expires_delta=expires_delta
    )


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


def hours_from_now(hours: float):
    return now_utc() + timedelta(hours=hours)
