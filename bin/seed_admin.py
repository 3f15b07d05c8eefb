# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Bootstrap script – creates the first admin account (credentials + profile).

Run once after the initial migration:
    python bin/seed_admin.py

Reads FIRST_ADMIN_EMAIL and FIRST_ADMIN_PASSWORD from etc/app.conf.  The
account starts with ``force_password_change = True``.  If it already exists
its profile is (re)set to the admin role and nothing else changes.
"""

import sys
import os

# bin/seed_admin.py  →  ../  →  project root
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from core.config import settings          # noqa: E402
from core.logger import logger            # noqa: E402
from core.security import hash_password   # noqa: E402
from database import SessionLocal         # noqa: E402
from models.profile import Profile        # noqa: E402
from models.user import User              # noqa: E402


def seed(db) -> str:
    """Returns "created", "promoted" or "exists"."""
    email = settings.first_admin_email.strip().lower()

    user = db.query(User).filter(User.email == email).first()
    if user is not None:
        profile = db.get(Profile, user.id)
        if profile is None:
            db.add(Profile(id=user.id, email=user.email, role="admin"))
        elif profile.role != "admin":
            profile.role = "admin"
            profile.expires_at = None
        else:
            return "exists"
        db.commit()
        return "promoted"

    user = User(
        email=email,
        password_hash=hash_password(settings.first_admin_password),
        force_password_change=True,
    )
    db.add(user)
    db.flush()
    db.add(Profile(id=user.id, email=email, role="admin", is_blocked=False))
    db.commit()
    return "created"


def main():
    if not settings.first_admin_email or not settings.first_admin_password:
        print("[seed_admin] FIRST_ADMIN_EMAIL or FIRST_ADMIN_PASSWORD not set in etc/app.conf – nothing to do.")
        return

    db = SessionLocal()
    try:
        outcome = seed(db)
    finally:
        db.close()

    logger.info("seed_admin | email=%s outcome=%s", settings.first_admin_email, outcome)
    if outcome == "exists":
        print(f"[seed_admin] Admin '{settings.first_admin_email}' already exists – skipping.")
    else:
        print(f"[seed_admin] Admin '{settings.first_admin_email}' {outcome} successfully.")


if __name__ == "__main__":
    main()
