# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Deactivate sessions that have been idle longer than SESSION_STALE_MINUTES.

Meant for cron:
    */30 * * * *  python /opt/maskportal/bin/cleanup_sessions.py
"""

import sys
import os

_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from core.logger import logger                 # noqa: E402
from database import SessionLocal              # noqa: E402
from sessions.registry import SessionRegistry  # noqa: E402


def main():
    db = SessionLocal()
    try:
        count = SessionRegistry(db).cleanup()
    finally:
        db.close()
    logger.info("cleanup_sessions | deactivated=%d", count)
    print(f"[cleanup_sessions] Deactivated {count} stale session(s).")


if __name__ == "__main__":
    main()
