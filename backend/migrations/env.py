# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Alembic environment for the portal schema.

Migrations run on the application's own engine (``database.engine``), so
the connection string and the SQLite foreign-key pragma come from one place:
etc/app.conf via the Settings class.

    alembic -c alembic.ini upgrade head
"""

import sys
import os

# ``backend/`` must be importable for ``core`` / ``models`` / ``database``
_BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from alembic import context

from core.config import settings
from core.logger import logger
from database import Base, engine

# Every model module registers its table on Base.metadata
import models.user           # noqa: F401, E402
import models.profile        # noqa: F401, E402
import models.domain         # noqa: F401, E402
import models.assignment     # noqa: F401, E402
import models.user_session   # noqa: F401, E402
import models.revoked_token  # noqa: F401, E402
import models.audit_log      # noqa: F401, E402

# SQLite cannot ALTER most constraints in place
_BATCH = settings.database_url.startswith("sqlite")


def run_migrations_online():
    with engine.connect() as conn:
        context.configure(
            connection=conn,
            target_metadata=Base.metadata,
            render_as_batch=_BATCH,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


def run_migrations_offline():
    """Emit SQL to stdout instead of touching a database."""
    context.configure(
        url=settings.database_url,
        target_metadata=Base.metadata,
        literal_binds=True,
        render_as_batch=_BATCH,
    )
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    logger.info("running migrations offline")
    run_migrations_offline()
else:
    logger.info("running migrations against the configured database")
    run_migrations_online()
