# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
SQLAlchemy engine, session factory, declarative base, the UTC-aware column
type, and the FastAPI dependency that provides a DB session per request.
"""

from datetime import timezone

from sqlalchemy import DateTime, create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.types import TypeDecorator

from core.clock import as_utc
from core.config import settings

_connect_args = {}
if settings.database_url.startswith("sqlite"):
    # FastAPI runs sync handlers in a threadpool
    _connect_args["check_same_thread"] = False

# pool_pre_ping keeps idle connections alive across MySQL's wait_timeout
engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=_connect_args)

if settings.database_url.startswith("sqlite"):

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_conn, _record):
        # ON DELETE CASCADE is ignored by SQLite unless switched on per connection
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """
    ``DateTime(timezone=True)`` that always hands back aware UTC values.

    MySQL and SQLite return naive datetimes; the access gate compares them
    against ``now_utc()`` so they must carry tzinfo.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
            if dialect.name in ("sqlite", "mysql"):
                value = value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        return as_utc(value)


def get_db():
    """
    FastAPI dependency.  Yields a session for the duration of the request,
    then closes it.  Use with Depends(get_db).
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
