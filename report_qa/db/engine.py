# =============================================================================
# Database Engine: Sync SQLAlchemy for pgvector
# =============================================================================
#
# The whole core is synchronous (FastAPI runs sync endpoints in its
# threadpool, Celery workers are sync), so one psycopg2 engine serves both
# the API process and the workers.
#
# The engine manages a connection pool:
# - pool_size=5: persistent connections kept open
# - max_overflow=10: extra connections allowed during spikes
# - pool_pre_ping: recycle connections dropped by the server
# =============================================================================

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import Connection, Engine, create_engine

from report_qa.config import settings

_engine: Engine | None = None


def get_engine(url: str | None = None) -> Engine:
    """
    Return the process-wide engine, creating it on first use.

    Lazy so that importing the package never needs psycopg2 or a reachable
    database (e.g. when VECTORSTORE_TYPE=memory).
    """
    global _engine
    if url is not None:
        return create_engine(url, echo=settings.debug, pool_pre_ping=True)
    if _engine is None:
        _engine = create_engine(
            settings.database_url,
            echo=settings.debug,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
        )
    return _engine


@contextmanager
def transaction(engine: Engine) -> Generator[Connection, None, None]:
    """
    Connection inside a transaction: commits on exit, rolls back on error.

    Usage:
        with transaction(engine) as conn:
            conn.execute(table.insert(), rows)
    """
    with engine.begin() as conn:
        yield conn
