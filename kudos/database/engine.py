"""
kudos.database.engine — Database Connection & Async Helper
===========================================================

The services are plain synchronous SQLAlchemy.  Async callers (web
handlers, workers on an event loop) go through :func:`run_db`, which ships
the call to a thread so the loop is never blocked.

Usage::

    from kudos.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    # Inside an async handler:
    result = await run_db(points.award_points, user_id, "ARTICLE_READ")
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from kudos.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Optimistic-lock conflicts on user_points are retried this many times
MAX_WRITE_ATTEMPTS = 3


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from *url* or ``DATABASE_URL``.

    Pool sizing assumes one in-flight award per request:
    * ``pool_size=5`` — five persistent connections.
    * ``max_overflow=10`` — up to 10 extra connections under load.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    Raises
    ------
    RuntimeError
        If neither *url* nor ``DATABASE_URL`` is set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    engine = create_engine(
        url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=10,
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine, *, seed: bool = True) -> None:
    """Create all tables and (optionally) seed the default badge catalogue.

    Safe to call on every startup.  In production the schema is managed by
    Alembic (``alembic upgrade head``); ``create_all`` covers dev/test.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")

    if seed:
        from kudos.database.seed import seed_default_badges

        seed_default_badges(engine)


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that commits on success and rolls back on
    exception.

    ``expire_on_commit=False`` so values read inside the block stay usable
    after it exits.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a synchronous service call on a background thread."""
    return await asyncio.to_thread(func, *args, **kwargs)


# ---------------------------------------------------------------------------
# Optimistic concurrency
# ---------------------------------------------------------------------------
def run_with_retry(
    engine: Engine,
    work: Callable[[Session], T],
    *,
    label: str,
    attempts: int = MAX_WRITE_ATTEMPTS,
) -> T:
    """Run *work* in a fresh transaction, retrying on a version conflict.

    ``user_points`` carries a ``version_id`` column; a concurrent writer
    makes the losing flush raise :class:`StaleDataError`.  The whole
    read-modify-write is replayed from a clean session.  The last conflict
    propagates.
    """
    for attempt in range(1, attempts + 1):
        try:
            with get_session(engine) as session:
                return work(session)
        except StaleDataError:
            if attempt >= attempts:
                raise
            logger.warning(
                "Write conflict in %s (attempt %d/%d) — retrying", label, attempt, attempts
            )
    raise AssertionError("unreachable")  # pragma: no cover
