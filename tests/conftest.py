"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from kudos.database.models import Base
from kudos.database.seed import seed_default_badges
from kudos.engine.anti_gaming import RateLimiter
from kudos.engine.cache import MemoryStore, ViewCache
from kudos.engine.rules import GamificationRules
from kudos.services.badge_service import BadgeService
from kudos.services.effects import SideEffectQueue
from kudos.services.points_service import PointsService
from kudos.services.profile_service import ProfileService


# category_stats and ledger metadata are JSONB on PostgreSQL; SQLite stores
# them as TEXT through the JSON serializer.
@compiles(JSONB, "sqlite")
def _jsonb_on_sqlite(type_, compiler, **kw):
    return "TEXT"


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """pysqlite's own transaction handling breaks SAVEPOINT; take it over.

    This is the recipe from the SQLAlchemy SQLite dialect docs.
    """

    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


class FakeClock:
    """Monotonic clock the tests can move by hand."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def db_engine() -> Engine:
    """Empty in-memory schema; StaticPool keeps one shared connection."""
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def seeded_engine(db_engine: Engine) -> Engine:
    """The same engine with the default badge catalogue loaded."""
    seed_default_badges(db_engine)
    return db_engine


@pytest.fixture
def db_session(db_engine: Engine):
    """A plain session, rolled back at teardown."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryStore:
    return MemoryStore(clock=clock)


@pytest.fixture
def rules() -> GamificationRules:
    return GamificationRules()


@pytest.fixture
def effects() -> SideEffectQueue:
    """Inline queue: side effects run synchronously on submit."""
    return SideEffectQueue(workers=0, max_attempts=2, base_backoff=0)


@pytest.fixture
def view_cache(store: MemoryStore) -> ViewCache:
    return ViewCache(store)


@pytest.fixture
def badge_service(db_engine, rules, view_cache, effects) -> BadgeService:
    return BadgeService(db_engine, rules, view_cache, effects)


@pytest.fixture
def points_service(db_engine, rules, store, view_cache, effects, badge_service) -> PointsService:
    return PointsService(
        db_engine,
        rules,
        RateLimiter(store, rules),
        view_cache,
        effects,
        badge_service,
    )


@pytest.fixture
def profile_service(db_engine, rules, view_cache) -> ProfileService:
    return ProfileService(db_engine, rules, view_cache)
