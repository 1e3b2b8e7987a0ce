"""
kudos.app — Service wiring
===========================

Builds the full object graph from an engine and a :class:`KudosConfig`:

1. Ephemeral store (Redis if configured, otherwise disconnected).
2. View cache + rate limiter over that store.
3. Side-effect queue.
4. Badge, points and profile services sharing one rules value.

Usage::

    engine = create_db_engine()
    app = build_app(engine, load_config())
    app.points.award_points("user-1", "ARTICLE_READ", {"category": "football"})
    app.profiles.get_profile("user-1")
    app.close()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine

from kudos.config import KudosConfig, default_config
from kudos.engine.anti_gaming import RateLimiter
from kudos.engine.cache import KeyValueStore, RedisStore, ViewCache
from kudos.services.badge_service import BadgeService
from kudos.services.effects import SideEffectQueue
from kudos.services.notifications import Notifier
from kudos.services.points_service import PointsService
from kudos.services.profile_service import ProfileService

logger = logging.getLogger(__name__)


@dataclass
class KudosApp:
    config: KudosConfig
    store: KeyValueStore
    effects: SideEffectQueue
    points: PointsService
    badges: BadgeService
    profiles: ProfileService

    def close(self) -> None:
        """Drain and stop the side-effect workers."""
        self.effects.shutdown()


def build_app(
    engine: Engine,
    cfg: KudosConfig | None = None,
    *,
    store: KeyValueStore | None = None,
    notifier: Notifier | None = None,
) -> KudosApp:
    cfg = cfg or default_config()
    store = store if store is not None else RedisStore.from_url(cfg.redis_url)

    view_cache = ViewCache(store)
    effects = SideEffectQueue(
        workers=cfg.effects.workers,
        maxsize=cfg.effects.queue_size,
        max_attempts=cfg.effects.max_attempts,
    )
    badges = BadgeService(engine, cfg.rules, view_cache, effects, notifier)
    points = PointsService(
        engine,
        cfg.rules,
        RateLimiter(store, cfg.rules),
        view_cache,
        effects,
        badges,
    )
    profiles = ProfileService(
        engine,
        cfg.rules,
        view_cache,
        profile_ttl=cfg.profile_cache_ttl,
        leaderboard_ttl=cfg.leaderboard_cache_ttl,
        stats_ttl=cfg.stats_cache_ttl,
    )
    logger.info("Kudos services ready (effect workers: %d)", cfg.effects.workers)
    return KudosApp(
        config=cfg,
        store=store,
        effects=effects,
        points=points,
        badges=badges,
        profiles=profiles,
    )
