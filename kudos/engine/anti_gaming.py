"""
kudos.engine.anti_gaming — Per-action rate limiting
====================================================

Prevents point farming with two expiring counters per (user, action):

* a UTC calendar-day counter, read first so an attempt already over the
  limit is denied without arming anything;
* a cooldown flag, set with ``SET … PX <cooldown> NX`` so only the first
  caller inside the window wins.

The counter is then bumped with ``INCR`` and compared after the increment,
so two racing requests cannot both take the last slot.  The loser releases
the cooldown it armed.

The limiter fails open: when the store is disconnected or errors, every
check is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime

from kudos.constants import RATE_COOLDOWN_KEY, RATE_DAILY_KEY, RATE_DAILY_TTL_SECONDS
from kudos.engine.cache import KeyValueStore, StoreUnavailable
from kudos.engine.events import as_utc, utcnow
from kudos.engine.rules import GamificationRules

logger = logging.getLogger(__name__)

__all__ = ["RateLimiter"]


class RateLimiter:
    """Decides whether a (user, action) award attempt may proceed now.

    Thread-safe as long as *store* is; all shared state lives in the store.
    """

    def __init__(self, store: KeyValueStore, rules: GamificationRules) -> None:
        self._store = store
        self._rules = rules

    def permit(self, user_id: str, action: str, *, now: datetime | None = None) -> bool:
        """Return True if the attempt is allowed, recording it if so."""
        if not self._store.is_connected():
            return True

        limit = self._rules.limit_for(action)
        day = as_utc(now or utcnow()).strftime("%Y-%m-%d")

        daily_key = RATE_DAILY_KEY.format(user_id=user_id, action=action, day=day)
        cooldown_key = RATE_COOLDOWN_KEY.format(user_id=user_id, action=action)

        try:
            current = self._store.get(daily_key)
            if current is not None and int(current) >= limit.daily_limit:
                logger.debug("Daily limit already reached for %s/%s", user_id, action)
                return False

            if limit.cooldown_ms > 0:
                if not self._store.set(cooldown_key, "1", px=limit.cooldown_ms, nx=True):
                    logger.debug("Cooldown active for %s/%s", user_id, action)
                    return False

            count = self._store.incr(daily_key)
            if count == 1:
                self._store.expire(daily_key, RATE_DAILY_TTL_SECONDS)
            if count > limit.daily_limit and limit.cooldown_ms > 0:
                self._store.delete(cooldown_key)
        except StoreUnavailable as exc:
            logger.warning("Rate limit check failed open for %s/%s: %s", user_id, action, exc)
            return True

        if count > limit.daily_limit:
            logger.warning(
                "Daily limit reached for %s/%s (%d)", user_id, action, limit.daily_limit
            )
            return False
        return True
