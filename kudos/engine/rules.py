"""
kudos.engine.rules — Immutable Gameplay Rules
==============================================

One frozen value holding every gameplay constant: points per action, the
level table, streak policy, and per-action anti-abuse limits.  Services
receive it at construction; nothing reads module-level mutable state.

Usage::

    rules = GamificationRules()                       # built-in defaults
    rules = GamificationRules.from_mapping(cfg_rules) # YAML overrides

    rules.points_for("ARTICLE_READ")   # 5
    rules.limit_for("COMMENT_POST")    # ActionLimit(daily_limit=20, cooldown_ms=0)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from kudos.database.models import ActionType
from kudos.engine.levels import DEFAULT_LEVELS, LevelTier

__all__ = [
    "DEFAULT_LIMIT",
    "DEFAULT_POINTS",
    "ActionLimit",
    "GamificationRules",
    "StreakPolicy",
]


# ---------------------------------------------------------------------------
# Points per action
# ---------------------------------------------------------------------------
DEFAULT_POINTS: Mapping[str, int] = MappingProxyType({
    # Reading
    ActionType.ARTICLE_READ: 5,          # read for 30+ seconds
    ActionType.ARTICLE_READ_FULL: 10,    # scrolled past 80%
    ActionType.ARTICLE_LIKE: 3,
    ActionType.ARTICLE_SAVE: 2,
    ActionType.ARTICLE_SHARE: 15,
    # Comments
    ActionType.COMMENT_POST: 10,
    ActionType.COMMENT_RECEIVED_LIKE: 2,
    ActionType.COMMENT_QUALITY_BONUS: 25,
    # Reels
    ActionType.REEL_WATCH: 3,            # watched 75%+
    ActionType.REEL_LIKE: 2,
    ActionType.REEL_SHARE: 10,
    # Engagement
    ActionType.DAILY_LOGIN: 5,
    ActionType.STREAK_BONUS: 5,
    ActionType.PROFILE_COMPLETE: 50,
    ActionType.REFERRAL_SIGNUP: 100,
    ActionType.REFERRAL_ACTIVE: 200,     # referral read 5+ articles
    # Per-badge bonus is defined on the badge itself
    ActionType.BADGE_EARNED: 0,
})


# ---------------------------------------------------------------------------
# Anti-abuse limits
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ActionLimit:
    daily_limit: int
    cooldown_ms: int = 0


DEFAULT_LIMIT = ActionLimit(daily_limit=100, cooldown_ms=0)

_READ_LIMIT = ActionLimit(daily_limit=50, cooldown_ms=10_000)
_LIKE_LIMIT = ActionLimit(daily_limit=100, cooldown_ms=1_000)
_SHARE_LIMIT = ActionLimit(daily_limit=20)

DEFAULT_LIMITS: Mapping[str, ActionLimit] = MappingProxyType({
    ActionType.ARTICLE_READ: _READ_LIMIT,
    ActionType.ARTICLE_READ_FULL: _READ_LIMIT,
    ActionType.COMMENT_POST: ActionLimit(daily_limit=20),
    ActionType.ARTICLE_LIKE: _LIKE_LIMIT,
    ActionType.REEL_LIKE: _LIKE_LIMIT,
    ActionType.ARTICLE_SHARE: _SHARE_LIMIT,
    ActionType.REEL_SHARE: _SHARE_LIMIT,
})


# ---------------------------------------------------------------------------
# Streak policy
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class StreakPolicy:
    grace_period_hours: float = 48
    max_multiplier: int = 7


# ---------------------------------------------------------------------------
# The rules value
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class GamificationRules:
    """Immutable bundle of every gameplay constant."""

    points: Mapping[str, int] = field(default_factory=lambda: DEFAULT_POINTS)
    limits: Mapping[str, ActionLimit] = field(default_factory=lambda: DEFAULT_LIMITS)
    default_limit: ActionLimit = DEFAULT_LIMIT
    streak: StreakPolicy = field(default_factory=StreakPolicy)
    levels: tuple[LevelTier, ...] = DEFAULT_LEVELS

    def __post_init__(self) -> None:
        if not self.levels or self.levels[0].points_required != 0:
            raise ValueError("Level table must start with a zero-threshold tier")
        thresholds = [tier.points_required for tier in self.levels]
        if thresholds != sorted(thresholds) or len(set(thresholds)) != len(thresholds):
            raise ValueError("Level thresholds must be strictly ascending")
        # Freeze caller-supplied dicts
        object.__setattr__(self, "points", MappingProxyType(dict(self.points)))
        object.__setattr__(self, "limits", MappingProxyType(dict(self.limits)))

    def points_for(self, action: str) -> int | None:
        """Base point value for *action*, or ``None`` if it is not configured."""
        return self.points.get(action)

    def limit_for(self, action: str) -> ActionLimit:
        """Daily limit / cooldown for *action*; unknown actions get the default."""
        return self.limits.get(action, self.default_limit)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> GamificationRules:
        """Build rules from a config mapping, overriding defaults key by key.

        Recognised keys::

            points:  {ARTICLE_READ: 5, ...}
            limits:  {ARTICLE_READ: {daily_limit: 50, cooldown_ms: 10000}, ...}
            default_limit: {daily_limit: 100, cooldown_ms: 0}
            streak:  {grace_period_hours: 48, max_multiplier: 7}
            levels:  [{level: 1, points_required: 0, title: ..., title_ar: ...}, ...]
        """
        if not raw:
            return cls()

        points = dict(DEFAULT_POINTS)
        points.update({str(k).upper(): int(v) for k, v in (raw.get("points") or {}).items()})

        limits = dict(DEFAULT_LIMITS)
        for key, value in (raw.get("limits") or {}).items():
            limits[str(key).upper()] = ActionLimit(**value)

        default_limit = (
            ActionLimit(**raw["default_limit"]) if raw.get("default_limit") else DEFAULT_LIMIT
        )
        streak = StreakPolicy(**raw["streak"]) if raw.get("streak") else StreakPolicy()
        levels = (
            tuple(LevelTier(**tier) for tier in raw["levels"])
            if raw.get("levels")
            else DEFAULT_LEVELS
        )
        return cls(
            points=points,
            limits=limits,
            default_limit=default_limit,
            streak=streak,
            levels=levels,
        )
