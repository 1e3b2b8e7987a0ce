"""
kudos.engine.reward — Point Calculation Pipeline
=================================================

Pure calculation, no DB I/O.  The points service feeds it the aggregate's
current numbers and applies the result.

Pipeline stages:
  ActionEvent → Base value → Streak multiplier → Level check → AwardCalculation
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from kudos.database.models import ActionType
from kudos.engine.events import ActionEvent
from kudos.engine.levels import level_for
from kudos.engine.rules import GamificationRules

logger = logging.getLogger(__name__)

__all__ = [
    "ACTION_TO_STAT",
    "CATEGORY_ACTIONS",
    "AwardCalculation",
    "AwardResult",
    "calculate_award",
    "stat_updates",
]

# Map action → UserPoints counter to increment
ACTION_TO_STAT: Mapping[str, str] = {
    ActionType.ARTICLE_READ: "articles_read",
    ActionType.ARTICLE_READ_FULL: "articles_read",
    ActionType.ARTICLE_LIKE: "articles_liked",
    ActionType.COMMENT_POST: "comments_posted",
    ActionType.COMMENT_RECEIVED_LIKE: "comments_liked",
    ActionType.ARTICLE_SHARE: "shares_completed",
    ActionType.REEL_SHARE: "shares_completed",
    ActionType.REEL_WATCH: "reels_watched",
    ActionType.REFERRAL_SIGNUP: "referrals",
    ActionType.REFERRAL_ACTIVE: "referrals",
}

# A full read always follows the plain read that already counted the article
_NON_COUNTING_ACTIONS: frozenset[str] = frozenset({ActionType.ARTICLE_READ_FULL})

# Actions that bump categoryStats when metadata carries a category
CATEGORY_ACTIONS: frozenset[str] = frozenset({
    ActionType.ARTICLE_READ,
    ActionType.ARTICLE_LIKE,
})


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass
class AwardCalculation:
    """Output of the pure pipeline, applied to the aggregate by the service."""

    points: int
    new_level: int
    old_level: int
    multiplier: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


@dataclass
class AwardResult:
    """What ``award_points`` hands back to the caller."""

    points_awarded: int
    total_points: int
    lifetime_points: int
    leveled_up: bool = False
    new_level: int | None = None
    old_level: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "points_awarded": self.points_awarded,
            "total_points": self.total_points,
            "lifetime_points": self.lifetime_points,
            "leveled_up": self.leveled_up,
            "new_level": self.new_level,
            "old_level": self.old_level,
        }


# ---------------------------------------------------------------------------
# Stage functions
# ---------------------------------------------------------------------------
def streak_multiplier(current_streak: int, rules: GamificationRules) -> int | None:
    """Daily-login multiplier, or ``None`` when no bonus applies (streak ≤ 1)."""
    if current_streak <= 1:
        return None
    return min(current_streak, rules.streak.max_multiplier)


def stat_updates(event: ActionEvent) -> tuple[str | None, str | None]:
    """Returns (stat_field_to_increment, category_to_increment) for *event*."""
    stat_field = ACTION_TO_STAT.get(event.action)
    if event.action in _NON_COUNTING_ACTIONS:
        stat_field = None

    category = None
    if event.action in CATEGORY_ACTIONS:
        raw = event.metadata.get("category")
        if isinstance(raw, str) and raw.strip():
            category = raw.strip()
    return stat_field, category


# ---------------------------------------------------------------------------
# Full calculation
# ---------------------------------------------------------------------------
def calculate_award(
    event: ActionEvent,
    base_points: int,
    rules: GamificationRules,
    *,
    current_streak: int = 0,
    lifetime_points: int = 0,
    current_level: int = 1,
) -> AwardCalculation:
    """Run the award pipeline for *event* against the aggregate's numbers.

    Parameters
    ----------
    event : normalized award request
    base_points : configured value for ``event.action``
    rules : gameplay constants
    current_streak : aggregate's ``streak_current`` before this award
    lifetime_points : aggregate's ``lifetime_points`` before this award
    current_level : aggregate's cached level before this award
    """
    metadata = dict(event.metadata)
    points = base_points
    multiplier = None

    if event.action == ActionType.DAILY_LOGIN:
        multiplier = streak_multiplier(current_streak, rules)
        if multiplier is not None:
            points = round(base_points * multiplier)
            metadata["multiplier"] = multiplier
            metadata["streakDay"] = current_streak
            metadata["description"] = f"Day {current_streak} streak bonus"

    new_level = level_for(lifetime_points + points, rules.levels)
    return AwardCalculation(
        points=points,
        new_level=new_level,
        old_level=current_level,
        multiplier=multiplier,
        metadata=metadata,
    )
