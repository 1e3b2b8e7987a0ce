"""
kudos.engine.levels — Level / Tier Table
=========================================

Pure functions mapping lifetime points onto the ascending level table.
The table always starts with a zero-threshold floor entry, so every
non-negative point total has a level.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

__all__ = ["DEFAULT_LEVELS", "LevelProgress", "LevelTier", "level_for", "level_progress", "tier_for"]


@dataclass(frozen=True, slots=True)
class LevelTier:
    level: int
    points_required: int
    title: str
    title_ar: str

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "points_required": self.points_required,
            "title": self.title,
            "title_ar": self.title_ar,
        }


DEFAULT_LEVELS: tuple[LevelTier, ...] = (
    LevelTier(1, 0, "Newcomer", "مبتدئ"),
    LevelTier(2, 100, "Reader", "قارئ"),
    LevelTier(3, 300, "Enthusiast", "متحمس"),
    LevelTier(4, 600, "Contributor", "مساهم"),
    LevelTier(5, 1000, "Expert", "خبير"),
    LevelTier(6, 2000, "Influencer", "مؤثر"),
    LevelTier(7, 4000, "Champion", "بطل"),
    LevelTier(8, 7000, "Legend", "أسطورة"),
    LevelTier(9, 12000, "Icon", "أيقونة"),
    LevelTier(10, 20000, "Titan", "عملاق"),
)


@dataclass(frozen=True, slots=True)
class LevelProgress:
    """Where a point total sits between its tier and the next one."""

    current: LevelTier
    next: LevelTier | None
    progress: float
    points_to_next: int


def tier_for(lifetime_points: int, levels: Sequence[LevelTier] = DEFAULT_LEVELS) -> LevelTier:
    """Highest tier whose threshold is ≤ *lifetime_points* (floor tier otherwise)."""
    for tier in reversed(levels):
        if lifetime_points >= tier.points_required:
            return tier
    return levels[0]


def level_for(lifetime_points: int, levels: Sequence[LevelTier] = DEFAULT_LEVELS) -> int:
    """Level number for *lifetime_points*; clamps at the top tier."""
    return tier_for(lifetime_points, levels).level


def level_progress(
    lifetime_points: int, levels: Sequence[LevelTier] = DEFAULT_LEVELS
) -> LevelProgress:
    """Progress toward the next tier, as a percentage rounded to one decimal.

    At the top tier ``next`` is ``None``, progress is 100 and nothing is
    left to earn.
    """
    current = tier_for(lifetime_points, levels)
    index = levels.index(current)
    if index + 1 >= len(levels):
        return LevelProgress(current=current, next=None, progress=100.0, points_to_next=0)

    nxt = levels[index + 1]
    into_level = lifetime_points - current.points_required
    span = nxt.points_required - current.points_required
    percent = min(100.0, max(0.0, into_level / span * 100))
    return LevelProgress(
        current=current,
        next=nxt,
        progress=round(percent, 1),
        points_to_next=nxt.points_required - lifetime_points,
    )
