"""
kudos.engine.badges — Badge Requirement Evaluation
===================================================

Handler-registry evaluation of badge requirements.  Each
:class:`RequirementType` maps to a pure handler that receives the parsed
:class:`BadgeRequirement` and a :class:`BadgeContext` snapshot of the
user's aggregate.  The registry covers every member of the enum; a raw
requirement string outside the enum never parses, so it never matches.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kudos.database.models import RequirementType

if TYPE_CHECKING:
    from kudos.database.models import Badge, UserPoints

logger = logging.getLogger(__name__)

__all__ = [
    "REQUIREMENT_HANDLERS",
    "BadgeContext",
    "BadgeRequirement",
    "check_badges",
    "requirement_met",
]


# ---------------------------------------------------------------------------
# Typed requirement
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BadgeRequirement:
    kind: RequirementType
    value: int
    category: str | None = None

    @classmethod
    def parse(
        cls, kind: str, value: int | None, category: str | None = None
    ) -> BadgeRequirement | None:
        """Parse raw requirement columns; ``None`` if they don't form a valid requirement."""
        try:
            parsed_kind = RequirementType(kind)
        except ValueError:
            logger.warning("Unknown badge requirement type: %s", kind)
            return None
        if value is None:
            return None
        if parsed_kind is RequirementType.CATEGORY_ARTICLES and not category:
            logger.warning("category_articles requirement without a category")
            return None
        return cls(kind=parsed_kind, value=int(value), category=category)

    @classmethod
    def from_badge(cls, badge: Badge) -> BadgeRequirement | None:
        return cls.parse(
            badge.requirement_type, badge.requirement_value, badge.requirement_category
        )


# ---------------------------------------------------------------------------
# Context — snapshot of the aggregate passed to every handler
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BadgeContext:
    """Snapshot of user state read by requirement handlers.

    Parameters
    ----------
    stats : UserPoints counter values keyed by column name.
    category_stats : category label → article count.
    longest_streak : best streak ever (streak badges read this, not current).
    lifetime_points : lifetime total, never the spendable balance.
    level : current cached level.
    """

    stats: Mapping[str, int] = field(default_factory=dict)
    category_stats: Mapping[str, int] = field(default_factory=dict)
    longest_streak: int = 0
    lifetime_points: int = 0
    level: int = 1

    @classmethod
    def from_points(cls, points: UserPoints) -> BadgeContext:
        return cls(
            stats=points.stats_dict(),
            category_stats=dict(points.category_stats or {}),
            longest_streak=points.streak_longest or 0,
            lifetime_points=points.lifetime_points or 0,
            level=points.level or 1,
        )


# ---------------------------------------------------------------------------
# Requirement handlers — pure functions (requirement, ctx) → bool
# ---------------------------------------------------------------------------
def _stat_handler(stat_field: str) -> Callable[[BadgeRequirement, BadgeContext], bool]:
    def _check(req: BadgeRequirement, ctx: BadgeContext) -> bool:
        return ctx.stats.get(stat_field, 0) >= req.value

    _check.__name__ = f"_check_{stat_field}"
    return _check


def _check_streak_days(req: BadgeRequirement, ctx: BadgeContext) -> bool:
    return ctx.longest_streak >= req.value


def _check_total_points(req: BadgeRequirement, ctx: BadgeContext) -> bool:
    return ctx.lifetime_points >= req.value


def _check_level(req: BadgeRequirement, ctx: BadgeContext) -> bool:
    return ctx.level >= req.value


def _check_category_articles(req: BadgeRequirement, ctx: BadgeContext) -> bool:
    return ctx.category_stats.get(req.category or "", 0) >= req.value


REQUIREMENT_HANDLERS: Mapping[RequirementType, Callable[[BadgeRequirement, BadgeContext], bool]] = {
    RequirementType.ARTICLES_READ: _stat_handler("articles_read"),
    RequirementType.ARTICLES_LIKED: _stat_handler("articles_liked"),
    RequirementType.COMMENTS_POSTED: _stat_handler("comments_posted"),
    RequirementType.COMMENTS_LIKED: _stat_handler("comments_liked"),
    RequirementType.SHARES: _stat_handler("shares_completed"),
    RequirementType.DAILY_LOGINS: _stat_handler("daily_logins"),
    RequirementType.REFERRALS: _stat_handler("referrals"),
    RequirementType.STREAK_DAYS: _check_streak_days,
    RequirementType.TOTAL_POINTS: _check_total_points,
    RequirementType.LEVEL: _check_level,
    RequirementType.CATEGORY_ARTICLES: _check_category_articles,
}

_missing = set(RequirementType) - set(REQUIREMENT_HANDLERS)
if _missing:  # pragma: no cover
    raise RuntimeError(f"No badge requirement handler for: {sorted(_missing)}")


def requirement_met(req: BadgeRequirement, ctx: BadgeContext) -> bool:
    return REQUIREMENT_HANDLERS[req.kind](req, ctx)


# ---------------------------------------------------------------------------
# Main check function
# ---------------------------------------------------------------------------
def check_badges(
    badges: Iterable[Badge],
    ctx: BadgeContext,
    already_earned: set[int],
) -> list[Badge]:
    """Return the active badges in *badges* that *ctx* newly satisfies.

    Parameters
    ----------
    badges : candidate badge definitions (inactive ones are skipped).
    ctx : BadgeContext with current user state.
    already_earned : badge IDs the user already holds.
    """
    newly_earned: list[Badge] = []

    for badge in badges:
        if not badge.is_active or badge.id in already_earned:
            continue

        requirement = BadgeRequirement.from_badge(badge)
        if requirement is None:
            continue

        if requirement_met(requirement, ctx):
            newly_earned.append(badge)

    return newly_earned
