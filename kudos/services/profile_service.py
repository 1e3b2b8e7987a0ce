"""
kudos.services.profile_service — Read Views
============================================

Profile, leaderboard, badge catalogue, ledger history and global stats.
Read-mostly: the only writes are lazy aggregate creation on a profile read
and the displayed-badge selection.

``get_profile``, leaderboards and global stats read through the
:class:`ViewCache`.  Unlike the write path, database failures propagate —
a profile read has no safe default.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, joinedload

from kudos.constants import (
    GLOBAL_STATS_CACHE_KEY,
    HISTORY_DEFAULT_LIMIT,
    LEADERBOARD_CACHE_KEY,
    LEADERBOARD_CACHE_TTL,
    LEADERBOARD_DEFAULT_LIMIT,
    LEADERBOARD_MAX_LIMIT,
    LEADERBOARD_SORT_COLUMNS,
    MAX_DISPLAYED_BADGES,
    PROFILE_CACHE_KEY,
    PROFILE_CACHE_TTL,
    STATS_CACHE_TTL,
    TIER_COLORS,
)
from kudos.database.engine import get_session
from kudos.database.models import Badge, BadgeTier, PointTransaction, UserBadge, UserPoints
from kudos.engine.levels import level_progress, tier_for
from kudos.engine.rules import GamificationRules
from kudos.services.points_service import get_or_create_points

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from kudos.engine.cache import ViewCache

logger = logging.getLogger(__name__)

_TIER_ORDER = {tier.value: i for i, tier in enumerate(BadgeTier)}


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def badge_to_dict(badge: Badge) -> dict[str, Any]:
    return {
        "id": badge.id,
        "name": badge.name,
        "name_ar": badge.name_ar,
        "description": badge.description,
        "description_ar": badge.description_ar,
        "icon": badge.icon,
        "color": badge.color,
        "category": badge.category,
        "tier": badge.tier,
        "tier_color": TIER_COLORS.get(badge.tier, badge.color),
        "requirement": {
            "type": badge.requirement_type,
            "value": badge.requirement_value,
            "category": badge.requirement_category,
        },
        "points_awarded": badge.points_awarded,
    }


def _award_to_dict(award: UserBadge) -> dict[str, Any]:
    out = badge_to_dict(award.badge)
    out["earned_at"] = _iso(award.earned_at)
    out["is_displayed"] = award.is_displayed
    return out


def _user_awards(
    session: Session, user_id: str, *, displayed_only: bool = False
) -> list[UserBadge]:
    stmt = (
        select(UserBadge)
        .options(joinedload(UserBadge.badge))
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.desc(), UserBadge.id.desc())
    )
    if displayed_only:
        stmt = stmt.where(UserBadge.is_displayed.is_(True))
    return list(session.scalars(stmt).unique().all())


class ProfileService:
    """Read-side composition over the aggregate, badges and level table."""

    def __init__(
        self,
        engine: Engine,
        rules: GamificationRules,
        view_cache: ViewCache,
        *,
        profile_ttl: int = PROFILE_CACHE_TTL,
        leaderboard_ttl: int = LEADERBOARD_CACHE_TTL,
        stats_ttl: int = STATS_CACHE_TTL,
    ) -> None:
        self.engine = engine
        self.rules = rules
        self.view_cache = view_cache
        self.profile_ttl = profile_ttl
        self.leaderboard_ttl = leaderboard_ttl
        self.stats_ttl = stats_ttl

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------
    def get_profile(self, user_id: str) -> dict[str, Any]:
        """Full profile view, read through the cache.

        Creates the aggregate on first read.  Database errors propagate.
        """
        key = PROFILE_CACHE_KEY.format(user_id=user_id)
        cached = self.view_cache.get_json(key)
        if cached is not None:
            return cached

        try:
            with get_session(self.engine) as session:
                points = get_or_create_points(session, user_id)
                awards = _user_awards(session, user_id)
                profile = self._assemble(points, awards)
        except Exception:
            logger.exception("Get profile failed for %s", user_id)
            raise

        self.view_cache.set_json(key, profile, self.profile_ttl)
        return profile

    def _assemble(self, points: UserPoints, awards: list[UserBadge]) -> dict[str, Any]:
        progress = level_progress(points.lifetime_points or 0, self.rules.levels)
        return {
            "user_id": points.user_id,
            "points": {
                "total": points.total_points,
                "lifetime": points.lifetime_points,
            },
            "level": {
                "current": points.level,
                "title": progress.current.title,
                "title_ar": progress.current.title_ar,
                "points_to_next": progress.points_to_next,
                "progress": progress.progress,
                "next_title": progress.next.title if progress.next else None,
            },
            "streak": {
                "current": points.streak_current,
                "longest": points.streak_longest,
                "last_activity": _iso(points.last_activity_at),
            },
            "stats": points.stats_dict(),
            "badges": [_award_to_dict(a) for a in awards if a.badge is not None],
            "category_stats": dict(points.category_stats or {}),
            "updated_at": _iso(points.updated_at),
        }

    def get_public_profile(self, user_id: str) -> dict[str, Any] | None:
        """Limited view of another user; ``None`` if they have no aggregate."""
        with get_session(self.engine) as session:
            points = session.get(UserPoints, user_id)
            if points is None:
                return None
            displayed = _user_awards(session, user_id, displayed_only=True)
            tier = tier_for(points.lifetime_points or 0, self.rules.levels)
            return {
                "user_id": points.user_id,
                "points": points.total_points,
                "level": points.level,
                "level_title": tier.title,
                "level_title_ar": tier.title_ar,
                "streak": {
                    "current": points.streak_current,
                    "longest": points.streak_longest,
                },
                "badges": [_award_to_dict(a) for a in displayed if a.badge is not None],
                "stats": {
                    "articles_read": points.articles_read,
                    "comments_posted": points.comments_posted,
                },
            }

    # ------------------------------------------------------------------
    # Leaderboards
    # ------------------------------------------------------------------
    def get_leaderboard(
        self, board: str = "points", limit: int = LEADERBOARD_DEFAULT_LIMIT
    ) -> list[dict[str, Any]]:
        """Top users by *board* (points, streak, level, lifetime).

        Users with a zero sort value are excluded.
        """
        if board not in LEADERBOARD_SORT_COLUMNS:
            raise ValueError(
                f"Unknown leaderboard type {board!r}; "
                f"expected one of {sorted(LEADERBOARD_SORT_COLUMNS)}"
            )
        limit = max(1, min(int(limit), LEADERBOARD_MAX_LIMIT))

        key = LEADERBOARD_CACHE_KEY.format(type=board, limit=limit)
        cached = self.view_cache.get_json(key)
        if cached is not None:
            return cached

        column = getattr(UserPoints, LEADERBOARD_SORT_COLUMNS[board])
        with get_session(self.engine) as session:
            rows = session.scalars(
                select(UserPoints)
                .where(column > 0)
                .order_by(column.desc(), UserPoints.lifetime_points.desc(), UserPoints.user_id)
                .limit(limit)
            ).all()

            entries = []
            for rank, points in enumerate(rows, start=1):
                displayed = _user_awards(session, points.user_id, displayed_only=True)
                tier = tier_for(points.lifetime_points or 0, self.rules.levels)
                entries.append({
                    "rank": rank,
                    "user_id": points.user_id,
                    "points": points.total_points,
                    "lifetime_points": points.lifetime_points,
                    "level": points.level,
                    "level_title": tier.title,
                    "streak": points.streak_current,
                    "badges": [
                        {"name": a.badge.name, "icon": a.badge.icon, "tier": a.badge.tier}
                        for a in displayed
                        if a.badge is not None
                    ],
                })

        self.view_cache.set_json(key, entries, self.leaderboard_ttl)
        return entries

    # ------------------------------------------------------------------
    # Badges
    # ------------------------------------------------------------------
    def list_badges(self, category: str | None = None) -> list[dict[str, Any]]:
        """Active badge catalogue ordered by category, tier, then requirement."""
        with get_session(self.engine) as session:
            stmt = select(Badge).where(Badge.is_active.is_(True))
            if category:
                stmt = stmt.where(Badge.category == category)
            badges = session.scalars(stmt).all()

        badges = sorted(
            badges,
            key=lambda b: (b.category, _TIER_ORDER.get(b.tier, len(_TIER_ORDER)), b.requirement_value),
        )
        return [badge_to_dict(b) for b in badges]

    def get_user_badges(self, user_id: str) -> list[dict[str, Any]]:
        """Earned badges, newest first."""
        with get_session(self.engine) as session:
            awards = _user_awards(session, user_id)
            return [_award_to_dict(a) for a in awards if a.badge is not None]

    def set_displayed_badges(self, user_id: str, badge_ids: list[int]) -> list[int]:
        """Choose which earned badges are shown; returns the IDs now displayed.

        Raises
        ------
        ValueError
            If more than three badges are requested.
        """
        wanted = list(dict.fromkeys(int(b) for b in badge_ids))
        if len(wanted) > MAX_DISPLAYED_BADGES:
            raise ValueError(f"At most {MAX_DISPLAYED_BADGES} badges can be displayed")

        with get_session(self.engine) as session:
            session.execute(
                update(UserBadge)
                .where(UserBadge.user_id == user_id)
                .values(is_displayed=False)
            )
            displayed: list[int] = []
            if wanted:
                session.execute(
                    update(UserBadge)
                    .where(UserBadge.user_id == user_id, UserBadge.badge_id.in_(wanted))
                    .values(is_displayed=True)
                )
                displayed = list(
                    session.scalars(
                        select(UserBadge.badge_id).where(
                            UserBadge.user_id == user_id, UserBadge.is_displayed.is_(True)
                        )
                    ).all()
                )

        self.view_cache.invalidate(user_id)
        return sorted(displayed)

    # ------------------------------------------------------------------
    # History & levels
    # ------------------------------------------------------------------
    def get_history(
        self,
        user_id: str,
        limit: int = HISTORY_DEFAULT_LIMIT,
        offset: int = 0,
        action: str | None = None,
    ) -> dict[str, Any]:
        """A page of the user's ledger, newest first."""
        filters = [PointTransaction.user_id == user_id]
        if action:
            filters.append(PointTransaction.action == action.lower())

        with get_session(self.engine) as session:
            total = session.scalar(
                select(func.count()).select_from(PointTransaction).where(*filters)
            ) or 0
            rows = session.scalars(
                select(PointTransaction)
                .where(*filters)
                .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
                .offset(offset)
                .limit(limit)
            ).all()

        return {
            "transactions": [
                {
                    "id": tx.id,
                    "points": tx.points,
                    "action": tx.action,
                    "metadata": tx.metadata_ or {},
                    "created_at": _iso(tx.created_at),
                }
                for tx in rows
            ],
            "total": total,
            "has_more": offset + len(rows) < total,
        }

    def get_levels(self) -> list[dict[str, Any]]:
        return [tier.to_dict() for tier in self.rules.levels]

    # ------------------------------------------------------------------
    # Global stats
    # ------------------------------------------------------------------
    def get_global_stats(self) -> dict[str, Any]:
        cached = self.view_cache.get_json(GLOBAL_STATS_CACHE_KEY)
        if cached is not None:
            return cached

        with get_session(self.engine) as session:
            total_users, lifetime_sum = session.execute(
                select(func.count(), func.coalesce(func.sum(UserPoints.lifetime_points), 0))
                .select_from(UserPoints)
            ).one()
            total_badges = session.scalar(select(func.count()).select_from(UserBadge)) or 0
            level_rows = session.execute(
                select(UserPoints.level, func.count())
                .group_by(UserPoints.level)
                .order_by(UserPoints.level)
            ).all()

        titles = {tier.level: tier.title for tier in self.rules.levels}
        stats = {
            "total_users": total_users,
            "total_points_awarded": int(lifetime_sum),
            "total_badges_earned": total_badges,
            "average_points": round(lifetime_sum / total_users) if total_users else 0,
            "level_distribution": [
                {"level": level, "title": titles.get(level), "count": count}
                for level, count in level_rows
            ],
        }
        self.view_cache.set_json(GLOBAL_STATS_CACHE_KEY, stats, self.stats_ttl)
        return stats
