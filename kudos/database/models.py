"""
kudos.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- user_points         — Per-user aggregate (points, level, streak, counters)
- point_transactions  — Append-only point ledger (auto-pruned after 180 days)
- badges              — Curated badge catalogue with typed requirements
- user_badges         — Earned badges, at most one row per (user, badge)
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Kudos ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ActionType(enum.StrEnum):
    """Every point-affecting action known to the engine."""
    ARTICLE_READ = "ARTICLE_READ"
    ARTICLE_READ_FULL = "ARTICLE_READ_FULL"
    ARTICLE_LIKE = "ARTICLE_LIKE"
    ARTICLE_SAVE = "ARTICLE_SAVE"
    ARTICLE_SHARE = "ARTICLE_SHARE"
    COMMENT_POST = "COMMENT_POST"
    COMMENT_RECEIVED_LIKE = "COMMENT_RECEIVED_LIKE"
    COMMENT_QUALITY_BONUS = "COMMENT_QUALITY_BONUS"
    REEL_WATCH = "REEL_WATCH"
    REEL_LIKE = "REEL_LIKE"
    REEL_SHARE = "REEL_SHARE"
    DAILY_LOGIN = "DAILY_LOGIN"
    STREAK_BONUS = "STREAK_BONUS"
    PROFILE_COMPLETE = "PROFILE_COMPLETE"
    REFERRAL_SIGNUP = "REFERRAL_SIGNUP"
    REFERRAL_ACTIVE = "REFERRAL_ACTIVE"
    BADGE_EARNED = "BADGE_EARNED"
    REDEMPTION = "REDEMPTION"


class RequirementType(enum.StrEnum):
    """Closed set of stat thresholds a badge can require."""
    ARTICLES_READ = "articles_read"
    ARTICLES_LIKED = "articles_liked"
    COMMENTS_POSTED = "comments_posted"
    COMMENTS_LIKED = "comments_liked"
    SHARES = "shares"
    STREAK_DAYS = "streak_days"
    TOTAL_POINTS = "total_points"
    DAILY_LOGINS = "daily_logins"
    LEVEL = "level"
    CATEGORY_ARTICLES = "category_articles"
    REFERRALS = "referrals"


class BadgeCategory(enum.StrEnum):
    ENGAGEMENT = "engagement"
    READING = "reading"
    SOCIAL = "social"
    STREAK = "streak"
    SPECIAL = "special"
    CATEGORY_EXPERT = "category_expert"


class BadgeTier(enum.StrEnum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"
    DIAMOND = "diamond"


# Stat counter columns on UserPoints, in display order
STAT_FIELDS: tuple[str, ...] = (
    "articles_read",
    "articles_liked",
    "comments_posted",
    "comments_liked",
    "shares_completed",
    "reels_watched",
    "daily_logins",
    "referrals",
)


# ---------------------------------------------------------------------------
# UserPoints — one aggregate row per user
# ---------------------------------------------------------------------------
class UserPoints(Base):
    """Mutable per-user rollup; the source of truth for derived state.

    ``version_id`` backs SQLAlchemy's optimistic concurrency check: a flush
    that races another writer raises ``StaleDataError`` instead of silently
    losing the other update.
    """
    __tablename__ = "user_points"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    total_points: Mapped[int] = mapped_column(Integer, default=0)
    lifetime_points: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)

    # Streak
    streak_current: Mapped[int] = mapped_column(Integer, default=0)
    streak_longest: Mapped[int] = mapped_column(Integer, default=0)
    last_activity_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    # Stat counters
    articles_read: Mapped[int] = mapped_column(Integer, default=0)
    articles_liked: Mapped[int] = mapped_column(Integer, default=0)
    comments_posted: Mapped[int] = mapped_column(Integer, default=0)
    comments_liked: Mapped[int] = mapped_column(Integer, default=0)
    shares_completed: Mapped[int] = mapped_column(Integer, default=0)
    reels_watched: Mapped[int] = mapped_column(Integer, default=0)
    daily_logins: Mapped[int] = mapped_column(Integer, default=0)
    referrals: Mapped[int] = mapped_column(Integer, default=0)

    # category label → count (e.g. {"football": 45})
    category_stats: Mapped[dict] = mapped_column(JSONB, default=dict)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("ix_user_points_total", "total_points"),
        Index("ix_user_points_lifetime", "lifetime_points"),
        Index("ix_user_points_level", "level"),
        Index("ix_user_points_streak_current", "streak_current"),
        Index("ix_user_points_streak_longest", "streak_longest"),
    )

    def stats_dict(self) -> dict[str, int]:
        """Snapshot of the stat counters keyed by field name."""
        return {name: getattr(self, name) or 0 for name in STAT_FIELDS}

    def __repr__(self) -> str:
        return (
            f"<UserPoints user={self.user_id!r} total={self.total_points} "
            f"lvl={self.level}>"
        )


# ---------------------------------------------------------------------------
# PointTransaction — append-only ledger
# ---------------------------------------------------------------------------
class PointTransaction(Base):
    __tablename__ = "point_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)  # negative for redemptions
    action: Mapped[str] = mapped_column(String(40), nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_point_tx_user_time", "user_id", "created_at"),
        Index("ix_point_tx_action_time", "action", "created_at"),
        Index("ix_point_tx_created", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<PointTransaction id={self.id} user={self.user_id!r} "
            f"points={self.points} action={self.action}>"
        )


# ---------------------------------------------------------------------------
# Badge — curated catalogue
# ---------------------------------------------------------------------------
class Badge(Base):
    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name_ar: Mapped[str | None] = mapped_column(String(100), default=None)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    description_ar: Mapped[str | None] = mapped_column(Text, default=None)
    icon: Mapped[str] = mapped_column(String(50), nullable=False)
    color: Mapped[str] = mapped_column(String(7), default="#FFD700")
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    tier: Mapped[str] = mapped_column(String(20), default=BadgeTier.BRONZE.value)

    requirement_type: Mapped[str] = mapped_column(String(30), nullable=False)
    requirement_value: Mapped[int] = mapped_column(Integer, nullable=False)
    requirement_category: Mapped[str | None] = mapped_column(String(50), default=None)

    points_awarded: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    awards: Mapped[list[UserBadge]] = relationship(back_populates="badge")

    __table_args__ = (
        Index("ix_badges_category_tier", "category", "tier"),
        Index("ix_badges_active", "is_active"),
        Index("ix_badges_requirement_type", "requirement_type"),
    )

    def __repr__(self) -> str:
        return f"<Badge id={self.id} name={self.name!r} tier={self.tier}>"


# ---------------------------------------------------------------------------
# UserBadge — earned badges
# ---------------------------------------------------------------------------
class UserBadge(Base):
    __tablename__ = "user_badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    badge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("badges.id", ondelete="CASCADE"), nullable=False
    )
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    is_displayed: Mapped[bool] = mapped_column(Boolean, default=False)
    notified: Mapped[bool] = mapped_column(Boolean, default=False)

    badge: Mapped[Badge] = relationship(back_populates="awards")

    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),
        Index("ix_user_badges_earned", "earned_at"),
        Index("ix_user_badges_user_displayed", "user_id", "is_displayed"),
    )

    def __repr__(self) -> str:
        return f"<UserBadge user={self.user_id!r} badge={self.badge_id}>"
