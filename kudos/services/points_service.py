"""
kudos.services.points_service — Point Awards, Streaks & Redemptions
====================================================================

The write path of the engine.  Each public operation:

1. Validates the request against the injected :class:`GamificationRules`.
2. Consults the :class:`RateLimiter` (awards only).
3. Runs a read-modify-write of the user's aggregate in one transaction,
   replayed on an optimistic version conflict.
4. Appends the matching ledger entry.
5. Submits badge evaluation and cache invalidation as side effects.

Every failure is logged and surfaces as ``None`` — the caller cannot tell
an unknown action from a rate-limit denial or a database outage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from kudos.database.engine import run_with_retry
from kudos.database.models import ActionType, PointTransaction, UserPoints
from kudos.engine.events import ActionEvent, as_utc, utcnow
from kudos.engine.reward import AwardResult, calculate_award, stat_updates
from kudos.engine.rules import GamificationRules
from kudos.engine.streak import StreakState, StreakTransition, TransitionKind, advance_streak

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from kudos.engine.anti_gaming import RateLimiter
    from kudos.engine.cache import ViewCache
    from kudos.services.badge_service import BadgeService
    from kudos.services.effects import SideEffectQueue

logger = logging.getLogger(__name__)


@dataclass
class StreakResult:
    streak: int
    is_new_day: bool
    longest_streak: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"streak": self.streak, "is_new_day": self.is_new_day}
        if self.longest_streak is not None:
            out["longest_streak"] = self.longest_streak
        return out


@dataclass
class RedemptionResult:
    points_redeemed: int
    total_points: int
    lifetime_points: int


def get_or_create_points(
    session: Session, user_id: str, *, now: datetime | None = None
) -> UserPoints:
    """Fetch the user's aggregate, inserting a zeroed row on first touch.

    The insert runs in a SAVEPOINT; losing a creation race to another
    request raises ``IntegrityError`` there, and the winner's row is read
    back instead.
    """
    points = session.get(UserPoints, user_id)
    if points is not None:
        return points

    now = now or utcnow()
    candidate = UserPoints(
        user_id=user_id,
        total_points=0,
        lifetime_points=0,
        level=1,
        streak_current=0,
        streak_longest=0,
        last_activity_at=None,
        articles_read=0,
        articles_liked=0,
        comments_posted=0,
        comments_liked=0,
        shares_completed=0,
        reels_watched=0,
        daily_logins=0,
        referrals=0,
        category_stats={},
        created_at=now,
        updated_at=now,
    )
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(candidate)
            session.flush()
    except IntegrityError:
        logger.debug("Aggregate for %s created concurrently — re-reading", user_id)
        points = session.get(UserPoints, user_id)
        if points is None:
            raise
        return points

    logger.info("Created points aggregate for %s", user_id)
    return candidate


class PointsService:
    """Award / streak / redemption operations over one database engine."""

    def __init__(
        self,
        engine: Engine,
        rules: GamificationRules,
        limiter: RateLimiter,
        view_cache: ViewCache,
        effects: SideEffectQueue,
        badges: BadgeService,
    ) -> None:
        self.engine = engine
        self.rules = rules
        self.limiter = limiter
        self.view_cache = view_cache
        self.effects = effects
        self.badges = badges

    # ------------------------------------------------------------------
    # Awards
    # ------------------------------------------------------------------
    def award_points(
        self,
        user_id: str,
        action: str,
        metadata: dict[str, Any] | None = None,
        *,
        now: datetime | None = None,
    ) -> AwardResult | None:
        """Award the configured points for *action*; ``None`` if nothing was awarded."""
        event = ActionEvent.create(user_id, action, metadata, now)

        base_points = self.rules.points_for(event.action)
        if base_points is None:
            logger.warning("Unknown action %r for user %s — no points", action, user_id)
            return None

        if not self.limiter.permit(user_id, event.action, now=event.timestamp):
            logger.info("Rate limited: %s/%s", user_id, event.action)
            return None

        try:
            result = run_with_retry(
                self.engine,
                lambda session: self._apply_award(session, event, base_points),
                label=f"award {event.action} to {user_id}",
            )
        except SQLAlchemyError:
            logger.exception("Award %s failed for %s", event.action, user_id)
            return None

        self.effects.submit("badge-check", self.badges.check_and_award_badges, user_id)
        self.effects.submit("cache-invalidate", self.view_cache.invalidate, user_id)
        return result

    def _apply_award(
        self, session: Session, event: ActionEvent, base_points: int
    ) -> AwardResult:
        points = get_or_create_points(session, event.user_id, now=event.timestamp)

        calc = calculate_award(
            event,
            base_points,
            self.rules,
            current_streak=points.streak_current or 0,
            lifetime_points=points.lifetime_points or 0,
            current_level=points.level or 1,
        )

        points.total_points = (points.total_points or 0) + calc.points
        points.lifetime_points = (points.lifetime_points or 0) + calc.points

        stat_field, category = stat_updates(event)
        if stat_field:
            setattr(points, stat_field, (getattr(points, stat_field) or 0) + 1)
        if category:
            # Reassign so the JSON column is flagged dirty
            category_stats = dict(points.category_stats or {})
            category_stats[category] = category_stats.get(category, 0) + 1
            points.category_stats = category_stats

        points.level = calc.new_level
        points.updated_at = event.timestamp
        session.flush()

        session.add(PointTransaction(
            user_id=event.user_id,
            points=calc.points,
            action=event.ledger_action,
            metadata_=calc.metadata,
            created_at=event.timestamp,
        ))

        logger.info(
            "✨ +%d points to %s for %s (total %d)",
            calc.points, event.user_id, event.action, points.total_points,
        )
        if calc.leveled_up:
            logger.info(
                "\U0001f389 %s leveled up %d → %d", event.user_id, calc.old_level, calc.new_level
            )

        return AwardResult(
            points_awarded=calc.points,
            total_points=points.total_points,
            lifetime_points=points.lifetime_points,
            leveled_up=calc.leveled_up,
            new_level=calc.new_level if calc.leveled_up else None,
            old_level=calc.old_level if calc.leveled_up else None,
        )

    # ------------------------------------------------------------------
    # Streaks
    # ------------------------------------------------------------------
    def update_streak(
        self, user_id: str, *, now: datetime | None = None
    ) -> StreakResult | None:
        """Record a daily touch; a new UTC day also triggers the daily-login award."""
        now = as_utc(now) if now is not None else utcnow()
        try:
            transition = run_with_retry(
                self.engine,
                lambda session: self._apply_streak(session, user_id, now),
                label=f"streak update for {user_id}",
            )
        except SQLAlchemyError:
            logger.exception("Streak update failed for %s", user_id)
            return None

        state = transition.state
        if not transition.is_new_day:
            return StreakResult(streak=state.current, is_new_day=False)

        self.award_points(user_id, ActionType.DAILY_LOGIN, now=now)
        self.effects.submit("cache-invalidate", self.view_cache.invalidate, user_id)
        return StreakResult(
            streak=state.current, is_new_day=True, longest_streak=state.longest
        )

    def _apply_streak(
        self, session: Session, user_id: str, now: datetime
    ) -> StreakTransition:
        points = get_or_create_points(session, user_id, now=now)
        transition = advance_streak(
            StreakState(
                current=points.streak_current or 0,
                longest=points.streak_longest or 0,
                last_activity_at=points.last_activity_at,
            ),
            now,
            grace_period_hours=self.rules.streak.grace_period_hours,
        )
        if not transition.is_new_day:
            return transition

        points.streak_current = transition.state.current
        points.streak_longest = transition.state.longest
        points.last_activity_at = transition.state.last_activity_at
        points.daily_logins = (points.daily_logins or 0) + 1
        points.updated_at = now

        if transition.kind is TransitionKind.CONTINUED:
            logger.info("\U0001f525 Streak increased to %d for %s", points.streak_current, user_id)
        elif transition.kind is TransitionKind.BROKEN:
            logger.info(
                "\U0001f494 Streak broken for %s (%dh gap)",
                user_id, round(transition.hours_elapsed or 0),
            )
        return transition

    # ------------------------------------------------------------------
    # Redemptions
    # ------------------------------------------------------------------
    def redeem_points(
        self,
        user_id: str,
        points: int,
        description: str | None = None,
        *,
        now: datetime | None = None,
    ) -> RedemptionResult | None:
        """Spend *points* from the balance; ``None`` if the balance cannot cover it.

        Lifetime points (and therefore the level) are never reduced.
        """
        if points <= 0:
            logger.warning("Rejected redemption of %d points for %s", points, user_id)
            return None

        now = as_utc(now) if now is not None else utcnow()
        try:
            result = run_with_retry(
                self.engine,
                lambda session: self._apply_redemption(session, user_id, points, description, now),
                label=f"redemption for {user_id}",
            )
        except SQLAlchemyError:
            logger.exception("Redemption failed for %s", user_id)
            return None

        if result is not None:
            self.effects.submit("cache-invalidate", self.view_cache.invalidate, user_id)
        return result

    def _apply_redemption(
        self,
        session: Session,
        user_id: str,
        amount: int,
        description: str | None,
        now: datetime,
    ) -> RedemptionResult | None:
        points = session.get(UserPoints, user_id)
        if points is None or (points.total_points or 0) < amount:
            logger.info("Insufficient balance for %s to redeem %d", user_id, amount)
            return None

        points.total_points -= amount
        points.updated_at = now
        session.flush()

        metadata: dict[str, Any] = {}
        if description:
            metadata["description"] = description
        session.add(PointTransaction(
            user_id=user_id,
            points=-amount,
            action=ActionType.REDEMPTION.lower(),
            metadata_=metadata,
            created_at=now,
        ))
        logger.info("Redeemed %d points for %s (balance %d)", amount, user_id, points.total_points)
        return RedemptionResult(
            points_redeemed=amount,
            total_points=points.total_points,
            lifetime_points=points.lifetime_points,
        )
