"""
kudos.services.badge_service — Badge Evaluation & Award Recording
==================================================================

Evaluates every active badge the user does not yet hold against a fresh
read of their aggregate, records each match, and credits the badge bonus.

Recording is a conditional insert on the ``(user_id, badge_id)`` unique
constraint inside a SAVEPOINT: a concurrent pass that already granted the
badge makes the insert fail harmlessly, and no bonus is paid twice.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from kudos.database.engine import get_session, run_with_retry
from kudos.database.models import ActionType, Badge, PointTransaction, UserBadge, UserPoints
from kudos.engine.badges import BadgeContext, check_badges
from kudos.engine.events import utcnow
from kudos.engine.levels import level_for
from kudos.engine.rules import GamificationRules
from kudos.services.notifications import LoggingNotifier, Notifier, badge_notification

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from kudos.engine.cache import ViewCache
    from kudos.services.effects import SideEffectQueue

logger = logging.getLogger(__name__)


def get_earned_badge_ids(session: Session, user_id: str) -> set[int]:
    """Badge IDs the user already holds."""
    rows = session.scalars(
        select(UserBadge.badge_id).where(UserBadge.user_id == user_id)
    ).all()
    return set(rows)


def get_active_badges(session: Session) -> list[Badge]:
    return list(
        session.scalars(
            select(Badge).where(Badge.is_active.is_(True)).order_by(Badge.sort_order, Badge.id)
        ).all()
    )


def record_award(session: Session, user_id: str, badge: Badge, now: datetime) -> bool:
    """Insert the (user, badge) award; False if it already exists.

    Uses SAVEPOINT + IntegrityError so a duplicate leaves the outer
    transaction usable.
    """
    award = UserBadge(user_id=user_id, badge_id=badge.id, earned_at=now)
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(award)
            session.flush()
    except IntegrityError:
        logger.info("Badge %s already granted to %s — skipping", badge.name, user_id)
        return False
    return True


class BadgeService:
    """Badge evaluation pass plus the notify side effect."""

    def __init__(
        self,
        engine: Engine,
        rules: GamificationRules,
        view_cache: ViewCache,
        effects: SideEffectQueue,
        notifier: Notifier | None = None,
    ) -> None:
        self.engine = engine
        self.rules = rules
        self.view_cache = view_cache
        self.effects = effects
        self.notifier = notifier or LoggingNotifier()

    def check_and_award_badges(
        self, user_id: str, *, now: datetime | None = None
    ) -> list[Badge]:
        """Grant every newly satisfied badge; returns the badges granted by this pass.

        Infrastructure failures are logged and yield an empty list.
        """
        now = now or utcnow()
        try:
            awarded = run_with_retry(
                self.engine,
                lambda session: self._evaluate(session, user_id, now),
                label=f"badge check for {user_id}",
            )
        except SQLAlchemyError:
            logger.exception("Badge check failed for %s", user_id)
            return []

        for badge in awarded:
            self.effects.submit(
                "badge-notify", self._notify, user_id, badge.id, badge_notification(badge)
            )
        if awarded:
            self.effects.submit("cache-invalidate", self.view_cache.invalidate, user_id)
        return awarded

    def _evaluate(self, session: Session, user_id: str, now: datetime) -> list[Badge]:
        points = session.get(UserPoints, user_id)
        if points is None:
            return []

        candidates = check_badges(
            get_active_badges(session),
            BadgeContext.from_points(points),
            get_earned_badge_ids(session, user_id),
        )

        awarded: list[Badge] = []
        for badge in candidates:
            if not record_award(session, user_id, badge, now):
                continue
            logger.info("\U0001f3c6 Badge earned: %s for user %s", badge.name, user_id)
            awarded.append(badge)

            bonus = badge.points_awarded or 0
            if bonus > 0:
                points.total_points += bonus
                points.lifetime_points += bonus
                points.level = level_for(points.lifetime_points, self.rules.levels)
                session.add(PointTransaction(
                    user_id=user_id,
                    points=bonus,
                    action=ActionType.BADGE_EARNED.lower(),
                    metadata_={
                        "badgeId": badge.id,
                        "description": f'Earned "{badge.name}" badge',
                    },
                    created_at=now,
                ))
        return awarded

    def _notify(self, user_id: str, badge_id: int, payload: dict) -> None:
        # Marking is its own effect so a failed update never resends the push
        self.notifier.send_to_user(user_id, payload)
        self.effects.submit("badge-mark-notified", self._mark_notified, user_id, badge_id)

    def _mark_notified(self, user_id: str, badge_id: int) -> None:
        with get_session(self.engine) as session:
            session.execute(
                update(UserBadge)
                .where(UserBadge.user_id == user_id, UserBadge.badge_id == badge_id)
                .values(notified=True)
            )
