"""
kudos.services.notifications — Badge-earned notification payloads
==================================================================

Push delivery is an external collaborator; the engine only formats the
payload and hands it to a :class:`Notifier`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from kudos.database.models import Badge

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send_to_user(self, user_id: str, payload: dict[str, Any]) -> None: ...


class LoggingNotifier:
    """Default notifier: records the payload in the log and delivers nothing."""

    def send_to_user(self, user_id: str, payload: dict[str, Any]) -> None:
        logger.info("Notify %s: %s — %s", user_id, payload.get("title"), payload.get("body"))


def badge_notification(badge: Badge) -> dict[str, Any]:
    """Build the ``{title, body, data}`` payload for a newly earned badge."""
    return {
        "title": "\U0001f3c6 New Badge Earned!",  # 🏆
        "body": f'You\'ve earned the "{badge.name}" badge!',
        "data": {
            "type": "badge_earned",
            "badgeId": str(badge.id),
            "badgeName": badge.name,
        },
    }
