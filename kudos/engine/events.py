"""
kudos.engine.events — ActionEvent envelope
===========================================

Every award request is normalized into an :class:`ActionEvent` before the
reward pipeline sees it: the action key is upper-cased, metadata is copied
(the pipeline adds streak fields to it), and the timestamp is pinned to UTC.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

__all__ = ["ActionEvent", "as_utc", "utcnow"]


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite hands these back) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class ActionEvent:
    """Normalized award request — the sole input to the reward pipeline."""

    user_id: str
    action: str
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        user_id: str,
        action: str,
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> ActionEvent:
        return cls(
            user_id=user_id,
            action=action.strip().upper(),
            metadata=dict(metadata or {}),
            timestamp=as_utc(now) if now is not None else utcnow(),
        )

    @property
    def ledger_action(self) -> str:
        """Action name as written to the ledger (lower-case)."""
        return self.action.lower()
