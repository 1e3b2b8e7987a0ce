"""
kudos.engine.streak — Daily Streak State Machine
=================================================

Pure transition function over ``(current, longest, last_activity_at)``.

Day boundaries are fixed UTC calendar days, not a rolling 24-hour window:
two touches 23 hours apart that cross midnight UTC are different days,
two touches 23 hours apart inside one UTC day are the same day.  Once a
new day is detected, the gap since the last touch decides whether the
streak continues (gap < grace period) or restarts at 1.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime

from kudos.engine.events import as_utc

__all__ = ["StreakState", "StreakTransition", "TransitionKind", "advance_streak", "same_utc_day"]


class TransitionKind(enum.StrEnum):
    FIRST = "first"
    SAME_DAY = "same_day"
    CONTINUED = "continued"
    BROKEN = "broken"


@dataclass(frozen=True, slots=True)
class StreakState:
    current: int = 0
    longest: int = 0
    last_activity_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class StreakTransition:
    kind: TransitionKind
    state: StreakState
    hours_elapsed: float | None = None

    @property
    def is_new_day(self) -> bool:
        return self.kind is not TransitionKind.SAME_DAY


def same_utc_day(a: datetime, b: datetime) -> bool:
    return as_utc(a).date() == as_utc(b).date()


def advance_streak(
    state: StreakState, now: datetime, *, grace_period_hours: float = 48
) -> StreakTransition:
    """Compute the streak after an activity at *now*.

    A ``SAME_DAY`` transition returns *state* untouched; every other kind
    stamps ``last_activity_at = now``.
    """
    now = as_utc(now)
    last = state.last_activity_at

    if last is None:
        return StreakTransition(
            kind=TransitionKind.FIRST,
            state=StreakState(current=1, longest=max(1, state.longest), last_activity_at=now),
        )

    if same_utc_day(last, now):
        return StreakTransition(kind=TransitionKind.SAME_DAY, state=state)

    hours = (now - as_utc(last)).total_seconds() / 3600
    if hours < grace_period_hours:
        current = state.current + 1
        return StreakTransition(
            kind=TransitionKind.CONTINUED,
            state=StreakState(
                current=current,
                longest=max(state.longest, current),
                last_activity_at=now,
            ),
            hours_elapsed=hours,
        )

    return StreakTransition(
        kind=TransitionKind.BROKEN,
        state=StreakState(current=1, longest=max(state.longest, 1), last_activity_at=now),
        hours_elapsed=hours,
    )
