"""
kudos.services.reconciliation_service — Ledger Audit
=====================================================

Validates each aggregate's ``total_points`` against the sum of its ledger
entries (awards and badge bonuses positive, redemptions negative).

How it works:
    1. ``SUM(points)`` from ``point_transactions`` grouped by user.
    2. Compare against ``user_points.total_points``.
    3. Report and log every mismatch.  The aggregate is the source of
       truth for current state, so drift is never auto-corrected.

Only aggregates created inside the retention window are checked — older
users have had ledger entries expire, so their sums are no longer
authoritative.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import Engine, func, select

from kudos.constants import LEDGER_RETENTION_DAYS
from kudos.database.engine import get_session
from kudos.database.models import PointTransaction, UserPoints
from kudos.engine.events import as_utc, utcnow

logger = logging.getLogger(__name__)


def reconcile_ledger(
    engine: Engine,
    retention_days: int = LEDGER_RETENTION_DAYS,
    *,
    now: datetime | None = None,
) -> dict:
    """Compare ledger sums with aggregate balances.

    Returns ``{"checked": N, "drifted": M, "drift": [...], "timestamp": iso}``.
    """
    now = as_utc(now or utcnow())
    cutoff = now - timedelta(days=retention_days)
    drift: list[dict] = []

    with get_session(engine) as session:
        ledger_sums = (
            select(
                PointTransaction.user_id.label("user_id"),
                func.sum(PointTransaction.points).label("ledger_total"),
            )
            .group_by(PointTransaction.user_id)
            .subquery()
        )
        rows = session.execute(
            select(
                UserPoints.user_id,
                UserPoints.total_points,
                func.coalesce(ledger_sums.c.ledger_total, 0),
            )
            .outerjoin(ledger_sums, ledger_sums.c.user_id == UserPoints.user_id)
            .where(UserPoints.created_at >= cutoff)
            .order_by(UserPoints.user_id)
        ).all()

    for user_id, stored, ledger_total in rows:
        if stored != ledger_total:
            drift.append({
                "user_id": user_id,
                "stored": stored,
                "ledger": int(ledger_total),
                "diff": int(ledger_total) - stored,
            })

    if drift:
        logger.warning(
            "Ledger reconciliation: %d/%d aggregates drifted: %s",
            len(drift), len(rows), drift,
        )
    else:
        logger.info("Ledger reconciliation: all %d aggregates match", len(rows))

    return {
        "checked": len(rows),
        "drifted": len(drift),
        "drift": drift,
        "timestamp": now.isoformat(),
    }
