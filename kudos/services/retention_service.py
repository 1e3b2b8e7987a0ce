"""
kudos.services.retention_service — Ledger Retention Cleanup
============================================================

Point transactions are kept for ``ledger_retention_days`` (default 180)
and then expire.  Nothing here is scheduled; run it from cron or
``python -m kudos retention``.

**Deletion is batched** to avoid locking the table for too long: rows are
removed in chunks of ``BATCH_SIZE``, each in its own transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import Engine, delete, func, select

from kudos.constants import LEDGER_RETENTION_DAYS
from kudos.database.engine import get_session
from kudos.database.models import PointTransaction
from kudos.engine.events import as_utc, utcnow

logger = logging.getLogger(__name__)

# How many rows to delete in each batch (avoids long-held row locks)
BATCH_SIZE = 5_000


def run_ledger_retention(
    engine: Engine,
    retention_days: int = LEDGER_RETENTION_DAYS,
    *,
    now: datetime | None = None,
    batch_size: int = BATCH_SIZE,
) -> dict[str, int | str]:
    """Delete ledger entries older than ``retention_days``.

    Returns ``{"transactions_deleted": N, "cutoff": iso}``.
    """
    cutoff = as_utc(now or utcnow()) - timedelta(days=retention_days)
    deleted = 0

    while True:
        with get_session(engine) as session:
            ids = session.scalars(
                select(PointTransaction.id)
                .where(PointTransaction.created_at < cutoff)
                .limit(batch_size)
            ).all()

            if not ids:
                break

            result = session.execute(
                delete(PointTransaction).where(PointTransaction.id.in_(ids))
            )
            deleted += result.rowcount  # type: ignore[operator]
            logger.info(
                "Retention: deleted %d point_transactions rows (total so far: %d)",
                result.rowcount, deleted,
            )

    logger.info(
        "Ledger retention complete — %d transactions removed (retention_days=%d, cutoff=%s)",
        deleted, retention_days, cutoff.isoformat(),
    )
    return {"transactions_deleted": deleted, "cutoff": cutoff.isoformat()}


def get_ledger_stats(engine: Engine) -> dict:
    """Ledger size and age, for operators."""
    with get_session(engine) as session:
        total = session.scalar(select(func.count()).select_from(PointTransaction)) or 0
        oldest = session.scalar(select(func.min(PointTransaction.created_at)))
        newest = session.scalar(select(func.max(PointTransaction.created_at)))

    return {
        "total_transactions": total,
        "oldest_transaction": oldest.isoformat() if oldest else None,
        "newest_transaction": newest.isoformat() if newest else None,
    }
