"""
kudos.__main__ — Maintenance CLI for ``python -m kudos``
========================================================

Subcommands::

    python -m kudos init        # create tables + seed badges
    python -m kudos seed        # (re)seed the default badge catalogue
    python -m kudos retention   # prune ledger entries past the window
    python -m kudos reconcile   # report ledger vs aggregate drift

Reads ``DATABASE_URL`` from the environment / ``.env`` and, when present,
``config.yaml`` for the retention window.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from kudos.config import KudosConfig, default_config, load_config
from kudos.database.engine import create_db_engine, init_db
from kudos.database.seed import seed_default_badges
from kudos.services.reconciliation_service import reconcile_ledger
from kudos.services.retention_service import run_ledger_retention

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("kudos")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kudos", description="Kudos maintenance tasks")
    parser.add_argument(
        "--config", default="config.yaml", help="path to config.yaml (optional)"
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init", help="create tables and seed the badge catalogue")
    sub.add_parser("seed", help="seed the default badge catalogue")
    retention = sub.add_parser("retention", help="delete expired ledger entries")
    retention.add_argument("--days", type=int, default=None, help="override retention window")
    sub.add_parser("reconcile", help="report ledger/aggregate drift")
    return parser


def _load_optional_config(path: str) -> KudosConfig:
    if not Path(path).exists():
        logger.info("No %s found — using defaults", path)
        return default_config()
    return load_config(path)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = _build_parser().parse_args(argv)
    cfg = _load_optional_config(args.config)

    try:
        engine = create_db_engine()
    except RuntimeError as exc:
        logger.critical("%s", exc)
        return 1

    if args.command == "init":
        init_db(engine)
    elif args.command == "seed":
        created = seed_default_badges(engine)
        logger.info("Seeded %d new badges", created)
    elif args.command == "retention":
        days = args.days if args.days is not None else cfg.ledger_retention_days
        print(json.dumps(run_ledger_retention(engine, days), indent=2))
    elif args.command == "reconcile":
        report = reconcile_ledger(engine, cfg.ledger_retention_days)
        print(json.dumps(report, indent=2))
        return 2 if report["drifted"] else 0
    return 0


if __name__ == "__main__":
    sys.exit(main())
