"""
kudos.database.seed — Default Badge Catalogue Seeder
=====================================================

Loads ``kudos/seeds/badges.yaml`` and inserts every badge whose name is not
already present.  Idempotent: curated edits to existing badges are never
overwritten, and running it twice inserts nothing the second time.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy import Engine, select

from kudos.database.engine import get_session
from kudos.database.models import Badge, BadgeCategory, BadgeTier, RequirementType

logger = logging.getLogger(__name__)

_SEEDS_DIR = Path(__file__).resolve().parent.parent / "seeds"


def load_badge_catalogue(path: str | Path | None = None) -> list[dict[str, Any]]:
    """Read the YAML badge catalogue and validate its enum fields."""
    path = Path(path) if path is not None else _SEEDS_DIR / "badges.yaml"
    if not path.exists():
        logger.warning("Badge seed file not found: %s", path)
        return []
    with open(path, encoding="utf-8") as fh:
        items = yaml.safe_load(fh) or []

    for item in items:
        # Raises ValueError on a typo in the fixture
        BadgeCategory(item["category"])
        BadgeTier(item.get("tier", BadgeTier.BRONZE.value))
        RequirementType(item["requirement"]["type"])
    return items


def _badge_from_item(item: dict[str, Any]) -> Badge:
    requirement = item["requirement"]
    return Badge(
        name=item["name"],
        name_ar=item.get("name_ar"),
        description=item["description"],
        description_ar=item.get("description_ar"),
        icon=item["icon"],
        color=item.get("color", "#FFD700"),
        category=item["category"],
        tier=item.get("tier", BadgeTier.BRONZE.value),
        requirement_type=requirement["type"],
        requirement_value=int(requirement["value"]),
        requirement_category=requirement.get("category"),
        points_awarded=int(item.get("points_awarded", 0)),
        is_active=item.get("is_active", True),
        sort_order=int(item.get("sort_order", 0)),
    )


def seed_default_badges(engine: Engine, path: str | Path | None = None) -> int:
    """Insert catalogue badges that don't exist yet.  Returns the insert count."""
    items = load_badge_catalogue(path)
    if not items:
        return 0

    inserted = 0
    with get_session(engine) as session:
        existing = set(session.scalars(select(Badge.name)).all())
        for item in items:
            if item["name"] in existing:
                continue
            session.add(_badge_from_item(item))
            inserted += 1

    if inserted:
        logger.info("Seeded %d default badges.", inserted)
    else:
        logger.info("Badge catalogue already seeded — skipping.")
    return inserted
