"""
kudos.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for infrastructure settings (cache TTLs, side-effect
workers, ledger retention) plus an optional ``rules:`` block overriding the
built-in gameplay constants.  Secrets (``DATABASE_URL``, ``REDIS_URL``)
come from the environment / ``.env``.

Usage::

    from kudos.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    rules = cfg.rules            # GamificationRules with overrides applied
    print(cfg.profile_cache_ttl) # 60
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from kudos.constants import (
    LEADERBOARD_CACHE_TTL,
    LEDGER_RETENTION_DAYS,
    PROFILE_CACHE_TTL,
    STATS_CACHE_TTL,
)
from kudos.engine.rules import GamificationRules


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class EffectsConfig:
    workers: int = 2
    queue_size: int = 1000
    max_attempts: int = 3


@dataclass(frozen=True, slots=True)
class KudosConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    redis_url: str | None = None
    profile_cache_ttl: int = PROFILE_CACHE_TTL
    leaderboard_cache_ttl: int = LEADERBOARD_CACHE_TTL
    stats_cache_ttl: int = STATS_CACHE_TTL
    ledger_retention_days: int = LEDGER_RETENTION_DAYS
    effects: EffectsConfig = field(default_factory=EffectsConfig)
    rules: GamificationRules = field(default_factory=GamificationRules)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def default_config() -> KudosConfig:
    """Built-in defaults for running without ``config.yaml``; honours ``REDIS_URL``."""
    return KudosConfig(redis_url=os.getenv("REDIS_URL") or None)


def load_config(path: str | Path = "config.yaml") -> KudosConfig:
    """Read *path* and return a :class:`KudosConfig` instance.

    ``REDIS_URL`` in the environment overrides ``redis_url`` from the file.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If the ``rules:`` block yields an invalid level table.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    effects_raw = raw.get("effects") or {}
    return KudosConfig(
        redis_url=os.getenv("REDIS_URL") or raw.get("redis_url") or None,
        profile_cache_ttl=int(raw.get("profile_cache_ttl", PROFILE_CACHE_TTL)),
        leaderboard_cache_ttl=int(raw.get("leaderboard_cache_ttl", LEADERBOARD_CACHE_TTL)),
        stats_cache_ttl=int(raw.get("stats_cache_ttl", STATS_CACHE_TTL)),
        ledger_retention_days=int(raw.get("ledger_retention_days", LEDGER_RETENTION_DAYS)),
        effects=EffectsConfig(
            workers=int(effects_raw.get("workers", 2)),
            queue_size=int(effects_raw.get("queue_size", 1000)),
            max_attempts=int(effects_raw.get("max_attempts", 3)),
        ),
        rules=GamificationRules.from_mapping(raw.get("rules")),
    )
