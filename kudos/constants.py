"""
kudos.constants — Shared Constants
===================================

Single source of truth for cache key layout, read-view TTLs, badge tier
presentation, and the ledger retention window.  Import from here instead
of duplicating in services.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Ephemeral-store key layout
# ---------------------------------------------------------------------------
RATE_COOLDOWN_KEY = "points:cooldown:{user_id}:{action}"
RATE_DAILY_KEY = "points:daily:{user_id}:{action}:{day}"
RATE_DAILY_TTL_SECONDS = 86400

PROFILE_CACHE_KEY = "gamification:profile:{user_id}"
LEADERBOARD_CACHE_KEY = "gamification:leaderboard:{type}:{limit}"
GLOBAL_STATS_CACHE_KEY = "gamification:stats:global"

# ---------------------------------------------------------------------------
# Read-view TTLs (seconds) — overridable from config.yaml
# ---------------------------------------------------------------------------
PROFILE_CACHE_TTL = 60
LEADERBOARD_CACHE_TTL = 300
STATS_CACHE_TTL = 600

# ---------------------------------------------------------------------------
# Leaderboards
# ---------------------------------------------------------------------------
LEADERBOARD_DEFAULT_LIMIT = 20
LEADERBOARD_MAX_LIMIT = 100

# leaderboard type → UserPoints column it sorts on
LEADERBOARD_SORT_COLUMNS: dict[str, str] = {
    "points": "total_points",
    "streak": "streak_current",
    "level": "level",
    "lifetime": "lifetime_points",
}
LEADERBOARD_TYPES: tuple[str, ...] = tuple(LEADERBOARD_SORT_COLUMNS)

# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------
TIER_COLORS: dict[str, str] = {
    "bronze": "#CD7F32",
    "silver": "#C0C0C0",
    "gold": "#FFD700",
    "platinum": "#E5E4E2",
    "diamond": "#B9F2FF",
}

MAX_DISPLAYED_BADGES = 3

# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------
LEDGER_RETENTION_DAYS = 180
HISTORY_DEFAULT_LIMIT = 50
