"""
Kudos — A Gamification Engine for Content Communities
======================================================
Awards points for reader actions, keeps a daily activity streak, derives
levels from lifetime points and unlocks badges when stat thresholds are
crossed — resisting farming with per-action rate limits and keeping cached
read views consistent with the ledger.

Package layout::

    kudos/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Cache keys, TTLs, tier colours
    ├── app.py             # Wires services together (build_app)
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, sessions, retry helper
    │   ├── models.py      # ORM models (4 tables) + enums
    │   └── seed.py        # Default badge catalogue seeder
    ├── engine/
    │   ├── rules.py       # Immutable gameplay rules
    │   ├── events.py      # ActionEvent dataclass
    │   ├── levels.py      # Level / tier table
    │   ├── streak.py      # Daily streak state machine
    │   ├── reward.py      # Point calculation pipeline
    │   ├── badges.py      # Badge requirement evaluation
    │   ├── anti_gaming.py # Per-action rate limiter
    │   └── cache.py       # Redis / in-memory stores + view cache
    ├── services/
    │   ├── points_service.py   # Awards, streaks, redemptions
    │   ├── badge_service.py    # Badge evaluation + award recording
    │   ├── profile_service.py  # Profile, leaderboards, history
    │   ├── effects.py          # Fire-and-forget side-effect queue
    │   ├── notifications.py    # Badge-earned notification payloads
    │   ├── retention_service.py      # 180-day ledger expiry
    │   └── reconciliation_service.py # Ledger vs aggregate audit
    └── seeds/
        └── badges.yaml    # Default badge catalogue
"""

__version__ = "0.1.0"
