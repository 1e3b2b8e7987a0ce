"""
tests/test_badge_rules.py — Badge Requirement Evaluation
=========================================================

Tests the handler-registry evaluator with BadgeContext snapshots and
mock badge definitions.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from kudos.database.models import RequirementType
from kudos.engine.badges import (
    REQUIREMENT_HANDLERS,
    BadgeContext,
    BadgeRequirement,
    check_badges,
    requirement_met,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _badge(
    id: int,
    requirement_type: str,
    requirement_value: int,
    *,
    category: str | None = None,
    active: bool = True,
) -> MagicMock:
    b = MagicMock()
    b.id = id
    b.name = f"Badge {id}"
    b.is_active = active
    b.requirement_type = requirement_type
    b.requirement_value = requirement_value
    b.requirement_category = category
    return b


def _ctx(**overrides) -> BadgeContext:
    stats = overrides.pop("stats", {})
    return BadgeContext(stats=stats, **overrides)


class TestRegistry:
    def test_every_requirement_type_has_a_handler(self):
        assert set(REQUIREMENT_HANDLERS) == set(RequirementType)


class TestParse:
    def test_unknown_type_never_parses(self):
        assert BadgeRequirement.parse("karma", 5) is None

    def test_missing_value(self):
        assert BadgeRequirement.parse("articles_read", None) is None

    def test_category_requirement_needs_category(self):
        assert BadgeRequirement.parse("category_articles", 10) is None
        req = BadgeRequirement.parse("category_articles", 10, "football")
        assert req == BadgeRequirement(RequirementType.CATEGORY_ARTICLES, 10, "football")


class TestHandlers:
    @pytest.mark.parametrize(
        "kind, stat",
        [
            ("articles_read", "articles_read"),
            ("articles_liked", "articles_liked"),
            ("comments_posted", "comments_posted"),
            ("comments_liked", "comments_liked"),
            ("shares", "shares_completed"),
            ("daily_logins", "daily_logins"),
            ("referrals", "referrals"),
        ],
    )
    def test_stat_thresholds(self, kind, stat):
        req = BadgeRequirement.parse(kind, 10)
        assert not requirement_met(req, _ctx(stats={stat: 9}))
        assert requirement_met(req, _ctx(stats={stat: 10}))

    def test_streak_uses_longest(self):
        req = BadgeRequirement.parse("streak_days", 7)
        assert requirement_met(req, _ctx(longest_streak=7))
        assert not requirement_met(req, _ctx(longest_streak=6))

    def test_total_points_uses_lifetime(self):
        req = BadgeRequirement.parse("total_points", 1000)
        assert requirement_met(req, _ctx(lifetime_points=1000))
        assert not requirement_met(req, _ctx(lifetime_points=999))

    def test_level(self):
        req = BadgeRequirement.parse("level", 3)
        assert requirement_met(req, _ctx(level=3))
        assert not requirement_met(req, _ctx(level=2))

    def test_category_articles(self):
        req = BadgeRequirement.parse("category_articles", 50, "football")
        assert requirement_met(req, _ctx(category_stats={"football": 50}))
        assert not requirement_met(req, _ctx(category_stats={"business": 80}))


class TestCheckBadges:
    def test_returns_newly_met(self):
        badges = [_badge(1, "articles_read", 1), _badge(2, "articles_read", 10)]
        earned = check_badges(badges, _ctx(stats={"articles_read": 3}), set())
        assert [b.id for b in earned] == [1]

    def test_skips_already_earned(self):
        badges = [_badge(1, "articles_read", 1)]
        assert check_badges(badges, _ctx(stats={"articles_read": 3}), {1}) == []

    def test_skips_inactive(self):
        badges = [_badge(1, "articles_read", 1, active=False)]
        assert check_badges(badges, _ctx(stats={"articles_read": 3}), set()) == []

    def test_unknown_type_never_matches(self):
        badges = [_badge(1, "karma", 0)]
        assert check_badges(badges, _ctx(), set()) == []
