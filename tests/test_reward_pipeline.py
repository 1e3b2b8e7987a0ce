"""
tests/test_reward_pipeline.py — Pure Award Calculation
=======================================================

Covers GamificationRules, ActionEvent normalization, the daily-login
multiplier, stat-counter mapping and level detection.
"""

from __future__ import annotations

from types import MappingProxyType

import pytest

from kudos.database.models import ActionType
from kudos.engine.events import ActionEvent
from kudos.engine.levels import LevelTier
from kudos.engine.reward import AwardResult, calculate_award, stat_updates, streak_multiplier
from kudos.engine.rules import ActionLimit, GamificationRules, StreakPolicy


@pytest.fixture
def rules():
    return GamificationRules()


def _event(action: str, metadata: dict | None = None) -> ActionEvent:
    return ActionEvent.create("user-1", action, metadata)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------
class TestRules:
    def test_default_points(self, rules):
        assert rules.points_for("ARTICLE_READ") == 5
        assert rules.points_for(ActionType.REFERRAL_ACTIVE) == 200
        assert rules.points_for("NOT_A_THING") is None

    def test_unknown_action_gets_default_limit(self, rules):
        assert rules.limit_for("NOT_A_THING") == ActionLimit(daily_limit=100, cooldown_ms=0)

    def test_configured_limits(self, rules):
        assert rules.limit_for("ARTICLE_READ") == ActionLimit(50, 10_000)
        assert rules.limit_for("COMMENT_POST") == ActionLimit(20, 0)

    def test_tables_are_read_only(self, rules):
        assert isinstance(rules.points, MappingProxyType)
        with pytest.raises(TypeError):
            rules.points["ARTICLE_READ"] = 500  # type: ignore[index]

    def test_caller_dict_is_copied(self):
        points = {"ARTICLE_READ": 7}
        rules = GamificationRules(points=points)
        points["ARTICLE_READ"] = 70
        assert rules.points_for("ARTICLE_READ") == 7

    def test_level_table_needs_zero_floor(self):
        with pytest.raises(ValueError):
            GamificationRules(levels=(LevelTier(1, 10, "A", "a"),))

    def test_level_table_must_ascend(self):
        with pytest.raises(ValueError):
            GamificationRules(
                levels=(LevelTier(1, 0, "A", "a"), LevelTier(2, 50, "B", "b"), LevelTier(3, 50, "C", "c"))
            )

    def test_from_mapping_overrides_key_by_key(self):
        rules = GamificationRules.from_mapping({
            "points": {"article_read": 8},
            "limits": {"COMMENT_POST": {"daily_limit": 5, "cooldown_ms": 2000}},
            "streak": {"grace_period_hours": 36, "max_multiplier": 3},
        })
        assert rules.points_for("ARTICLE_READ") == 8
        assert rules.points_for("ARTICLE_LIKE") == 3
        assert rules.limit_for("COMMENT_POST") == ActionLimit(5, 2000)
        assert rules.limit_for("ARTICLE_READ") == ActionLimit(50, 10_000)
        assert rules.streak == StreakPolicy(grace_period_hours=36, max_multiplier=3)

    def test_from_mapping_empty_is_defaults(self):
        assert GamificationRules.from_mapping(None) == GamificationRules()


# ---------------------------------------------------------------------------
# ActionEvent
# ---------------------------------------------------------------------------
class TestActionEvent:
    def test_action_normalized(self):
        event = _event("  article_read ")
        assert event.action == "ARTICLE_READ"
        assert event.ledger_action == "article_read"

    def test_metadata_copied(self):
        meta = {"category": "football"}
        event = _event("ARTICLE_READ", meta)
        meta["category"] = "tennis"
        assert event.metadata == {"category": "football"}


# ---------------------------------------------------------------------------
# Multiplier
# ---------------------------------------------------------------------------
class TestStreakMultiplier:
    @pytest.mark.parametrize("streak, expected", [(0, None), (1, None), (2, 2), (7, 7), (30, 7)])
    def test_capped(self, rules, streak, expected):
        assert streak_multiplier(streak, rules) == expected

    def test_daily_login_streak_three(self, rules):
        calc = calculate_award(_event("DAILY_LOGIN"), 5, rules, current_streak=3)
        assert calc.points == 15
        assert calc.multiplier == 3
        assert calc.metadata["multiplier"] == 3
        assert calc.metadata["streakDay"] == 3

    def test_daily_login_cap_at_seven(self, rules):
        calc = calculate_award(_event("DAILY_LOGIN"), 5, rules, current_streak=45)
        assert calc.points == 35
        assert calc.metadata["streakDay"] == 45

    def test_daily_login_first_day_unmultiplied(self, rules):
        calc = calculate_award(_event("DAILY_LOGIN"), 5, rules, current_streak=1)
        assert calc.points == 5
        assert "multiplier" not in calc.metadata

    def test_multiplier_only_for_daily_login(self, rules):
        calc = calculate_award(_event("ARTICLE_READ"), 5, rules, current_streak=6)
        assert calc.points == 5
        assert calc.multiplier is None


# ---------------------------------------------------------------------------
# Level detection
# ---------------------------------------------------------------------------
class TestLevelDetection:
    def test_crossing_threshold_levels_up(self, rules):
        calc = calculate_award(
            _event("ARTICLE_SHARE"), 15, rules, lifetime_points=90, current_level=1
        )
        assert calc.new_level == 2
        assert calc.leveled_up

    def test_below_threshold(self, rules):
        calc = calculate_award(_event("ARTICLE_READ"), 5, rules, lifetime_points=0)
        assert calc.new_level == 1
        assert not calc.leveled_up


# ---------------------------------------------------------------------------
# Stat counters
# ---------------------------------------------------------------------------
class TestStatUpdates:
    @pytest.mark.parametrize(
        "action, field",
        [
            ("ARTICLE_READ", "articles_read"),
            ("ARTICLE_LIKE", "articles_liked"),
            ("COMMENT_POST", "comments_posted"),
            ("COMMENT_RECEIVED_LIKE", "comments_liked"),
            ("ARTICLE_SHARE", "shares_completed"),
            ("REEL_SHARE", "shares_completed"),
            ("REEL_WATCH", "reels_watched"),
            ("REFERRAL_SIGNUP", "referrals"),
            ("REFERRAL_ACTIVE", "referrals"),
            ("ARTICLE_SAVE", None),
            ("DAILY_LOGIN", None),
        ],
    )
    def test_mapping(self, action, field):
        assert stat_updates(_event(action))[0] == field

    def test_read_full_does_not_double_count(self):
        assert stat_updates(_event("ARTICLE_READ_FULL")) == (None, None)

    def test_category_for_read_and_like(self):
        assert stat_updates(_event("ARTICLE_READ", {"category": "football"})) == (
            "articles_read", "football",
        )
        assert stat_updates(_event("ARTICLE_LIKE", {"category": "tech"}))[1] == "tech"

    def test_category_ignored_for_other_actions(self):
        assert stat_updates(_event("COMMENT_POST", {"category": "football"}))[1] is None

    def test_blank_category_ignored(self):
        assert stat_updates(_event("ARTICLE_READ", {"category": "  "}))[1] is None


class TestAwardResult:
    def test_level_up_dict(self, rules):
        calc = calculate_award(
            _event(ActionType.REFERRAL_SIGNUP), 100, rules, lifetime_points=50, current_level=1
        )
        result = AwardResult(
            points_awarded=calc.points,
            total_points=150,
            lifetime_points=150,
            leveled_up=calc.leveled_up,
            new_level=calc.new_level,
            old_level=calc.old_level,
        )
        assert result.to_dict() == {
            "points_awarded": 100,
            "total_points": 150,
            "lifetime_points": 150,
            "leveled_up": True,
            "new_level": 2,
            "old_level": 1,
        }

    def test_plain_award_dict(self):
        assert AwardResult(points_awarded=5, total_points=5, lifetime_points=5).to_dict() == {
            "points_awarded": 5,
            "total_points": 5,
            "lifetime_points": 5,
            "leveled_up": False,
            "new_level": None,
            "old_level": None,
        }
