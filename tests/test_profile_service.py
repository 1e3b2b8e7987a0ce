"""
tests/test_profile_service.py — Read Views
===========================================
Profile assembly, read-through caching, leaderboards, badge listings,
ledger history and global stats.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from kudos.engine.cache import ViewCache
from kudos.services.points_service import get_or_create_points
from kudos.services.profile_service import ProfileService

NOON = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def make_user(db_engine):
    def _make(user_id: str, **fields) -> None:
        with Session(db_engine) as session:
            agg = get_or_create_points(session, user_id)
            for name, value in fields.items():
                setattr(agg, name, value)
            session.commit()

    return _make


class TestGetProfile:
    def test_new_user_gets_zeroed_profile(self, profile_service):
        profile = profile_service.get_profile("fresh")

        assert profile["points"] == {"total": 0, "lifetime": 0}
        assert profile["level"]["current"] == 1
        assert profile["level"]["title"] == "Newcomer"
        assert profile["level"]["next_title"] == "Reader"
        assert profile["level"]["points_to_next"] == 100
        assert profile["streak"]["current"] == 0
        assert profile["badges"] == []
        assert profile["stats"]["articles_read"] == 0

    def test_assembles_aggregate(self, profile_service, make_user):
        make_user(
            "u1",
            total_points=150,
            lifetime_points=200,
            level=2,
            streak_current=3,
            streak_longest=5,
            articles_read=12,
            category_stats={"football": 4},
        )
        profile = profile_service.get_profile("u1")

        assert profile["points"] == {"total": 150, "lifetime": 200}
        assert profile["level"]["progress"] == 50.0
        assert profile["level"]["title_ar"] == "قارئ"
        assert profile["streak"]["longest"] == 5
        assert profile["stats"]["articles_read"] == 12
        assert profile["category_stats"] == {"football": 4}

    def test_badges_newest_first(self, profile_service, badge_service, seeded_engine, make_user):
        make_user("u1", articles_read=1)
        badge_service.check_and_award_badges("u1", now=NOON)
        make_user("u1", comments_posted=1)
        badge_service.check_and_award_badges("u1", now=NOON + timedelta(hours=1))

        profile = profile_service.get_profile("u1")
        names = [b["name"] for b in profile["badges"]]
        assert names == ["Voice Heard", "First Read"]
        assert profile["badges"][0]["tier_color"] == "#CD7F32"
        assert profile["badges"][0]["is_displayed"] is False

    def test_reads_through_cache(self, profile_service, store, make_user):
        make_user("u1", total_points=10, lifetime_points=10)
        profile_service.get_profile("u1")
        assert store.get("gamification:profile:u1") is not None

        make_user("u1", total_points=99)
        assert profile_service.get_profile("u1")["points"]["total"] == 10

        profile_service.view_cache.invalidate("u1")
        assert profile_service.get_profile("u1")["points"]["total"] == 99

    def test_cache_expires(self, profile_service, clock, make_user):
        make_user("u1", total_points=10)
        profile_service.get_profile("u1")
        make_user("u1", total_points=20)
        clock.advance(60)
        assert profile_service.get_profile("u1")["points"]["total"] == 20

    def test_database_failure_propagates(self, rules, store):
        engine = MagicMock()
        service = ProfileService(engine, rules, ViewCache(store))
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(
                "kudos.services.profile_service.get_session",
                MagicMock(side_effect=OperationalError("SELECT", {}, Exception("db down"))),
            )
            with pytest.raises(OperationalError):
                service.get_profile("u1")


class TestPublicProfile:
    def test_only_displayed_badges(self, profile_service, badge_service, seeded_engine, make_user):
        make_user("u1", articles_read=10, comments_posted=3)
        awarded = badge_service.check_and_award_badges("u1", now=NOON)
        first_read = next(b for b in awarded if b.name == "First Read")
        profile_service.set_displayed_badges("u1", [first_read.id])

        public = profile_service.get_public_profile("u1")

        assert [b["name"] for b in public["badges"]] == ["First Read"]
        assert public["stats"] == {"articles_read": 10, "comments_posted": 3}
        assert "category_stats" not in public

    def test_unknown_user(self, profile_service):
        assert profile_service.get_public_profile("ghost") is None


class TestLeaderboard:
    def test_sorted_and_zero_excluded(self, profile_service, make_user):
        make_user("a", total_points=50, lifetime_points=50)
        make_user("b", total_points=300, lifetime_points=300, level=3)
        make_user("c", total_points=120, lifetime_points=500, level=3)
        make_user("zero")

        board = profile_service.get_leaderboard("points")

        assert [row["user_id"] for row in board] == ["b", "c", "a"]
        assert [row["rank"] for row in board] == [1, 2, 3]
        assert board[0]["level_title"] == "Enthusiast"

    def test_lifetime_board(self, profile_service, make_user):
        make_user("b", total_points=300, lifetime_points=300)
        make_user("c", total_points=120, lifetime_points=500)
        assert [r["user_id"] for r in profile_service.get_leaderboard("lifetime")] == ["c", "b"]

    def test_streak_board(self, profile_service, make_user):
        make_user("a", streak_current=2)
        make_user("b", streak_current=9)
        make_user("c")
        assert [r["user_id"] for r in profile_service.get_leaderboard("streak")] == ["b", "a"]

    def test_limit(self, profile_service, make_user):
        for i in range(5):
            make_user(f"u{i}", total_points=10 + i)
        assert len(profile_service.get_leaderboard("points", limit=3)) == 3

    def test_unknown_type(self, profile_service):
        with pytest.raises(ValueError):
            profile_service.get_leaderboard("karma")

    def test_cached_and_invalidated(self, profile_service, points_service, make_user, store):
        make_user("a", total_points=50)
        profile_service.get_leaderboard("points")
        assert store.get("gamification:leaderboard:points:20") is not None

        points_service.award_points("a", "COMMENT_POST", now=NOON)
        assert store.get("gamification:leaderboard:points:20") is None
        assert profile_service.get_leaderboard("points")[0]["points"] == 60


class TestBadges:
    def test_list_sorted_by_category_tier_value(self, profile_service, seeded_engine):
        badges = profile_service.list_badges()
        assert len(badges) == 34
        keys = [b["category"] for b in badges]
        assert keys == sorted(keys)
        reading = [b for b in badges if b["category"] == "reading"]
        assert [b["requirement"]["value"] for b in reading] == [1, 10, 50, 200, 500, 1000]

    def test_filter_by_category(self, profile_service, seeded_engine):
        streak = profile_service.list_badges("streak")
        assert {b["category"] for b in streak} == {"streak"}
        assert [b["tier"] for b in streak][0] == "bronze"

    def test_display_at_most_three(self, profile_service):
        with pytest.raises(ValueError):
            profile_service.set_displayed_badges("u1", [1, 2, 3, 4])

    def test_display_replaces_selection(
        self, profile_service, badge_service, seeded_engine, make_user
    ):
        make_user("u1", articles_read=10, comments_posted=1)
        ids = sorted(b.id for b in badge_service.check_and_award_badges("u1", now=NOON))

        assert profile_service.set_displayed_badges("u1", ids[:2]) == ids[:2]
        assert profile_service.set_displayed_badges("u1", [ids[2]]) == [ids[2]]
        shown = [b for b in profile_service.get_user_badges("u1") if b["is_displayed"]]
        assert [b["id"] for b in shown] == [ids[2]]

    def test_display_ignores_unearned(self, profile_service, seeded_engine, make_user):
        make_user("u1")
        assert profile_service.set_displayed_badges("u1", [1]) == []


class TestHistory:
    def test_paged_newest_first(self, points_service, profile_service, clock):
        for i in range(5):
            clock.advance(1)
            points_service.award_points("u1", "COMMENT_POST", {"n": i}, now=NOON + timedelta(minutes=i))

        page = profile_service.get_history("u1", limit=2)
        assert page["total"] == 5
        assert page["has_more"] is True
        assert [tx["metadata"]["n"] for tx in page["transactions"]] == [4, 3]

        last = profile_service.get_history("u1", limit=2, offset=4)
        assert last["has_more"] is False
        assert [tx["metadata"]["n"] for tx in last["transactions"]] == [0]

    def test_filter_by_action(self, points_service, profile_service):
        points_service.award_points("u1", "COMMENT_POST", now=NOON)
        points_service.award_points("u1", "ARTICLE_SAVE", now=NOON)
        page = profile_service.get_history("u1", action="ARTICLE_SAVE")
        assert page["total"] == 1
        assert page["transactions"][0]["action"] == "article_save"


class TestLevelsAndStats:
    def test_levels(self, profile_service):
        levels = profile_service.get_levels()
        assert len(levels) == 10
        assert levels[-1] == {
            "level": 10, "points_required": 20000, "title": "Titan", "title_ar": "عملاق",
        }

    def test_global_stats(self, profile_service, make_user):
        make_user("a", lifetime_points=100, level=2)
        make_user("b", lifetime_points=50)
        make_user("c")

        stats = profile_service.get_global_stats()

        assert stats["total_users"] == 3
        assert stats["total_points_awarded"] == 150
        assert stats["average_points"] == 50
        assert stats["total_badges_earned"] == 0
        assert stats["level_distribution"] == [
            {"level": 1, "title": "Newcomer", "count": 2},
            {"level": 2, "title": "Reader", "count": 1},
        ]

    def test_global_stats_empty(self, profile_service):
        stats = profile_service.get_global_stats()
        assert stats["total_users"] == 0
        assert stats["average_points"] == 0
