"""Create gamification tables

Revision ID: 5c2e8d41a7b0
Revises:
Create Date: 2026-10-19 09:12:33.481205

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5c2e8d41a7b0'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create user_points, point_transactions, badges and user_badges."""

    # --- user_points ---
    op.create_table(
        "user_points",
        sa.Column("user_id", sa.String(128), primary_key=True),
        sa.Column("total_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("lifetime_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("level", sa.Integer, nullable=False, server_default="1"),
        sa.Column("streak_current", sa.Integer, nullable=False, server_default="0"),
        sa.Column("streak_longest", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("articles_read", sa.Integer, nullable=False, server_default="0"),
        sa.Column("articles_liked", sa.Integer, nullable=False, server_default="0"),
        sa.Column("comments_posted", sa.Integer, nullable=False, server_default="0"),
        sa.Column("comments_liked", sa.Integer, nullable=False, server_default="0"),
        sa.Column("shares_completed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reels_watched", sa.Integer, nullable=False, server_default="0"),
        sa.Column("daily_logins", sa.Integer, nullable=False, server_default="0"),
        sa.Column("referrals", sa.Integer, nullable=False, server_default="0"),
        sa.Column("category_stats", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("version_id", sa.Integer, nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("ix_user_points_total", "user_points", ["total_points"])
    op.create_index("ix_user_points_lifetime", "user_points", ["lifetime_points"])
    op.create_index("ix_user_points_level", "user_points", ["level"])
    op.create_index("ix_user_points_streak_current", "user_points", ["streak_current"])
    op.create_index("ix_user_points_streak_longest", "user_points", ["streak_longest"])

    # --- point_transactions (append-only ledger) ---
    op.create_table(
        "point_transactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("points", sa.Integer, nullable=False),
        sa.Column("action", sa.String(40), nullable=False),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("ix_point_tx_user_time", "point_transactions", ["user_id", "created_at"])
    op.create_index("ix_point_tx_action_time", "point_transactions", ["action", "created_at"])
    op.create_index("ix_point_tx_created", "point_transactions", ["created_at"])

    # --- badges ---
    op.create_table(
        "badges",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("name_ar", sa.String(100), nullable=True),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("description_ar", sa.Text, nullable=True),
        sa.Column("icon", sa.String(50), nullable=False),
        sa.Column("color", sa.String(7), nullable=False, server_default="#FFD700"),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("tier", sa.String(20), nullable=False, server_default="bronze"),
        sa.Column("requirement_type", sa.String(30), nullable=False),
        sa.Column("requirement_value", sa.Integer, nullable=False),
        sa.Column("requirement_category", sa.String(50), nullable=True),
        sa.Column("points_awarded", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index("ix_badges_category_tier", "badges", ["category", "tier"])
    op.create_index("ix_badges_active", "badges", ["is_active"])
    op.create_index("ix_badges_requirement_type", "badges", ["requirement_type"])

    # --- user_badges ---
    op.create_table(
        "user_badges",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column(
            "badge_id",
            sa.Integer,
            sa.ForeignKey("badges.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "earned_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column("is_displayed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("notified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),
    )
    op.create_index("ix_user_badges_earned", "user_badges", ["earned_at"])
    op.create_index("ix_user_badges_user_displayed", "user_badges", ["user_id", "is_displayed"])


def downgrade() -> None:
    """Drop all gamification tables."""
    op.drop_table("user_badges")
    op.drop_table("badges")
    op.drop_table("point_transactions")
    op.drop_table("user_points")
