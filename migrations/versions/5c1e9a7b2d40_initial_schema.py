"""initial schema

Revision ID: 5c1e9a7b2d40
Revises:
Create Date: 2026-10-19 09:12:44.318205

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e9a7b2d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

REWARD_STATES = (
    "no_reward",
    "captured",
    "best_critique_chosen",
    "settled",
    "capture_failed",
)


def upgrade() -> None:
    """Create accounts, follows, posts, critiques, likes and reposts."""
    op.create_table(
        "user_account",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("handle", sa.String(length=50), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("handle"),
    )
    op.create_table(
        "follow",
        sa.Column("follower_id", sa.Integer(), nullable=False),
        sa.Column("followee_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["follower_id"], ["user_account.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["followee_id"], ["user_account.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("follower_id", "followee_id"),
    )
    op.create_index("ix_follow_followee_id", "follow", ["followee_id"])

    # best_critique_id gets its foreign key once the critique table exists.
    op.create_table(
        "post",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("author_id", sa.Integer(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("image_path", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reward_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_reference", sa.String(length=255), nullable=True),
        sa.Column("best_critique_id", sa.Integer(), nullable=True),
        sa.Column("reward_settled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "reward_state",
            sa.Enum(*REWARD_STATES, name="rewardstate", native_enum=False, length=32),
            nullable=False,
            server_default="no_reward",
        ),
        sa.CheckConstraint("reward_amount >= 0", name="ck_post_reward_amount_non_negative"),
        sa.CheckConstraint(
            "NOT reward_settled OR best_critique_id IS NOT NULL",
            name="ck_post_settled_requires_best_critique",
        ),
        sa.ForeignKeyConstraint(["author_id"], ["user_account.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("payment_reference"),
    )
    op.create_index("ix_post_author_created", "post", ["author_id", "created_at"])
    op.create_index("ix_post_created_at", "post", ["created_at"])

    op.create_table(
        "critique",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("post_id", sa.Integer(), nullable=False),
        sa.Column("author_id", sa.Integer(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("image_path", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("like_count", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["author_id"], ["user_account.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_critique_post_created", "critique", ["post_id", "created_at"])

    with op.batch_alter_table("post") as batch_op:
        batch_op.create_foreign_key(
            "fk_post_best_critique_id",
            "critique",
            ["best_critique_id"],
            ["id"],
        )

    op.create_table(
        "critique_like",
        sa.Column("critique_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["critique_id"], ["critique.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["user_account.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("critique_id", "user_id"),
    )
    op.create_index("ix_critique_like_user_id", "critique_like", ["user_id"])

    op.create_table(
        "repost",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("post_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user_account.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "post_id"),
    )
    op.create_index("ix_repost_post_id", "repost", ["post_id"])
    op.create_index("ix_repost_user_created", "repost", ["user_id", "created_at"])


def downgrade() -> None:
    """Drop every table created by this revision."""
    op.drop_index("ix_repost_user_created", table_name="repost")
    op.drop_index("ix_repost_post_id", table_name="repost")
    op.drop_table("repost")
    op.drop_index("ix_critique_like_user_id", table_name="critique_like")
    op.drop_table("critique_like")

    with op.batch_alter_table("post") as batch_op:
        batch_op.drop_constraint("fk_post_best_critique_id", type_="foreignkey")

    op.drop_index("ix_critique_post_created", table_name="critique")
    op.drop_table("critique")
    op.drop_index("ix_post_created_at", table_name="post")
    op.drop_index("ix_post_author_created", table_name="post")
    op.drop_table("post")
    op.drop_index("ix_follow_followee_id", table_name="follow")
    op.drop_table("follow")
    op.drop_table("user_account")
