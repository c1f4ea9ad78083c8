# src/redpen/models/post.py
"""SQLAlchemy models for posts, their reward state and reposts."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from redpen.db.session import Base
from redpen.db.time import utcnow

if TYPE_CHECKING:
    from .critique import Critique
    from .user import User


class RewardState(str, enum.Enum):
    """Escrow lifecycle of the reward attached to a post."""

    NO_REWARD = "no_reward"
    CAPTURED = "captured"
    BEST_CRITIQUE_CHOSEN = "best_critique_chosen"
    SETTLED = "settled"
    # Only ever reported to callers; a post row is never stored in this state.
    CAPTURE_FAILED = "capture_failed"


class Post(Base):
    """Short post, optionally carrying a held reward for the best critique."""

    __tablename__ = "post"
    __table_args__ = (
        CheckConstraint("reward_amount >= 0", name="ck_post_reward_amount_non_negative"),
        CheckConstraint(
            "NOT reward_settled OR best_critique_id IS NOT NULL",
            name="ck_post_settled_requires_best_critique",
        ),
        Index("ix_post_author_created", "author_id", "created_at"),
        Index("ix_post_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        nullable=False,
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    # Reference into external media storage; the file itself lives elsewhere.
    image_path: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    # Reward escrow fields; mutated only by services.escrow.
    reward_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payment_reference: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
    )
    best_critique_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey(
            "critique.id",
            use_alter=True,
            name="fk_post_best_critique_id",
        ),
        nullable=True,
    )
    reward_settled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reward_state: Mapped[RewardState] = mapped_column(
        Enum(
            RewardState,
            native_enum=False,
            length=32,
            values_callable=lambda states: [state.value for state in states],
        ),
        nullable=False,
        default=RewardState.NO_REWARD,
    )

    author: Mapped[User] = relationship("User", lazy="joined")
    critiques: Mapped[list[Critique]] = relationship(
        "Critique",
        back_populates="post",
        foreign_keys="Critique.post_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    reposts: Mapped[list[Repost]] = relationship(
        "Repost",
        back_populates="post",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Repost(Base):
    """A user re-sharing someone's post into their followers' timelines."""

    __tablename__ = "repost"
    __table_args__ = (
        Index("ix_repost_post_id", "post_id"),
        Index("ix_repost_user_created", "user_id", "created_at"),
    )

    # Composite primary key prevents the same user reposting a post twice.
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        primary_key=True,
    )
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("post.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    post: Mapped[Post] = relationship("Post", back_populates="reposts")
