# src/redpen/models/critique.py
"""Models for critiques submitted against posts and their likes."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from redpen.db.session import Base
from redpen.db.time import utcnow

if TYPE_CHECKING:
    from .post import Post
    from .user import User


class Critique(Base):
    """Feedback on a post; one per post may be chosen as best."""

    __tablename__ = "critique"
    __table_args__ = (
        Index("ix_critique_post_created", "post_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("post.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        nullable=False,
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    image_path: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    # Denormalized; kept in step with critique_like rows by the toggle engine.
    like_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    author: Mapped[User] = relationship("User", lazy="joined")
    post: Mapped[Post] = relationship(
        "Post",
        back_populates="critiques",
        foreign_keys=[post_id],
    )


class CritiqueLike(Base):
    """Per-user like on a critique."""

    __tablename__ = "critique_like"
    __table_args__ = (
        Index("ix_critique_like_user_id", "user_id"),
    )

    # Composite primary key prevents duplicate likes from the same user.
    critique_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("critique.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
