# src/redpen/models/user.py
"""SQLAlchemy models for user identities and the follow graph."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from redpen.db.session import Base
from redpen.db.time import utcnow


class User(Base):
    """Registered account addressed publicly by its handle."""

    __tablename__ = "user_account"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    handle: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)


class Follow(Base):
    """Directed edge from follower to followee."""

    __tablename__ = "follow"
    __table_args__ = (
        Index("ix_follow_followee_id", "followee_id"),
    )

    # Composite primary key prevents duplicate edges between the same pair.
    follower_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        primary_key=True,
    )
    followee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
