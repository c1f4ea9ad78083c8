# src/redpen/models/__init__.py
"""SQLAlchemy models for the Redpen application."""

from .critique import Critique, CritiqueLike
from .post import Post, Repost, RewardState
from .user import Follow, User

__all__ = [
    "Critique", "CritiqueLike",
    "Post", "Repost", "RewardState",
    "Follow", "User",
]
