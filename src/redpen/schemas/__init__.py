# src/redpen/schemas/__init__.py
"""Pydantic schemas for request validation and response serialization."""

from .critique import CritiqueCreate, CritiqueResponse, LikeToggleResponse
from .post import (
    BestCritiqueRequest,
    FeedResponse,
    PaymentHistoryItem,
    PaymentHistoryResponse,
    PaymentStatusResponse,
    PostCreate,
    PostResponse,
    RepostToggleResponse,
)
from .user import FollowStatusResponse, FollowToggleResponse, UserListResponse, UserSummary

__all__ = [
    "BestCritiqueRequest",
    "CritiqueCreate",
    "CritiqueResponse",
    "FeedResponse",
    "FollowStatusResponse",
    "FollowToggleResponse",
    "LikeToggleResponse",
    "PaymentHistoryItem",
    "PaymentHistoryResponse",
    "PaymentStatusResponse",
    "PostCreate",
    "PostResponse",
    "RepostToggleResponse",
    "UserListResponse",
    "UserSummary",
]
