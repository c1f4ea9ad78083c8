"""Critique-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from redpen.core.settings import settings

from .user import UserSummary


class CritiqueCreate(BaseModel):
    """Schema for submitting a critique on a post."""

    body: str = Field(
        ...,
        min_length=1,
        max_length=settings.critique_max_length,
        description="Critique text",
    )
    image_path: str | None = Field(
        None,
        max_length=255,
        description="Reference to an already uploaded image",
    )


class CritiqueResponse(BaseModel):
    """Schema for critique information returned by the API."""

    id: int
    post_id: int
    body: str
    image_path: str | None
    created_at: datetime
    like_count: int
    author: UserSummary

    model_config = ConfigDict(from_attributes=True)


class LikeToggleResponse(BaseModel):
    """Result of toggling a like on a critique."""

    is_liked: bool
    counter_delta: int
    like_count: int
