"""User-related Pydantic schemas."""

from pydantic import BaseModel, ConfigDict, Field


class UserSummary(BaseModel):
    """Public projection of a user embedded in other payloads."""

    id: int
    handle: str
    display_name: str

    model_config = ConfigDict(from_attributes=True)


class UserListResponse(BaseModel):
    """List of users with a convenience count."""

    users: list[UserSummary]
    count: int


class FollowToggleResponse(BaseModel):
    """Result of toggling a follow edge."""

    is_following: bool
    counter_delta: int = Field(..., description="+1 when followed, -1 when unfollowed")


class FollowStatusResponse(BaseModel):
    """Follow relationship between the caller and a profile."""

    is_following: bool
    followers_count: int
    followings_count: int
