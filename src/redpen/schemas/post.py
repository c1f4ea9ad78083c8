# src/redpen/schemas/post.py
"""Post, feed and reward related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from redpen.core.settings import settings
from redpen.models.post import RewardState

from .critique import CritiqueResponse
from .user import UserSummary


class PostCreate(BaseModel):
    """Schema for creating a new post, optionally with a reward."""

    body: str = Field(
        ...,
        min_length=1,
        max_length=settings.post_max_length,
        description="Post text",
    )
    image_path: str | None = Field(
        None,
        max_length=255,
        description="Reference to an already uploaded image",
    )
    reward_amount: int | None = Field(
        None,
        ge=0,
        description="Reward in minor currency units; 0 or omitted for none",
    )
    payment_method_token: str | None = Field(
        None,
        description="Processor token for the payment method funding the reward",
    )


class PostResponse(BaseModel):
    """Schema for post information returned by the API."""

    id: int
    body: str
    image_path: str | None
    image_url: str | None
    created_at: datetime
    display_at: datetime
    author: UserSummary
    reposts_count: int
    critiques_count: int
    is_reposted: bool
    reposted_by_id: int | None = None
    reward_amount: int
    reward_state: RewardState
    payment_reference: str | None
    best_critique_id: int | None
    reward_settled: bool
    critique_preview: CritiqueResponse | None = None


class FeedResponse(BaseModel):
    """Ordered list of posts for a feed request."""

    posts: list[PostResponse]


class RepostToggleResponse(BaseModel):
    """Result of toggling a repost."""

    is_reposted: bool
    counter_delta: int


class BestCritiqueRequest(BaseModel):
    """Schema for choosing the best critique of a rewarded post."""

    critique_id: int = Field(..., ge=1)


class PaymentStatusResponse(BaseModel):
    """Reconciliation status of a payment reference."""

    reference: str
    processor_status: str
    recorded: bool
    post_id: int | None
    reward_amount: int
    reward_settled: bool
    reward_state: RewardState | None


class PaymentHistoryItem(BaseModel):
    """One rewarded post in the caller's payment history."""

    id: int
    body: str
    reward_amount: int
    payment_reference: str
    reward_state: RewardState
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentHistoryResponse(BaseModel):
    """Caller's rewarded posts, newest first."""

    payments: list[PaymentHistoryItem]
