# src/redpen/api/v1/endpoints/posts.py
"""Post, feed and reward endpoints for the Redpen API."""

from fastapi import APIRouter, status

from redpen.errors import RedpenError
from redpen.schemas.critique import CritiqueCreate, CritiqueResponse
from redpen.schemas.post import (
    BestCritiqueRequest,
    FeedResponse,
    PostCreate,
    PostResponse,
    RepostToggleResponse,
)
from redpen.services import escrow, feed, post_service

from ..dependencies import (
    CurrentUserDep,
    OptionalUserDep,
    PaymentProcessorDep,
    SessionDep,
    to_http_exception,
)

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("/timeline", response_model=FeedResponse)
async def get_timeline(db: SessionDep, current_user: CurrentUserDep) -> FeedResponse:
    """Posts and reposts by the caller and everyone they follow."""
    views = feed.compose_feed(db, current_user, feed.FeedScope.TIMELINE)
    return FeedResponse(posts=[post_service.to_post_response(view) for view in views])


@router.get("/recommended", response_model=FeedResponse)
async def get_recommended(db: SessionDep, viewer: OptionalUserDep) -> FeedResponse:
    """Posts and reposts from everyone; available without signing in."""
    views = feed.compose_feed(db, viewer, feed.FeedScope.RECOMMENDED)
    return FeedResponse(posts=[post_service.to_post_response(view) for view in views])


@router.post("/", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    post_data: PostCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
    processor: PaymentProcessorDep,
) -> PostResponse:
    """Publish a post, capturing its reward first when one is offered.

    Raises:
        HTTPException: 422 on invalid content or reward, 402 when the capture
            fails, 500 when a captured reward could not be recorded.
    """
    try:
        post = await post_service.create_post(
            db,
            processor,
            author=current_user,
            body=post_data.body,
            image_path=post_data.image_path,
            reward_amount=post_data.reward_amount,
            payment_method_token=post_data.payment_method_token,
        )
        view = feed.show_post(db, post.id, current_user)
    except RedpenError as err:
        raise to_http_exception(err) from err
    return post_service.to_post_response(view)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: int, db: SessionDep, viewer: OptionalUserDep) -> PostResponse:
    """Get a specific post by ID."""
    try:
        view = feed.show_post(db, post_id, viewer)
    except RedpenError as err:
        raise to_http_exception(err) from err
    return post_service.to_post_response(view)


@router.delete("/{post_id}")
async def delete_post(post_id: int, current_user: CurrentUserDep, db: SessionDep) -> dict[str, str]:
    """Delete one of the caller's own posts."""
    try:
        post_service.delete_post(db, post_id, current_user)
    except RedpenError as err:
        raise to_http_exception(err) from err
    return {"status": "deleted"}


@router.post("/{post_id}/repost", response_model=RepostToggleResponse)
async def toggle_repost(
    post_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> RepostToggleResponse:
    """Repost a post, or undo an existing repost."""
    try:
        result = post_service.toggle_repost(db, post_id, current_user)
    except RedpenError as err:
        raise to_http_exception(err) from err
    return RepostToggleResponse(is_reposted=result.active, counter_delta=result.counter_delta)


@router.post("/{post_id}/best-critique", response_model=PostResponse)
async def select_best_critique(
    post_id: int,
    payload: BestCritiqueRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    processor: PaymentProcessorDep,
) -> PostResponse:
    """Choose the best critique and release the reward to its author.

    A failed payout answers 502 while the choice itself stays recorded; the
    author retries through ``POST /posts/{post_id}/settle``.
    """
    try:
        await escrow.select_and_settle(
            db,
            processor,
            post_id,
            payload.critique_id,
            current_user.id,
        )
        view = feed.show_post(db, post_id, current_user)
    except RedpenError as err:
        raise to_http_exception(err) from err
    return post_service.to_post_response(view)


@router.post("/{post_id}/settle", response_model=PostResponse)
async def settle_reward(
    post_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    processor: PaymentProcessorDep,
) -> PostResponse:
    """Retry the payout for a post whose best critique is already chosen."""
    try:
        await escrow.settle(db, processor, post_id, requester_id=current_user.id)
        view = feed.show_post(db, post_id, current_user)
    except RedpenError as err:
        raise to_http_exception(err) from err
    return post_service.to_post_response(view)


@router.get("/{post_id}/critiques", response_model=list[CritiqueResponse])
async def list_critiques(post_id: int, db: SessionDep) -> list[CritiqueResponse]:
    """List critiques of a post, oldest first."""
    try:
        critiques = post_service.list_critiques(db, post_id)
    except RedpenError as err:
        raise to_http_exception(err) from err
    return [post_service.to_critique_response(critique) for critique in critiques]


@router.post(
    "/{post_id}/critiques",
    response_model=CritiqueResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_critique(
    post_id: int,
    payload: CritiqueCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CritiqueResponse:
    """Submit a critique on a post."""
    try:
        critique = post_service.create_critique(
            db,
            post_id,
            current_user,
            payload.body,
            payload.image_path,
        )
    except RedpenError as err:
        raise to_http_exception(err) from err
    return post_service.to_critique_response(critique)


@router.delete("/{post_id}/critiques/{critique_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_critique(
    post_id: int,
    critique_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> None:
    """Delete one of the caller's own critiques."""
    try:
        post_service.delete_critique(db, post_id, critique_id, current_user)
    except RedpenError as err:
        raise to_http_exception(err) from err
