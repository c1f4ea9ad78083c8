# src/redpen/api/v1/endpoints/users.py
"""User profile and follow endpoints for the Redpen API."""

from fastapi import APIRouter

from redpen.errors import RedpenError
from redpen.schemas.post import FeedResponse
from redpen.schemas.user import (
    FollowStatusResponse,
    FollowToggleResponse,
    UserListResponse,
    UserSummary,
)
from redpen.services import feed, post_service, social_graph

from ..dependencies import CurrentUserDep, OptionalUserDep, SessionDep, to_http_exception

router = APIRouter(prefix="/users", tags=["users"])


def _user_list(users) -> UserListResponse:  # noqa: ANN001
    summaries = [UserSummary.model_validate(user) for user in users]
    return UserListResponse(users=summaries, count=len(summaries))


@router.get("/{handle}/posts", response_model=FeedResponse)
async def get_user_posts(handle: str, db: SessionDep, viewer: OptionalUserDep) -> FeedResponse:
    """Posts authored by a user, newest first."""
    try:
        views = feed.user_posts(db, handle, viewer)
    except RedpenError as err:
        raise to_http_exception(err) from err
    return FeedResponse(posts=[post_service.to_post_response(view) for view in views])


@router.post("/{handle}/follow", response_model=FollowToggleResponse)
async def toggle_follow(
    handle: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> FollowToggleResponse:
    """Follow a user, or unfollow if already following."""
    try:
        result = social_graph.toggle_follow(db, current_user, handle)
    except RedpenError as err:
        raise to_http_exception(err) from err
    db.commit()
    return FollowToggleResponse(is_following=result.active, counter_delta=result.counter_delta)


@router.get("/{handle}/followers", response_model=UserListResponse)
async def get_followers(handle: str, db: SessionDep) -> UserListResponse:
    """Users following ``handle``."""
    try:
        user = social_graph.find_by_handle(db, handle)
    except RedpenError as err:
        raise to_http_exception(err) from err
    return _user_list(social_graph.followers_of(db, user.id))


@router.get("/{handle}/followings", response_model=UserListResponse)
async def get_followings(handle: str, db: SessionDep) -> UserListResponse:
    """Users that ``handle`` follows."""
    try:
        user = social_graph.find_by_handle(db, handle)
    except RedpenError as err:
        raise to_http_exception(err) from err
    return _user_list(social_graph.followees_of(db, user.id))


@router.get("/{handle}/follow-status", response_model=FollowStatusResponse)
async def get_follow_status(
    handle: str,
    db: SessionDep,
    viewer: OptionalUserDep,
) -> FollowStatusResponse:
    """Whether the caller follows ``handle``, plus the profile's follow counts."""
    try:
        summary = social_graph.follow_status(db, viewer, handle)
    except RedpenError as err:
        raise to_http_exception(err) from err
    return FollowStatusResponse(
        is_following=summary.is_following,
        followers_count=summary.followers_count,
        followings_count=summary.followings_count,
    )
