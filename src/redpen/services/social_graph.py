"""Follow graph queries and the follow toggle."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from redpen.errors import InvalidTarget, NotFound
from redpen.models import Follow, User
from redpen.services.toggle import ToggleResult, follow_toggle

__all__ = [
    "FollowStatus",
    "find_by_handle",
    "follow_status",
    "followee_ids",
    "followees_of",
    "followers_of",
    "is_following",
    "toggle_follow",
]


@dataclass(frozen=True)
class FollowStatus:
    """Relationship summary between a viewer and a profile."""

    is_following: bool
    followers_count: int
    followings_count: int


def find_by_handle(db: Session, handle: str) -> User:
    """Return the user with ``handle`` or raise :class:`NotFound`."""
    user = db.execute(select(User).where(User.handle == handle)).scalar_one_or_none()
    if user is None:
        raise NotFound(f"User @{handle} not found")
    return user


def is_following(db: Session, follower_id: int, followee_id: int) -> bool:
    """Return True if ``follower_id`` follows ``followee_id``."""
    return follow_toggle.is_active(db, follower_id, followee_id)


def followee_ids(db: Session, user_id: int) -> set[int]:
    """Return the ids of everyone ``user_id`` follows."""
    stmt = select(Follow.followee_id).where(Follow.follower_id == user_id)
    return set(db.execute(stmt).scalars())


def followers_of(db: Session, user_id: int) -> Sequence[User]:
    """Return users following ``user_id``, oldest edge first."""
    stmt = (
        select(User)
        .join(Follow, Follow.follower_id == User.id)
        .where(Follow.followee_id == user_id)
        .order_by(Follow.created_at, User.id)
    )
    return db.execute(stmt).scalars().all()


def followees_of(db: Session, user_id: int) -> Sequence[User]:
    """Return users that ``user_id`` follows, oldest edge first."""
    stmt = (
        select(User)
        .join(Follow, Follow.followee_id == User.id)
        .where(Follow.follower_id == user_id)
        .order_by(Follow.created_at, User.id)
    )
    return db.execute(stmt).scalars().all()


def toggle_follow(db: Session, actor: User, handle: str) -> ToggleResult:
    """Follow or unfollow the user behind ``handle``."""
    target = find_by_handle(db, handle)
    if target.id == actor.id:
        raise InvalidTarget("You cannot follow yourself")
    return follow_toggle.toggle(db, actor.id, target.id)


def follow_status(db: Session, viewer: User | None, handle: str) -> FollowStatus:
    """Summarize the follow relationship between ``viewer`` and ``handle``."""
    target = find_by_handle(db, handle)
    followers_count = db.execute(
        select(func.count()).select_from(Follow).where(Follow.followee_id == target.id)
    ).scalar_one()
    followings_count = db.execute(
        select(func.count()).select_from(Follow).where(Follow.follower_id == target.id)
    ).scalar_one()
    following = viewer is not None and is_following(db, viewer.id, target.id)
    return FollowStatus(
        is_following=following,
        followers_count=int(followers_count),
        followings_count=int(followings_count),
    )
