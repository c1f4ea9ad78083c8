"""Feed composition: merge posts and reposts into one recency-ranked feed.

A feed is built from two streams for the users in scope:

* posts they authored, shown at the post's creation time;
* posts they reposted, shown at the repost's time, so a repost bumps a post.

Both streams are merged and collapsed per post, keeping the reference with the
latest display time, then sorted newest first and cut to the feed limit.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from redpen.core.settings import settings
from redpen.db.time import as_utc
from redpen.errors import NotFound
from redpen.models import Critique, Post, Repost, User
from redpen.services.social_graph import find_by_handle, followee_ids

logger = logging.getLogger(__name__)


class FeedScope(str, Enum):
    """Whose activity a feed draws from."""

    TIMELINE = "timeline"
    RECOMMENDED = "recommended"


@dataclass(frozen=True)
class FeedEntry:
    """One feed-eligible reference to a post."""

    post: Post
    display_at: datetime
    reposted_by_id: int | None = None


@dataclass(frozen=True)
class PostView:
    """A post as presented to a particular viewer."""

    post: Post
    display_at: datetime
    reposted_by_id: int | None
    reposts_count: int
    critiques_count: int
    is_reposted: bool
    critique_preview: Critique | None = None


def merge_feed_entries(entries: Iterable[FeedEntry], limit: int) -> list[FeedEntry]:
    """Deduplicate entries by post and rank them newest first.

    When several entries reference the same post, the one with the latest
    ``display_at`` represents it. Ties on time are broken by the higher post id
    so the order is stable across requests.
    """
    latest: dict[int, FeedEntry] = {}
    for entry in entries:
        current = latest.get(entry.post.id)
        if current is None or as_utc(entry.display_at) > as_utc(current.display_at):
            latest[entry.post.id] = entry

    ranked = sorted(
        latest.values(),
        key=lambda entry: (as_utc(entry.display_at), entry.post.id),
        reverse=True,
    )
    return ranked[:limit]


def _direct_entries(db: Session, author_ids: set[int] | None, window: int) -> list[FeedEntry]:
    stmt = select(Post)
    if author_ids is not None:
        stmt = stmt.where(Post.author_id.in_(author_ids))
    stmt = stmt.order_by(Post.created_at.desc(), Post.id.desc()).limit(window)
    return [
        FeedEntry(post=post, display_at=as_utc(post.created_at))
        for post in db.execute(stmt).scalars()
    ]


def _repost_entries(db: Session, author_ids: set[int] | None, window: int) -> list[FeedEntry]:
    stmt = select(Repost, Post).join(Post, Repost.post_id == Post.id)
    if author_ids is not None:
        stmt = stmt.where(Repost.user_id.in_(author_ids))
    stmt = stmt.order_by(Repost.created_at.desc(), Repost.post_id.desc()).limit(window)
    return [
        FeedEntry(post=post, display_at=as_utc(repost.created_at), reposted_by_id=repost.user_id)
        for repost, post in db.execute(stmt).all()
    ]


def _count_by_post(db: Session, column, post_ids: list[int]) -> dict[int, int]:  # noqa: ANN001
    stmt = select(column, func.count()).where(column.in_(post_ids)).group_by(column)
    return {post_id: int(count) for post_id, count in db.execute(stmt).all()}


def _earliest_critiques(db: Session, post_ids: list[int]) -> dict[int, Critique]:
    ranked = (
        select(
            Critique.id.label("critique_id"),
            func.row_number()
            .over(partition_by=Critique.post_id, order_by=(Critique.created_at, Critique.id))
            .label("position"),
        )
        .where(Critique.post_id.in_(post_ids))
        .subquery()
    )
    stmt = (
        select(Critique)
        .join(ranked, ranked.c.critique_id == Critique.id)
        .where(ranked.c.position == 1)
    )
    return {critique.post_id: critique for critique in db.execute(stmt).scalars()}


def annotate(
    db: Session,
    entries: list[FeedEntry],
    viewer: User | None,
    *,
    with_preview: bool,
) -> list[PostView]:
    """Attach counts, the viewer's repost flag and optionally a critique preview."""
    if not entries:
        return []

    post_ids = [entry.post.id for entry in entries]
    repost_counts = _count_by_post(db, Repost.post_id, post_ids)
    critique_counts = _count_by_post(db, Critique.post_id, post_ids)

    viewer_reposts: set[int] = set()
    if viewer is not None:
        viewer_reposts = set(
            db.execute(
                select(Repost.post_id).where(
                    Repost.user_id == viewer.id,
                    Repost.post_id.in_(post_ids),
                )
            ).scalars()
        )

    previews = _earliest_critiques(db, post_ids) if with_preview else {}

    return [
        PostView(
            post=entry.post,
            display_at=entry.display_at,
            reposted_by_id=entry.reposted_by_id,
            reposts_count=repost_counts.get(entry.post.id, 0),
            critiques_count=critique_counts.get(entry.post.id, 0),
            is_reposted=entry.post.id in viewer_reposts,
            critique_preview=previews.get(entry.post.id),
        )
        for entry in entries
    ]


def compose_feed(
    db: Session,
    viewer: User | None,
    scope: FeedScope,
    *,
    limit: int | None = None,
) -> list[PostView]:
    """Build the viewer's feed for ``scope``.

    ``TIMELINE`` covers the viewer and everyone they follow; ``RECOMMENDED``
    covers every user. Anonymous viewers only get ``RECOMMENDED``.
    """
    if viewer is None and scope is FeedScope.TIMELINE:
        logger.debug("Anonymous timeline request served as recommended feed")
        scope = FeedScope.RECOMMENDED

    author_ids: set[int] | None = None
    if scope is FeedScope.TIMELINE and viewer is not None:
        author_ids = followee_ids(db, viewer.id) | {viewer.id}

    if limit is None:
        limit = settings.feed_limit
    if limit <= 0:
        return []

    window = max(settings.feed_window, limit)
    entries = _direct_entries(db, author_ids, window) + _repost_entries(db, author_ids, window)
    ranked = merge_feed_entries(entries, limit)
    return annotate(db, ranked, viewer, with_preview=True)


def show_post(db: Session, post_id: int, viewer: User | None) -> PostView:
    """Return a single post view without a critique preview."""
    post = db.get(Post, post_id)
    if post is None:
        raise NotFound(f"Post {post_id} not found")
    entry = FeedEntry(post=post, display_at=as_utc(post.created_at))
    return annotate(db, [entry], viewer, with_preview=False)[0]


def user_posts(db: Session, handle: str, viewer: User | None) -> list[PostView]:
    """Return posts authored by ``handle``, newest first."""
    author = find_by_handle(db, handle)
    stmt = (
        select(Post)
        .where(Post.author_id == author.id)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .limit(settings.feed_limit)
    )
    entries = [
        FeedEntry(post=post, display_at=as_utc(post.created_at))
        for post in db.execute(stmt).scalars()
    ]
    return annotate(db, entries, viewer, with_preview=False)
