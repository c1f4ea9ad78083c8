"""Service-level helpers for posts, critiques, reposts and likes."""
from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from redpen.core.settings import settings
from redpen.errors import Conflict, Forbidden, InvalidTarget, NotFound, ValidationFailed
from redpen.models import Critique, Post, RewardState, User
from redpen.schemas.critique import CritiqueResponse
from redpen.schemas.post import PostResponse
from redpen.schemas.user import UserSummary
from redpen.services.escrow import PostDraft, request_reward
from redpen.services.feed import PostView
from redpen.services.payments import PaymentProcessor
from redpen.services.toggle import ToggleResult, critique_like_toggle, repost_toggle

logger = logging.getLogger(__name__)


def _clean_body(body: str | None, *, max_length: int) -> str:
    text = (body or "").strip()
    if not text:
        raise ValidationFailed({"body": "must not be empty"})
    if len(text) > max_length:
        raise ValidationFailed({"body": f"must be at most {max_length} characters"})
    return text


def _clean_image_path(image_path: str | None) -> str | None:
    if image_path is None:
        return None
    path = image_path.strip()
    if not path:
        return None
    if len(path) > 255 or path.startswith("/") or ".." in path.split("/"):
        raise ValidationFailed({"image_path": "must be a relative storage path"})
    return path


async def create_post(
    db: Session,
    processor: PaymentProcessor,
    *,
    author: User,
    body: str,
    image_path: str | None = None,
    reward_amount: int | None = None,
    payment_method_token: str | None = None,
) -> Post:
    """Validate post content and hand it to the reward escrow for persistence.

    Args:
        db: Database session.
        processor: Payment processor used when a reward is offered.
        author: Authenticated author.
        body: Post text.
        image_path: Optional reference into media storage.
        reward_amount: Reward in minor units, ``None``/``0`` for none.
        payment_method_token: Processor token funding the reward.

    Returns:
        The persisted post.
    """
    draft = PostDraft(
        author_id=author.id,
        body=_clean_body(body, max_length=settings.post_max_length),
        image_path=_clean_image_path(image_path),
    )
    return await request_reward(db, processor, draft, reward_amount, payment_method_token)


def delete_post(db: Session, post_id: int, requester: User) -> None:
    """Delete a post owned by ``requester``; critiques, likes and reposts cascade."""
    post = db.get(Post, post_id)
    if post is None:
        raise NotFound(f"Post {post_id} not found")
    if post.author_id != requester.id:
        raise Forbidden("Only the author can delete this post")
    if post.reward_state in (RewardState.CAPTURED, RewardState.BEST_CRITIQUE_CHOSEN):
        raise Conflict("Posts holding an unsettled reward cannot be deleted")

    db.execute(
        delete(Post)
        .where(Post.id == post.id)
        .execution_options(synchronize_session=False)
    )
    db.expunge(post)
    db.commit()
    logger.info("Post %s deleted by user %s", post_id, requester.id)


def list_critiques(db: Session, post_id: int) -> list[Critique]:
    """Return critiques for a post, oldest first."""
    if db.get(Post, post_id) is None:
        raise NotFound(f"Post {post_id} not found")
    stmt = (
        select(Critique)
        .where(Critique.post_id == post_id)
        .order_by(Critique.created_at, Critique.id)
    )
    return list(db.execute(stmt).scalars())


def create_critique(
    db: Session,
    post_id: int,
    author: User,
    body: str,
    image_path: str | None = None,
) -> Critique:
    """Attach a critique to a post. Self critiques are allowed."""
    if db.get(Post, post_id) is None:
        raise NotFound(f"Post {post_id} not found")
    critique = Critique(
        post_id=post_id,
        author_id=author.id,
        body=_clean_body(body, max_length=settings.critique_max_length),
        image_path=_clean_image_path(image_path),
    )
    db.add(critique)
    db.commit()
    db.refresh(critique)
    return critique


def delete_critique(db: Session, post_id: int, critique_id: int, requester: User) -> None:
    """Delete the requester's own critique from a post."""
    critique = db.get(Critique, critique_id)
    if critique is None or critique.post_id != post_id:
        raise NotFound(f"Critique {critique_id} not found on post {post_id}")
    if critique.author_id != requester.id:
        raise Forbidden("Only the author can delete this critique")

    post = db.get(Post, post_id)
    if post is not None and post.best_critique_id == critique.id:
        raise Conflict("The chosen best critique cannot be deleted")

    db.execute(
        delete(Critique)
        .where(Critique.id == critique.id)
        .execution_options(synchronize_session=False)
    )
    db.expunge(critique)
    db.commit()


def toggle_repost(db: Session, post_id: int, user: User) -> ToggleResult:
    """Repost or un-repost a post."""
    try:
        result = repost_toggle.toggle(db, user.id, post_id)
    except InvalidTarget as exc:
        raise NotFound(f"Post {post_id} not found") from exc
    db.commit()
    return result


def toggle_critique_like(db: Session, critique_id: int, user: User) -> tuple[ToggleResult, int]:
    """Like or unlike a critique; returns the toggle result and new like count."""
    critique = db.get(Critique, critique_id)
    if critique is None:
        raise NotFound(f"Critique {critique_id} not found")
    if critique.author_id == user.id:
        raise InvalidTarget("You cannot like your own critique")

    result = critique_like_toggle.toggle(db, user.id, critique_id)
    db.commit()
    db.refresh(critique)
    return result, critique.like_count


def image_url(image_path: str | None) -> str | None:
    """Return the public URL for a stored image reference."""
    if not image_path:
        return None
    return f"{settings.media_base_url.rstrip('/')}/{image_path}"


def to_critique_response(critique: Critique) -> CritiqueResponse:
    """Convert a Critique ORM instance to an API schema."""
    return CritiqueResponse(
        id=critique.id,
        post_id=critique.post_id,
        body=critique.body,
        image_path=critique.image_path,
        created_at=critique.created_at,
        like_count=critique.like_count,
        author=UserSummary.model_validate(critique.author),
    )


def to_post_response(view: PostView) -> PostResponse:
    """Convert an annotated post view to an API schema."""
    post = view.post
    preview = view.critique_preview
    return PostResponse(
        id=post.id,
        body=post.body,
        image_path=post.image_path,
        image_url=image_url(post.image_path),
        created_at=post.created_at,
        display_at=view.display_at,
        author=UserSummary.model_validate(post.author),
        reposts_count=view.reposts_count,
        critiques_count=view.critiques_count,
        is_reposted=view.is_reposted,
        reposted_by_id=view.reposted_by_id,
        reward_amount=post.reward_amount,
        reward_state=post.reward_state,
        payment_reference=post.payment_reference,
        best_critique_id=post.best_critique_id,
        reward_settled=post.reward_settled,
        critique_preview=to_critique_response(preview) if preview is not None else None,
    )
