"""Reward escrow bound to a post.

State machine::

    NO_REWARD
    CAPTURED -> BEST_CRITIQUE_CHOSEN -> SETTLED
    (CAPTURE_FAILED: reported only, no row is written)

Ordering within one operation is always validate, call the processor, then
commit locally. A commit that fails after the processor confirmed money
movement is logged on the ``redpen.reconciliation`` logger and raised as
:class:`ReconciliationRequired`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from redpen.core.settings import settings
from redpen.errors import (
    CaptureFailed,
    Forbidden,
    InvalidCritique,
    NoActiveReward,
    NotFound,
    PaymentUnavailable,
    ReconciliationRequired,
    SelfSelection,
    SettlementFailed,
    ValidationFailed,
)
from redpen.models import Critique, Post, RewardState
from redpen.services.payments import PaymentError, PaymentProcessor, PaymentResponseError

logger = logging.getLogger(__name__)
reconciliation_logger = logging.getLogger("redpen.reconciliation")


@dataclass(frozen=True)
class PostDraft:
    """Validated post content waiting for its reward decision."""

    author_id: int
    body: str
    image_path: str | None = None


@dataclass(frozen=True)
class PaymentStatus:
    """Reconciliation view of one payment reference."""

    reference: str
    processor_status: str
    post_id: int | None
    reward_amount: int
    reward_settled: bool
    reward_state: RewardState | None

    @property
    def recorded(self) -> bool:
        """True when a local post row holds this reference."""
        return self.post_id is not None


def validate_reward(amount: int | None, payment_method_token: str | None) -> int:
    """Normalize and check a requested reward amount.

    Returns:
        The amount to hold, ``0`` meaning no reward.

    Raises:
        ValidationFailed: If the amount is out of policy or no payment method
            accompanies a positive amount.
    """
    if amount is None or amount == 0:
        return 0
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationFailed({"reward_amount": "must be an integer number of minor units"})
    if amount < 0:
        raise ValidationFailed({"reward_amount": "must not be negative"})
    if amount < settings.min_reward or amount > settings.max_reward:
        raise ValidationFailed(
            {
                "reward_amount": (
                    f"must be between {settings.min_reward} and {settings.max_reward}"
                ),
            }
        )
    if not payment_method_token:
        raise ValidationFailed({"payment_method_token": "required when a reward is offered"})
    return amount


def _record_reconciliation(
    event: str,
    *,
    post_id: int | None,
    reference: str | None,
    amount: int,
) -> None:
    reconciliation_logger.critical(
        "Reconciliation required: %s (post_id=%s reference=%s amount=%s)",
        event,
        post_id,
        reference,
        amount,
        extra={
            "reconciliation_event": event,
            "post_id": post_id,
            "payment_reference": reference,
            "amount": amount,
        },
    )


async def request_reward(
    db: Session,
    processor: PaymentProcessor,
    draft: PostDraft,
    amount: int | None,
    payment_method_token: str | None,
) -> Post:
    """Persist a post, capturing its reward first when one is offered.

    A zero or missing amount never reaches the processor. A positive amount is
    captured synchronously; only after the capture succeeds is the post row
    written, already in the ``CAPTURED`` state.

    Raises:
        ValidationFailed: Amount outside policy or missing payment method.
        CaptureFailed: The processor did not hold the funds; nothing persisted.
        ReconciliationRequired: Funds were captured but the post row could not
            be committed, or the processor accepted the capture with a reply
            that could not be read.
    """
    reward_amount = validate_reward(amount, payment_method_token)

    post = Post(
        author_id=draft.author_id,
        body=draft.body,
        image_path=draft.image_path,
        reward_amount=0,
        payment_reference=None,
        reward_settled=False,
        reward_state=RewardState.NO_REWARD,
    )

    if reward_amount == 0:
        db.add(post)
        db.commit()
        db.refresh(post)
        return post

    try:
        capture = await processor.capture(
            reward_amount,
            payment_method_token or "",
            {"author_id": str(draft.author_id)},
        )
    except PaymentResponseError as exc:
        _record_reconciliation(
            "capture_unconfirmed",
            post_id=None,
            reference=None,
            amount=reward_amount,
        )
        raise ReconciliationRequired(
            "Payment processor accepted the capture but its reply was unreadable",
        ) from exc
    except PaymentError as exc:
        logger.info("Reward capture failed for author %s: %s", draft.author_id, exc)
        raise CaptureFailed(f"Payment capture failed: {exc}") from exc

    post.reward_amount = reward_amount
    post.payment_reference = capture.reference
    post.reward_state = RewardState.CAPTURED

    try:
        db.add(post)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        _record_reconciliation(
            "captured_without_post",
            post_id=None,
            reference=capture.reference,
            amount=reward_amount,
        )
        raise ReconciliationRequired(
            "Reward was captured but the post could not be saved",
            payment_reference=capture.reference,
        ) from exc

    db.refresh(post)
    logger.info(
        "Captured reward of %s for post %s (reference=%s)",
        reward_amount,
        post.id,
        capture.reference,
    )
    return post


def select_best_critique(
    db: Session,
    post_id: int,
    critique_id: int,
    requester_id: int,
) -> Post:
    """Irrevocably mark ``critique_id`` as the best critique of a rewarded post.

    The write is conditional on the post still being ``CAPTURED`` with no best
    critique, so of two racing calls exactly one wins and the other gets
    :class:`NoActiveReward`.

    Raises:
        NotFound: Unknown post.
        Forbidden: Requester is not the post author.
        NoActiveReward: No captured reward, or a best critique already chosen.
        InvalidCritique: Critique missing or attached to a different post.
        SelfSelection: Critique was written by the post author.
    """
    post = db.get(Post, post_id)
    if post is None:
        raise NotFound(f"Post {post_id} not found")
    if post.author_id != requester_id:
        raise Forbidden("Only the post author can choose the best critique")
    if post.reward_state != RewardState.CAPTURED or post.best_critique_id is not None:
        raise NoActiveReward("Post has no reward awaiting a best critique")

    critique = db.get(Critique, critique_id)
    if critique is None or critique.post_id != post.id:
        raise InvalidCritique(f"Critique {critique_id} does not belong to post {post_id}")
    if critique.author_id == post.author_id:
        raise SelfSelection("Authors cannot reward their own critique")

    result = db.execute(
        update(Post)
        .where(
            Post.id == post.id,
            Post.best_critique_id.is_(None),
            Post.reward_state == RewardState.CAPTURED,
        )
        .values(
            best_critique_id=critique.id,
            reward_state=RewardState.BEST_CRITIQUE_CHOSEN,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Lost the race; the conditional update wrote nothing.
        raise NoActiveReward("Best critique was already chosen for this post")

    db.commit()
    db.refresh(post)
    logger.info("Post %s chose critique %s as best", post.id, critique.id)
    return post


async def settle(
    db: Session,
    processor: PaymentProcessor,
    post_id: int,
    *,
    requester_id: int | None = None,
) -> Post:
    """Pay the held reward out to the best critique's author.

    Safe to call again after a failure: the processor receives the same
    reference, amount and idempotency key each time. Settling an already
    settled post returns it untouched.

    Raises:
        NotFound: Unknown post.
        Forbidden: ``requester_id`` given and not the post author.
        NoActiveReward: No best critique has been chosen yet.
        SettlementFailed: The payout failed; the post stays chosen.
        ReconciliationRequired: Payout succeeded but the local commit failed.
    """
    post = db.get(Post, post_id)
    if post is None:
        raise NotFound(f"Post {post_id} not found")
    if requester_id is not None and post.author_id != requester_id:
        raise Forbidden("Only the post author can settle the reward")
    if post.reward_state == RewardState.SETTLED:
        return post
    if post.reward_state != RewardState.BEST_CRITIQUE_CHOSEN or post.best_critique_id is None:
        raise NoActiveReward("Post has no chosen critique awaiting payout")

    critique = db.get(Critique, post.best_critique_id)
    if critique is None or post.payment_reference is None:
        raise NoActiveReward("Chosen critique or payment reference is missing")

    reference = post.payment_reference
    try:
        await processor.payout(
            reference,
            post.reward_amount,
            critique.author_id,
            idempotency_key=f"payout:{post.id}:{reference}",
        )
    except PaymentError as exc:
        logger.warning("Payout for post %s failed: %s", post.id, exc)
        raise SettlementFailed(f"Payout failed: {exc}") from exc

    try:
        db.execute(
            update(Post)
            .where(
                Post.id == post.id,
                Post.reward_state == RewardState.BEST_CRITIQUE_CHOSEN,
            )
            .values(reward_state=RewardState.SETTLED, reward_settled=True)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        _record_reconciliation(
            "paid_out_without_settlement",
            post_id=post.id,
            reference=reference,
            amount=post.reward_amount,
        )
        raise ReconciliationRequired(
            "Payout succeeded but settlement could not be recorded",
            payment_reference=reference,
        ) from exc

    db.refresh(post)
    logger.info("Settled reward for post %s to user %s", post.id, critique.author_id)
    return post


async def select_and_settle(
    db: Session,
    processor: PaymentProcessor,
    post_id: int,
    critique_id: int,
    requester_id: int,
) -> Post:
    """Choose the best critique and immediately release the reward."""
    select_best_critique(db, post_id, critique_id, requester_id)
    return await settle(db, processor, post_id)


async def payment_status(
    db: Session,
    processor: PaymentProcessor,
    reference: str,
    requester_id: int,
) -> PaymentStatus:
    """Answer "was this reference captured, and does a post record it?"

    Used by clients that timed out during post creation before resubmitting.

    Raises:
        NotFound: Processor does not know the reference.
        Forbidden: The capture was made for another user or carries no owner.
        PaymentUnavailable: The processor lookup failed.
    """
    try:
        record = await processor.retrieve(reference)
    except PaymentError as exc:
        raise PaymentUnavailable(f"Could not query payment status: {exc}") from exc
    if record is None:
        raise NotFound("Payment reference not found")

    owner = record.metadata.get("author_id")
    if owner is None or owner != str(requester_id):
        logger.warning(
            "User %s asked for payment %s owned by %s",
            requester_id,
            reference,
            owner,
        )
        raise Forbidden("Payment belongs to another user")

    post = db.execute(
        select(Post).where(
            Post.payment_reference == reference,
            Post.author_id == requester_id,
        )
    ).scalar_one_or_none()

    if post is None:
        if record.status in {"captured", "succeeded"}:
            _record_reconciliation(
                "captured_reference_without_post",
                post_id=None,
                reference=reference,
                amount=record.amount,
            )
        return PaymentStatus(
            reference=reference,
            processor_status=record.status,
            post_id=None,
            reward_amount=record.amount,
            reward_settled=False,
            reward_state=None,
        )

    return PaymentStatus(
        reference=reference,
        processor_status=record.status,
        post_id=post.id,
        reward_amount=post.reward_amount,
        reward_settled=post.reward_settled,
        reward_state=post.reward_state,
    )


def payment_history(db: Session, user_id: int) -> list[Post]:
    """Return the user's rewarded posts, newest first."""
    stmt = (
        select(Post)
        .where(
            Post.author_id == user_id,
            Post.payment_reference.is_not(None),
            Post.reward_amount > 0,
        )
        .order_by(Post.created_at.desc(), Post.id.desc())
    )
    return list(db.execute(stmt).scalars())
