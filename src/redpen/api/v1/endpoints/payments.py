# src/redpen/api/v1/endpoints/payments.py
"""Payment reconciliation endpoints for the Redpen API."""

from fastapi import APIRouter

from redpen.errors import RedpenError
from redpen.schemas.post import (
    PaymentHistoryItem,
    PaymentHistoryResponse,
    PaymentStatusResponse,
)
from redpen.services import escrow

from ..dependencies import CurrentUserDep, PaymentProcessorDep, SessionDep, to_http_exception

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/history", response_model=PaymentHistoryResponse)
async def get_payment_history(db: SessionDep, current_user: CurrentUserDep) -> PaymentHistoryResponse:
    """Rewarded posts created by the caller, newest first."""
    posts = escrow.payment_history(db, current_user.id)
    return PaymentHistoryResponse(
        payments=[PaymentHistoryItem.model_validate(post) for post in posts]
    )


@router.get("/{reference}", response_model=PaymentStatusResponse)
async def get_payment_status(
    reference: str,
    db: SessionDep,
    current_user: CurrentUserDep,
    processor: PaymentProcessorDep,
) -> PaymentStatusResponse:
    """Check whether a capture went through and whether a post records it.

    Clients call this after a timeout during post creation before resubmitting.
    """
    try:
        status = await escrow.payment_status(db, processor, reference, current_user.id)
    except RedpenError as err:
        raise to_http_exception(err) from err
    return PaymentStatusResponse(
        reference=status.reference,
        processor_status=status.processor_status,
        recorded=status.recorded,
        post_id=status.post_id,
        reward_amount=status.reward_amount,
        reward_settled=status.reward_settled,
        reward_state=status.reward_state,
    )
