# src/redpen/api/v1/endpoints/critiques.py
"""Critique like endpoints for the Redpen API."""

from fastapi import APIRouter

from redpen.errors import RedpenError
from redpen.schemas.critique import LikeToggleResponse
from redpen.services import post_service

from ..dependencies import CurrentUserDep, SessionDep, to_http_exception

router = APIRouter(prefix="/critiques", tags=["critiques"])


@router.post("/{critique_id}/like", response_model=LikeToggleResponse)
async def toggle_like(
    critique_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> LikeToggleResponse:
    """Like a critique, or remove an existing like.

    Authors cannot like their own critiques.
    """
    try:
        result, like_count = post_service.toggle_critique_like(db, critique_id, current_user)
    except RedpenError as err:
        raise to_http_exception(err) from err
    return LikeToggleResponse(
        is_liked=result.active,
        counter_delta=result.counter_delta,
        like_count=like_count,
    )
