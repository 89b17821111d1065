"""Read-only rate-limit state for client countdowns."""
from __future__ import annotations

from typing import cast
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..constants import ThrottledAction
from ..database import get_session
from ..models import Profile
from ..schemas import RateLimitStatusList, RateLimitStatusResponse
from ..services import get_current_user, get_rate_limit_status
from ..services.rate_limiter import RateLimitStatus

router = APIRouter(prefix="/rate-limits", tags=["rate-limits"])


def _to_response(state: RateLimitStatus) -> RateLimitStatusResponse:
    return RateLimitStatusResponse(
        action=state.action,
        max_attempts=state.max_attempts,
        used=state.used,
        remaining=state.remaining,
        reset_at=state.reset_at,
    )


@router.get("", response_model=RateLimitStatusList)
async def rate_limit_overview_endpoint(
    db: Session = Depends(get_session),
    current_user: Profile = Depends(get_current_user),
) -> RateLimitStatusList:
    user_id = cast(UUID, current_user.id)
    return RateLimitStatusList(
        items=[_to_response(get_rate_limit_status(db, user_id=user_id, action=action)) for action in ThrottledAction]
    )


@router.get("/{action}", response_model=RateLimitStatusResponse)
async def rate_limit_status_endpoint(
    action: ThrottledAction,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(get_current_user),
) -> RateLimitStatusResponse:
    return _to_response(get_rate_limit_status(db, user_id=cast(UUID, current_user.id), action=action))


__all__ = ["router"]
