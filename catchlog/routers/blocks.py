"""Blocked-angler API routes."""
from __future__ import annotations

from typing import cast
from uuid import UUID

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Profile
from ..schemas import BlockActionResponse, BlockedProfileList, BlockedProfileResponse, BlockRequest
from ..services import block_profile, get_current_user, list_blocked, unblock_profile

router = APIRouter(prefix="/blocks", tags=["blocks"])


@router.get("", response_model=BlockedProfileList)
async def list_blocked_endpoint(
    db: Session = Depends(get_session),
    current_user: Profile = Depends(get_current_user),
) -> BlockedProfileList:
    blocks = list_blocked(db, blocker_id=cast(UUID, current_user.id))
    items = [
        BlockedProfileResponse(
            blocked_id=cast(UUID, block.blocked_id),
            username=block.blocked.username if block.blocked else None,
            reason=block.reason,
            created_at=block.created_at,
        )
        for block in blocks
    ]
    return BlockedProfileList(items=items)


@router.post("/{user_id}", response_model=BlockActionResponse, status_code=status.HTTP_201_CREATED)
async def block_user_endpoint(
    user_id: UUID,
    payload: BlockRequest | None = Body(default=None),
    db: Session = Depends(get_session),
    current_user: Profile = Depends(get_current_user),
) -> BlockActionResponse:
    reason = payload.reason if payload else None
    changed = block_profile(db, blocker=current_user, blocked_id=user_id, reason=reason)
    return BlockActionResponse(blocked_id=user_id, status="blocked" if changed else "noop")


@router.delete("/{user_id}", response_model=BlockActionResponse)
async def unblock_user_endpoint(
    user_id: UUID,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(get_current_user),
) -> BlockActionResponse:
    changed = unblock_profile(db, blocker=current_user, blocked_id=user_id)
    return BlockActionResponse(blocked_id=user_id, status="unblocked" if changed else "noop")


__all__ = ["router"]
