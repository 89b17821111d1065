"""Catch creation and engagement endpoints."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Profile
from ..schemas import (
    CatchCreate,
    CatchResponse,
    CommentCreate,
    CommentResponse,
    EngagementResponse,
    RatingRequest,
    ReactionRequest,
)
from ..services import add_comment, create_catch, get_catch, get_current_user, rate_catch, react_to_catch

router = APIRouter(prefix="/catches", tags=["catches"])


@router.post("", response_model=CatchResponse, status_code=status.HTTP_201_CREATED)
async def create_catch_endpoint(
    payload: CatchCreate,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(get_current_user),
) -> CatchResponse:
    catch = create_catch(
        db,
        author=current_user,
        title=payload.title,
        species=payload.species,
        description=payload.description,
    )
    return CatchResponse.model_validate(catch)


@router.get("/{catch_id}", response_model=CatchResponse)
async def get_catch_endpoint(
    catch_id: UUID,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(get_current_user),
) -> CatchResponse:
    return CatchResponse.model_validate(get_catch(db, catch_id))


@router.post("/{catch_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_comment_endpoint(
    catch_id: UUID,
    payload: CommentCreate,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(get_current_user),
) -> CommentResponse:
    comment = add_comment(db, catch_id=catch_id, author=current_user, body=payload.body)
    return CommentResponse.model_validate(comment)


@router.put("/{catch_id}/reaction", response_model=EngagementResponse)
async def react_endpoint(
    catch_id: UUID,
    payload: ReactionRequest,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(get_current_user),
) -> EngagementResponse:
    created = react_to_catch(db, catch_id=catch_id, user=current_user, reaction=payload.reaction)
    return EngagementResponse(catch_id=catch_id, status="created" if created else "updated")


@router.put("/{catch_id}/rating", response_model=EngagementResponse)
async def rate_endpoint(
    catch_id: UUID,
    payload: RatingRequest,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(get_current_user),
) -> EngagementResponse:
    created = rate_catch(db, catch_id=catch_id, user=current_user, rating=payload.rating)
    return EngagementResponse(catch_id=catch_id, status="created" if created else "updated")


__all__ = ["router"]
