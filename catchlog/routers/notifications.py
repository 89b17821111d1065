"""Notification API routes."""
from __future__ import annotations

import json
from typing import cast
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Profile
from ..schemas import NotificationListResponse, NotificationResponse, NotificationSummaryResponse
from ..services import (
    count_unread_notifications,
    decode_access_token,
    get_current_user,
    list_notifications,
    mark_all_read,
)
from ..services.realtime import change_feed, user_channel

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_my_notifications(
    limit: int = Query(50, ge=1, le=200),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> NotificationListResponse:
    records = list_notifications(db, cast(UUID, current_user.id), limit=limit)
    return NotificationListResponse(items=[NotificationResponse.model_validate(item) for item in records])


@router.post("/mark-read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_notifications_read(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> None:
    mark_all_read(db, cast(UUID, current_user.id))


@router.get("/summary", response_model=NotificationSummaryResponse)
async def notification_summary_endpoint(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> NotificationSummaryResponse:
    unread = count_unread_notifications(db, cast(UUID, current_user.id))
    return NotificationSummaryResponse(unread_count=unread)


@router.websocket("/ws")
async def notifications_socket(
    websocket: WebSocket,
    token: str = Query(..., alias="token"),
) -> None:
    try:
        user_id = decode_access_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await change_feed.connect(websocket, [user_channel(user_id)])
    await websocket.send_text(json.dumps({"type": "ready"}))
    try:
        while True:
            try:
                payload = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            if payload.strip().lower() == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
    finally:
        await change_feed.disconnect(websocket)


__all__ = ["router"]
