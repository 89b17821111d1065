"""WebSocket endpoint streaming report and moderation-log changes to admins."""
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from ..database import create_session
from ..models import Profile
from ..services.auth_service import decode_access_token, is_admin
from ..services.realtime import ADMIN_CHANNELS, change_feed

router = APIRouter()
logger = logging.getLogger(__name__)


def _requested_channels(raw: str | None) -> list[str]:
    if not raw:
        return list(ADMIN_CHANNELS)
    requested = [item.strip() for item in raw.split(",") if item.strip()]
    return [channel for channel in requested if channel in ADMIN_CHANNELS]


@router.websocket("/ws/moderation")
async def moderation_updates(
    websocket: WebSocket,
    token: str = Query(..., alias="token"),
    channels: str | None = Query(None),
) -> None:
    """Push INSERT/UPDATE events for the triage queue and audit log."""

    try:
        user_id = decode_access_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    session = create_session()
    try:
        profile = session.get(Profile, user_id)
        allowed = is_admin(profile)
    finally:
        session.close()
    selected = _requested_channels(channels)
    if not allowed or not selected:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await change_feed.connect(websocket, selected)
    logger.info("Moderation socket connected for %s (%s)", user_id, ",".join(selected))
    await websocket.send_text(json.dumps({"type": "ready", "channels": selected}))
    try:
        while True:
            try:
                raw = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            if raw.strip().lower() == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
    finally:
        await change_feed.disconnect(websocket)
        logger.info("Moderation socket disconnected for %s", user_id)


__all__ = ["router"]
