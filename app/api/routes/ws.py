"""WebSocket relay endpoint.

Clients authenticate with ``/ws?token=<jwt>`` or, without a query token,
with a first frame ``{"type": "auth", "token": "<jwt>"}``. After that the
socket only receives pushes; the one client frame understood is ``ping``.
"""

import asyncio
import json
import logging

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

from app.api.deps import Manager, RedisClient, SessionFactory, resolve_token
from app.services.realtime import EventType

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])

AUTH_FRAME_TIMEOUT_SECONDS = 10.0


async def _read_auth_frame(websocket: WebSocket) -> str | None:
    try:
        raw = await asyncio.wait_for(websocket.receive_text(), timeout=AUTH_FRAME_TIMEOUT_SECONDS)
        frame = json.loads(raw)
    except (asyncio.TimeoutError, ValueError):
        return None
    if isinstance(frame, dict) and frame.get("type") == "auth" and isinstance(frame.get("token"), str):
        return frame["token"]
    return None


def _frame_type(raw: str) -> str | None:
    try:
        frame = json.loads(raw)
    except ValueError:
        return raw.strip() or None
    if isinstance(frame, dict):
        return frame.get("type")
    return None


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    session_factory: SessionFactory,
    redis_client: RedisClient,
    manager: Manager,
    token: str | None = Query(default=None),
) -> None:
    await websocket.accept()

    try:
        if token is None:
            token = await _read_auth_frame(websocket)
        if token is None:
            logger.warning("WS connection closed: no auth token")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        try:
            # No pooled connection is held once the socket is registered
            async with session_factory() as db:
                user, _session = await resolve_token(token, db, redis_client)
        except HTTPException as e:
            logger.warning(f"WS connection rejected: {e.detail}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
    except WebSocketDisconnect:
        return

    manager.register(websocket, user.id, user.role)
    await websocket.send_text(json.dumps({"type": EventType.CONNECTED, "data": {"user_id": str(user.id)}}))

    try:
        while True:
            raw = await websocket.receive_text()
            if websocket.application_state != WebSocketState.CONNECTED:
                # Closed server side by ConnectionManager.disconnect_user
                break
            frame_type = _frame_type(raw)
            if frame_type == "ping":
                await websocket.send_text(json.dumps({"type": EventType.PONG, "data": None}))
            else:
                logger.warning(f"Ignoring WS frame from user {user.id}: {frame_type!r}")
    except WebSocketDisconnect:
        pass
    finally:
        manager.unregister(websocket, user.id)
