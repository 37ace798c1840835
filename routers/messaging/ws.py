"""Live chat WebSocket endpoint."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool

from auth import verify_token
from core.errors import InvalidCredential
from core.logging import hash_user_id
from core.users import get_user_by_id
from db import get_db_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


def _is_active_user(user_id: str) -> bool:
    with get_db_context() as db:
        user = get_user_by_id(db, user_id=user_id)
        return bool(user and user.is_active)


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket, token: Optional[str] = Query(None)):
    try:
        identity = verify_token(token)
    except InvalidCredential as e:
        logger.info(f"WebSocket rejected: {e}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(e))
        return

    if not await run_in_threadpool(_is_active_user, identity.user_id):
        logger.info(f"WebSocket rejected: unknown or inactive user {hash_user_id(identity.user_id)}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="User not found or inactive")
        return

    await websocket.accept()
    registry = websocket.app.state.registry
    message_router = websocket.app.state.message_router
    registry.register(identity.user_id, websocket)
    logger.info(
        f"WebSocket connected: user={hash_user_id(identity.user_id)}, "
        f"role={identity.role.value}, online={len(registry)}"
    )

    try:
        while True:
            event = await websocket.receive()
            if event["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(code=event.get("code", status.WS_1000_NORMAL_CLOSURE))
            raw = event.get("text")
            if raw is None:
                raw = event.get("bytes")
            await message_router.handle_frame(identity, raw, reply_to=websocket)
    except WebSocketDisconnect as e:
        logger.info(f"WebSocket disconnected: user={hash_user_id(identity.user_id)}, code={e.code}")
    finally:
        registry.unregister(identity.user_id, websocket)
