"""WebSocket chat transport.

Frames in:  ``{"text": "..."}`` or bare text.
Frames out: ``{"type": "connection-status", ...}`` once on connect, then one
``{"type": "receive-message", text, sender, timestamp, metadata}`` per utterance.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from loguru import logger

from intentkeeper.api.deps import HandlerDep
from intentkeeper.bus.events import InboundMessage, OutboundMessage

router = APIRouter()


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket, handler: HandlerDep) -> None:
    await websocket.accept()
    session_id = uuid.uuid4().hex
    logger.info(f"Connected: {session_id}")

    try:
        status = await handler.check_connection()
        await websocket.send_json({"type": "connection-status", "sessionId": session_id, **status.to_dict()})

        while True:
            inbound = InboundMessage.from_frame(session_id, await websocket.receive_text())
            if inbound.is_empty:
                continue
            reply = await handler.handle(session_id, inbound.content)
            outbound = OutboundMessage.from_reply(reply)
            await websocket.send_json({"type": "receive-message", **outbound.to_payload()})
    except WebSocketDisconnect:
        logger.info(f"Disconnected: {session_id}")
    finally:
        handler.end_session(session_id)
