"""Chat router providing the WebSocket transport.

This module provides:
    - WebSocket /ws/chat: Real-time global and private chat

Protocol Flow:
    1. Client connects → Server mints a connection id
       → Server sends: {type: "identity-assigned", connectionId, displayName}
       → Server sends: {type: "global-history", messages: []}
       → Server sends: {type: "session-list", sessions: []}
       → Others get: {type: "user-joined", displayName, timestamp}
       → Everyone gets: {type: "session-list", sessions: []}
    2. Client sends: {type: "send-global-message", text}
       → Everyone gets: {type: "new-global-message", message}
    3. Client sends: {type: "start-private-chat", targetConnectionId}
       → Both members get: {type: "private-chat-started", roomId, participants, messages}
    4. Client sends: {type: "send-private-message", roomId, text}
       → Room members get: {type: "new-private-message", message}
    5. On disconnect → Remaining clients get "user-left" and "session-list"

Malformed or stale commands get no reply.
"""
import asyncio
import json
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chatrelay.config import get_config

from .manager import get_relay

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/chat")
async def websocket_chat_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for one chat client.

    The connection id is assigned here and never taken from the client.
    Connections whose Origin header is not in ``server.allowed_origins`` are
    closed before accept; CORS middleware does not cover WebSocket scopes.
    Outbound frames are written by a separate task so that fan-out from other
    connections never waits on this socket.

    Args:
        websocket: The WebSocket connection.
    """
    # Browsers always send Origin; other clients may omit it
    origin = websocket.headers.get("origin")
    allowed_origins = get_config().server.allowed_origins
    if origin and "*" not in allowed_origins and origin not in allowed_origins:
        logger.warning(f"[WS] Rejecting connection from origin {origin}")
        await websocket.close(code=1008)  # 1008 = Policy Violation
        return

    await websocket.accept()
    relay = get_relay()

    connection_id = uuid.uuid4().hex
    outbox = relay.connect(connection_id)
    writer = asyncio.create_task(relay.pump_outbox(connection_id, websocket, outbox))
    logger.info(
        f"[WS] Connection accepted. Assigned connectionId={connection_id}. "
        f"{relay.get_connection_count()} connections"
    )

    try:
        # Main message loop
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))

            raw = message.get("text")
            if raw is None:
                logger.debug("[WS] %s sent a binary frame, ignoring", connection_id)
                continue
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("[WS] %s sent a non-JSON frame, ignoring", connection_id)
                continue
            logger.debug("[WS] %s received: type=%s", connection_id,
                         data.get("type", "?") if isinstance(data, dict) else "?")
            relay.dispatch(connection_id, data)

    except WebSocketDisconnect:
        logger.info(f"[WS] {connection_id} disconnected")
    finally:
        relay.disconnect(connection_id)
        writer.cancel()
