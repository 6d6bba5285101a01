"""Real-time chat socket.

The connection is accepted straight away but stays anonymous until the
client's first frame, ``{"type": "auth", "token": ...}``, names a valid
session. From then on the socket receives pushed events and may report
what it is viewing and whether its user is typing.
"""
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as SchemaError

from .conversations import parse_key
from .events import ConnectedEvent, ErrorEvent, PongEvent, client_frame_adapter
from .hub import hub
from .rooms import check_read_access
from ..dependencies import verify_token
from ..errors import ChatError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


async def _send(websocket: WebSocket, event):
    await websocket.send_json(event.model_dump(mode="json"))


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket):
    """WebSocket endpoint for pushed chat events."""
    await hub.connections.accept(websocket)
    user_id: Optional[str] = None

    try:
        while True:
            data = await websocket.receive_text()

            try:
                frame = client_frame_adapter.validate_json(data)
            except SchemaError:
                await _send(websocket, ErrorEvent(message="Invalid frame"))
                continue

            if frame.type == "auth":
                if user_id:
                    await _send(websocket, ErrorEvent(message="Already authenticated"))
                    continue
                user_id = verify_token(frame.token)
                if not user_id:
                    await websocket.close(code=1008, reason="Invalid token")
                    return
                await _send(websocket, ConnectedEvent(userId=user_id))
                await hub.authenticate(websocket, user_id)
                continue

            if frame.type == "ping":
                await _send(websocket, PongEvent())
                continue

            if not user_id:
                await _send(websocket, ErrorEvent(message="Authentication required"))
                continue

            try:
                # Only "view" may leave the conversation unset, to clear it
                if frame.type == "view" and not frame.conversation:
                    conversation = None
                else:
                    conversation = parse_key(frame.conversation)
                    check_read_access(conversation, user_id)
            except ChatError as e:
                await _send(websocket, ErrorEvent(message=e.message))
                continue

            if frame.type == "view":
                hub.set_view(websocket, conversation)
            elif frame.type == "typing":
                await hub.typing_started(conversation, user_id)
            elif frame.type == "stop_typing":
                await hub.typing_stopped(conversation, user_id)

    except WebSocketDisconnect:
        logger.info("[WS] %s disconnected", user_id or "anonymous client")
    except Exception:
        logger.exception("[WS] Error in WebSocket connection for %s", user_id)
    finally:
        if user_id:
            await hub.disconnect(websocket, user_id)
