"""Server-side real-time state: connections, presence, typing and delivery.

The hub composes the pieces that live in memory on the event loop. Route
handlers persist through the services first and then ask the hub to push
the resulting events.
"""
import logging
from typing import Dict, Iterable, List, Optional

from fastapi import WebSocket
from pydantic import BaseModel

from .connections import ConnectionManager
from .conversations import Conversation
from .dispatcher import DeliveryDispatcher
from .events import (
    ConnectionRequestEvent,
    RoomUpdatedEvent,
    StopTypingEvent,
    TypingEvent,
    UserOfflineEvent,
    UserOnlineEvent,
)
from .presence import PresenceTracker
from .typing_indicator import TypingTracker

logger = logging.getLogger(__name__)


class ChatHub:
    """Owns the live chat state shared by HTTP routes and socket handlers."""

    def __init__(
        self,
        connections: Optional[ConnectionManager] = None,
        presence: Optional[PresenceTracker] = None,
        typing: Optional[TypingTracker] = None,
    ):
        self.connections = connections or ConnectionManager()
        self.presence = presence or PresenceTracker()
        self.typing = typing or TypingTracker()
        self.dispatcher = DeliveryDispatcher(self.connections, self.push)

    async def push(self, user_ids: Iterable[str], event: BaseModel):
        """Send an event to all live connections of the given users."""
        failed = await self.connections.send_to_users(user_ids, event.model_dump(mode="json"))
        for websocket, user_id in failed:
            await self.disconnect(websocket, user_id)

    # --- Connection lifecycle ---

    async def authenticate(self, websocket: WebSocket, user_id: str):
        """Register an authenticated connection and announce presence."""
        self.connections.register(websocket, user_id)
        if self.presence.connect(user_id):
            await self._broadcast_presence(user_id, online=True)

    async def disconnect(self, websocket: WebSocket, user_id: str):
        """Retire a connection. Safe to call more than once per socket."""
        if not self.connections.unregister(websocket, user_id):
            return
        if self.presence.disconnect(user_id):
            for conversation in self.typing.clear_user(user_id):
                await self._fan_out_stop(conversation, user_id)
            await self._broadcast_presence(user_id, online=False)

    async def _broadcast_presence(self, user_id: str, online: bool):
        from ..users.services import get_user
        from .rooms import get_visible_users

        user = get_user(user_id)
        if not user:
            return
        audience = [u for u in get_visible_users(user_id) if self.presence.is_online(u)]
        event = UserOnlineEvent(user=user) if online else UserOfflineEvent(user=user)
        logger.info("[Presence] %s is %s, notifying %d user(s)", user_id, user['status'], len(audience))
        await self.push(audience, event)

    # --- Viewing & typing ---

    def set_view(self, websocket: WebSocket, conversation: Optional[Conversation]):
        self.connections.set_view(websocket, conversation.key if conversation else None)

    async def typing_started(self, conversation: Conversation, user_id: str):
        """Fan a typing signal out to the others viewing the conversation."""
        from ..users.services import get_user

        await self._sweep_typing()
        self.typing.start(conversation.key, user_id)
        user = get_user(user_id)
        event = TypingEvent(
            conversation=conversation.key,
            userId=user_id,
            userName=user['name'] if user else user_id,
        )
        await self.push(self._typing_audience(conversation.key, user_id), event)

    async def typing_stopped(self, conversation: Conversation, user_id: str):
        """Fan out a stop signal if the user was typing."""
        await self._sweep_typing()
        if self.typing.stop(conversation.key, user_id):
            await self._fan_out_stop(conversation.key, user_id)

    def _typing_audience(self, conversation: str, user_id: str) -> List[str]:
        return [u for u in self.connections.viewers(conversation) if u != user_id]

    async def _fan_out_stop(self, conversation: str, user_id: str):
        event = StopTypingEvent(conversation=conversation, userId=user_id)
        await self.push(self._typing_audience(conversation, user_id), event)

    async def _sweep_typing(self):
        for conversation, user_id in self.typing.sweep():
            await self._fan_out_stop(conversation, user_id)

    # --- Domain events ---

    async def deliver(self, message: Dict, participants: List[str]) -> List[str]:
        return await self.dispatcher.dispatch(message, participants)

    async def room_updated(self, room: Dict, audience: Iterable[str]):
        await self.push(audience, RoomUpdatedEvent(room=room))

    async def connection_request(self, request: Dict, recipient_id: str):
        await self.push([recipient_id], ConnectionRequestEvent(request=request))

    def reset(self):
        self.connections.reset()
        self.presence.reset()
        self.typing.reset()


# Global hub instance
hub = ChatHub()
