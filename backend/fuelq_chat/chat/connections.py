"""WebSocket connection registry for the real-time chat channel."""
import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks authenticated connections per user and what each one is viewing.

    A connection is only addressable once it has been registered under a
    user; accepted-but-unauthenticated sockets receive nothing.
    """

    def __init__(self):
        # user_id -> set of WebSocket connections
        self.active_connections: Dict[str, Set[WebSocket]] = {}
        # websocket -> conversation key currently shown in that tab
        self.viewing: Dict[WebSocket, Optional[str]] = {}

    async def accept(self, websocket: WebSocket):
        """Accept a new WebSocket connection."""
        await websocket.accept()

    def register(self, websocket: WebSocket, user_id: str):
        """Attach an authenticated connection to its user."""
        if user_id not in self.active_connections:
            self.active_connections[user_id] = set()

        self.active_connections[user_id].add(websocket)
        self.viewing.setdefault(websocket, None)
        logger.info(
            "[WS] %s connected. Connections for user: %d",
            user_id, len(self.active_connections[user_id])
        )

    def unregister(self, websocket: WebSocket, user_id: str) -> bool:
        """Remove a connection. Returns False if it was not registered."""
        connections = self.active_connections.get(user_id)
        if not connections or websocket not in connections:
            return False

        connections.discard(websocket)
        self.viewing.pop(websocket, None)
        if not connections:
            del self.active_connections[user_id]
        logger.info("[WS] %s disconnected. Remaining: %d", user_id, len(connections))
        return True

    def set_view(self, websocket: WebSocket, conversation: Optional[str]):
        """Record the conversation a connection is showing."""
        if websocket in self.viewing:
            self.viewing[websocket] = conversation

    def is_viewing(self, user_id: str, conversation: str) -> bool:
        """Whether any of the user's tabs shows the conversation."""
        return any(
            self.viewing.get(ws) == conversation
            for ws in self.active_connections.get(user_id, ())
        )

    def viewers(self, conversation: str) -> Set[str]:
        """Users with at least one tab showing the conversation."""
        return {
            user_id
            for user_id, connections in self.active_connections.items()
            if any(self.viewing.get(ws) == conversation for ws in connections)
        }

    def is_connected(self, user_id: str) -> bool:
        return bool(self.active_connections.get(user_id))

    def connected_users(self) -> List[str]:
        return list(self.active_connections)

    async def send_to_users(
        self, user_ids: Iterable[str], message: dict
    ) -> List[Tuple[WebSocket, str]]:
        """Send to every connection of the given users.

        Returns the (connection, user) pairs whose send failed; the caller
        decides how to retire them.
        """
        failed = []
        for user_id in dict.fromkeys(user_ids):
            # Copy the set to avoid modification during iteration
            for connection in list(self.active_connections.get(user_id, ())):
                try:
                    await connection.send_json(message)
                except Exception as e:
                    logger.warning("[WS] Error sending to %s: %s", user_id, e)
                    failed.append((connection, user_id))
        return failed

    def reset(self):
        self.active_connections.clear()
        self.viewing.clear()
