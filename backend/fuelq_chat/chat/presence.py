"""Online/offline state derived from live connection counts."""
import logging
from typing import Dict, List

logger = logging.getLogger(__name__)

ONLINE = "online"
OFFLINE = "offline"


class PresenceTracker:
    """Reference-counted presence.

    A user is online while at least one authenticated connection is live.
    ``connect``/``disconnect`` report whether the call changed the user's
    state, so callers broadcast exactly on the 0->1 and 1->0 transitions.
    """

    def __init__(self):
        # user_id -> number of live authenticated connections
        self._connections: Dict[str, int] = {}

    def connect(self, user_id: str) -> bool:
        """Count a new connection. True if the user just came online."""
        count = self._connections.get(user_id, 0) + 1
        self._connections[user_id] = count
        logger.debug("[Presence] %s has %d connection(s)", user_id, count)
        return count == 1

    def disconnect(self, user_id: str) -> bool:
        """Drop a connection. True if the user just went offline."""
        count = self._connections.get(user_id, 0)
        if count == 0:
            return False
        if count == 1:
            del self._connections[user_id]
            logger.debug("[Presence] %s is offline", user_id)
            return True
        self._connections[user_id] = count - 1
        return False

    def is_online(self, user_id: str) -> bool:
        return user_id in self._connections

    def status(self, user_id: str) -> str:
        return ONLINE if self.is_online(user_id) else OFFLINE

    def connection_count(self, user_id: str) -> int:
        return self._connections.get(user_id, 0)

    def online_users(self) -> List[str]:
        return list(self._connections)

    def reset(self):
        self._connections.clear()
