"""Fan-out of newly stored messages to conversation participants."""
import logging
from typing import Awaitable, Callable, Dict, Iterable, List

from pydantic import BaseModel

from .connections import ConnectionManager
from .events import NewMessageEvent
from .store import increment_unread

logger = logging.getLogger(__name__)

PushFn = Callable[[Iterable[str], BaseModel], Awaitable[None]]


class DeliveryDispatcher:
    """Routes a stored message to every participant's live connections.

    Participants other than the author who are not viewing the conversation
    in any tab get their unread counter bumped by one, whether or not they
    are online. Nothing is queued for offline users; they recover from the
    message store on their next load.
    """

    def __init__(self, connections: ConnectionManager, push: PushFn):
        self.connections = connections
        self._push = push

    async def dispatch(self, message: Dict, participants: List[str]) -> List[str]:
        """Deliver ``message``. Returns the users whose unread count grew."""
        conversation = message['conversation']
        author_id = message['senderId']

        counted = []
        for user_id in dict.fromkeys(participants):
            if user_id == author_id:
                continue
            if not self.connections.is_viewing(user_id, conversation):
                increment_unread(user_id, conversation)
                counted.append(user_id)

        # Author included so their other tabs stay in sync
        await self._push(participants, NewMessageEvent(message=message))
        logger.info(
            "Dispatched message %s in %s to %d participant(s), %d unread",
            message['id'], conversation, len(participants), len(counted)
        )
        return counted
