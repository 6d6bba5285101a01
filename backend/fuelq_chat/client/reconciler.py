"""Client-side message state with optimistic rendering.

A message the user sends is shown at once under a temporary id. When the
server answers, the entry is rekeyed to the durable id; if the send fails
the entry stays on screen marked failed until it is retried. Matching is
always by temporary id or durable id, never by content, so two identical
messages stay two entries and one message is never shown twice.
"""
import itertools
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class DeliveryState(str, Enum):
    """Lifecycle of a rendered message.

    Attributes:
        PENDING: Sent optimistically, waiting for the server.
        SENT: Stored by the server under a durable id.
        FAILED: The send failed; the user can retry it.
    """
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


@dataclass
class Entry:
    """One rendered message."""
    conversation: str
    sender_id: str
    text: str = ""
    file: Optional[dict] = None
    temp_id: Optional[str] = None
    message_id: Optional[int] = None
    timestamp: Optional[str] = None
    author_name: Optional[str] = None
    likes_count: int = 0
    is_liked: bool = False
    state: DeliveryState = DeliveryState.SENT
    own: bool = False
    attempts: int = field(default=0, repr=False)

    @property
    def key(self) -> str:
        """The id the entry is currently rendered under."""
        if self.message_id is not None:
            return str(self.message_id)
        return self.temp_id

    @property
    def failed(self) -> bool:
        return self.state == DeliveryState.FAILED


class ReconcileError(Exception):
    """Raised when asked to reconcile an entry that does not exist."""


class ClientReconciler:
    """Owns the temp-id to durable-id mapping for one user's view."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        self._entries: List[Entry] = []
        self._by_temp: Dict[str, Entry] = {}
        self._by_id: Dict[int, Entry] = {}
        self._seq = itertools.count(1)

    # --- Sending ---

    def begin(self, conversation: str, text: str = "", file: Optional[dict] = None) -> Entry:
        """Render a message before the server has seen it."""
        temp_id = f"temp-{int(time.time() * 1000)}-{next(self._seq)}"
        entry = Entry(
            conversation=conversation,
            sender_id=self.user_id,
            text=text,
            file=file,
            temp_id=temp_id,
            state=DeliveryState.PENDING,
            own=True,
            attempts=1,
        )
        self._entries.append(entry)
        self._by_temp[temp_id] = entry
        return entry

    def confirm(self, temp_id: str, message: dict) -> Entry:
        """Rekey an optimistic entry to the durable id the server assigned.

        Safe to call repeatedly, and safe when the pushed copy of the same
        message was received first: the pushed duplicate is dropped and the
        optimistic entry keeps its place.
        """
        entry = self._by_temp.get(temp_id)
        if entry is None:
            raise ReconcileError(f"Unknown temporary id: {temp_id}")

        message_id = message['id']
        existing = self._by_id.get(message_id)
        if existing is not None and existing is not entry:
            self._entries.remove(existing)

        entry.message_id = message_id
        entry.timestamp = message.get('timestamp', entry.timestamp)
        entry.author_name = message.get('authorName', entry.author_name)
        entry.file = message.get('file') or entry.file
        entry.state = DeliveryState.SENT
        self._by_id[message_id] = entry
        return entry

    def fail(self, temp_id: str) -> Entry:
        """Mark an in-flight send failed. The entry stays in view."""
        entry = self._by_temp.get(temp_id)
        if entry is None:
            raise ReconcileError(f"Unknown temporary id: {temp_id}")
        if entry.state != DeliveryState.SENT:
            entry.state = DeliveryState.FAILED
        return entry

    def retry(self, temp_id: str) -> Entry:
        """Put a failed entry back in flight with identical content."""
        entry = self._by_temp.get(temp_id)
        if entry is None or entry.state != DeliveryState.FAILED:
            raise ReconcileError(f"No failed message with id {temp_id}")
        entry.state = DeliveryState.PENDING
        entry.attempts += 1
        return entry

    # --- Receiving ---

    def receive(self, message: dict) -> Entry:
        """Add a message that arrived from the server, unless already shown."""
        existing = self._by_id.get(message['id'])
        if existing is not None:
            existing.likes_count = message.get('likesCount', existing.likes_count)
            return existing

        entry = self._entry_from_message(message)
        self._entries.append(entry)
        self._by_id[entry.message_id] = entry
        return entry

    def load(self, messages: Iterable[dict]):
        """Merge a history page.

        Stored messages end up ordered by durable id; entries not yet
        stored (pending or failed) stay after them in the order sent.
        """
        for message in messages:
            self.receive(message)

        stored = sorted(
            (e for e in self._entries if e.message_id is not None),
            key=lambda e: e.message_id,
        )
        unsent = [e for e in self._entries if e.message_id is None]
        self._entries = stored + unsent

    def set_likes(self, message_id: int, likes_count: int, is_liked: bool):
        entry = self._by_id.get(message_id)
        if entry is not None:
            entry.likes_count = likes_count
            entry.is_liked = is_liked

    # --- Queries ---

    def entries(self, conversation: Optional[str] = None) -> List[Entry]:
        """Rendered entries, optionally for one conversation."""
        if conversation is None:
            return list(self._entries)
        return [e for e in self._entries if e.conversation == conversation]

    def get(self, key: str) -> Optional[Entry]:
        """Find an entry by temporary or durable id."""
        if key in self._by_temp:
            return self._by_temp[key]
        if key.isdigit():
            return self._by_id.get(int(key))
        return None

    def failed(self) -> List[Entry]:
        return [e for e in self._entries if e.failed]

    def _entry_from_message(self, message: dict) -> Entry:
        return Entry(
            conversation=message['conversation'],
            sender_id=message['senderId'],
            text=message.get('text', ''),
            file=message.get('file'),
            message_id=message['id'],
            timestamp=message.get('timestamp'),
            author_name=message.get('authorName'),
            likes_count=message.get('likesCount', 0),
            is_liked=message.get('isLiked', False),
            state=DeliveryState.SENT,
            own=message['senderId'] == self.user_id,
        )
