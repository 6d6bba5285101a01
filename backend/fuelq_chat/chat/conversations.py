"""Conversation addressing.

A conversation is either a room (``room:<id>``) or a direct pair of users
(``dm:<a>:<b>`` with the two ids sorted). The key is what clients use to
name the conversation they are viewing, typing in or reading.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..errors import ValidationError


@dataclass(frozen=True)
class Conversation:
    room_id: Optional[int] = None
    users: Optional[Tuple[str, str]] = None

    @classmethod
    def room(cls, room_id: int) -> "Conversation":
        return cls(room_id=int(room_id))

    @classmethod
    def direct(cls, user_a: str, user_b: str) -> "Conversation":
        if user_a == user_b:
            raise ValidationError("Cannot message yourself")
        return cls(users=tuple(sorted((user_a, user_b))))

    @property
    def is_room(self) -> bool:
        return self.room_id is not None

    @property
    def key(self) -> str:
        if self.is_room:
            return f"room:{self.room_id}"
        return f"dm:{self.users[0]}:{self.users[1]}"

    def other(self, user_id: str) -> str:
        """The other party of a direct conversation."""
        a, b = self.users
        return b if a == user_id else a

    def where_clause(self) -> Tuple[str, List]:
        """SQL filter selecting this conversation's rows in ``messages m``."""
        if self.is_room:
            return "m.room_id = ?", [self.room_id]
        a, b = self.users
        return (
            "((m.sender_id = ? AND m.recipient_id = ?) OR (m.sender_id = ? AND m.recipient_id = ?))",
            [a, b, b, a],
        )

    def __str__(self) -> str:
        return self.key


def parse_key(key: str) -> Conversation:
    """Parse a conversation key. Raises ValidationError if malformed."""
    parts = key.split(":") if key else []
    if len(parts) == 2 and parts[0] == "room" and parts[1].isdigit():
        return Conversation.room(int(parts[1]))
    if len(parts) == 3 and parts[0] == "dm" and parts[1] and parts[2]:
        return Conversation.direct(parts[1], parts[2])
    raise ValidationError(f"Invalid conversation: {key!r}")


def message_conversation(message: dict) -> Conversation:
    """The conversation a stored message belongs to."""
    if message.get('roomId') is not None:
        return Conversation.room(message['roomId'])
    return Conversation.direct(message['senderId'], message['recipientId'])
