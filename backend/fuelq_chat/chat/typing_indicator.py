"""Ephemeral "is typing" state per conversation and user."""
import time
from typing import Callable, Dict, List, Tuple

from ..config import TYPING_EXPIRY_SECONDS


class TypingTracker:
    """In-memory (conversation, user) -> last activity map. Never persisted."""

    def __init__(self, expiry: float = TYPING_EXPIRY_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.expiry = expiry
        self._clock = clock
        self._active: Dict[Tuple[str, str], float] = {}

    def start(self, conversation: str, user_id: str) -> bool:
        """Mark a user typing. True if this begins a new typing session."""
        key = (conversation, user_id)
        is_new = key not in self._active
        self._active[key] = self._clock()
        return is_new

    def stop(self, conversation: str, user_id: str) -> bool:
        """Clear a user's typing state. True if they were typing."""
        return self._active.pop((conversation, user_id), None) is not None

    def is_typing(self, conversation: str, user_id: str) -> bool:
        return (conversation, user_id) in self._active

    def clear_user(self, user_id: str) -> List[str]:
        """Drop every typing state of a user; returns the conversations affected."""
        keys = [key for key in self._active if key[1] == user_id]
        for key in keys:
            del self._active[key]
        return [conversation for conversation, _ in keys]

    def sweep(self) -> List[Tuple[str, str]]:
        """Remove and return entries idle for longer than the expiry window."""
        cutoff = self._clock() - self.expiry
        expired = [key for key, seen in self._active.items() if seen < cutoff]
        for key in expired:
            del self._active[key]
        return expired

    def reset(self):
        self._active.clear()
