"""Client side of the typing indicator.

A typing session starts with the first keystroke and ends one idle second
after the last one, or when ``stop()`` is called. Each session sends one
``typing`` frame and exactly one ``stop_typing`` frame.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

TYPING_IDLE_SECONDS = 1.0


class TypingEmitter:
    def __init__(
        self,
        send: Callable[[Dict], Awaitable[Any]],
        idle: float = TYPING_IDLE_SECONDS,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self._send = send
        self.idle = idle
        self._sleep = sleep or asyncio.sleep
        self.conversation: Optional[str] = None
        self.active = False
        self._timer: Optional[asyncio.Task] = None

    async def keystroke(self, conversation: str):
        """Record a keystroke in the compose box of ``conversation``."""
        if self.active and conversation != self.conversation:
            await self.stop()

        self.conversation = conversation
        if not self.active:
            self.active = True
            await self._send({"type": "typing", "conversation": conversation})

        self._cancel_timer()
        self._timer = asyncio.create_task(self._expire())

    async def stop(self):
        """End the current session now, e.g. when the message is sent."""
        self._cancel_timer()
        if not self.active:
            return
        self.active = False
        await self._send({"type": "stop_typing", "conversation": self.conversation})

    async def _expire(self):
        await self._sleep(self.idle)
        self._timer = None
        await self.stop()

    def _cancel_timer(self):
        if self._timer is not None and self._timer is not asyncio.current_task():
            self._timer.cancel()
        self._timer = None
