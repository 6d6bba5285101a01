"""WebSocket transport for chat clients.

Keeps one socket to ``/ws/chat`` open, authenticates it with the first
frame, and hands every pushed event to the handlers registered for its
``type``. A dropped connection is retried with exponential backoff; after
too many failed attempts, or when the server rejects the token, the
transport gives up and says so instead of retrying forever.
"""
import asyncio
import inspect
import json
import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import websockets
from pydantic import ValidationError as SchemaError
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..chat.events import server_event_adapter

logger = logging.getLogger(__name__)

POLICY_VIOLATION = 1008

Handler = Callable[[Any], Any]


class TransportState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECTING = "reconnecting"
    GAVE_UP = "gave_up"
    CLOSED = "closed"


@dataclass(frozen=True)
class ReconnectPolicy:
    """Exponential backoff between reconnect attempts.

    Attributes:
        base_delay: Seconds before the first retry.
        factor: Multiplier applied per further attempt.
        max_delay: Upper bound on a single wait.
        max_attempts: Attempts before giving up for good.
    """
    base_delay: float = 1.0
    factor: float = 2.0
    max_delay: float = 30.0
    max_attempts: int = 8

    def delay(self, attempt: int) -> float:
        """Seconds to wait before the given attempt, counting from 1."""
        return min(self.base_delay * self.factor ** (attempt - 1), self.max_delay)


GAVE_UP_NOTICE = "Connection lost. Reload to reconnect."
REJECTED_NOTICE = "Session expired. Please sign in again."


class TransportManager:
    """Owns the chat socket and its reconnect loop.

    ``connect`` and ``sleep`` default to ``websockets.connect`` and
    ``asyncio.sleep`` and can be replaced, which is how tests drive the
    loop without a network or a clock.
    """

    def __init__(
        self,
        url: str,
        token: str,
        *,
        policy: Optional[ReconnectPolicy] = None,
        connect: Optional[Callable[[str], Any]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.url = url
        self.token = token
        self.policy = policy or ReconnectPolicy()
        self.state = TransportState.IDLE
        self.notice: Optional[str] = None
        self.attempt = 0
        self._connect = connect or websockets.connect
        self._sleep = sleep or asyncio.sleep
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._state_handlers: List[Handler] = []
        self._reconnect_handlers: List[Handler] = []
        self._ws = None
        self._task: Optional[asyncio.Task] = None
        self._closing = False
        self._was_open = False

    # --- Registration ---

    def on(self, event_type: str, handler: Handler):
        """Call ``handler(event)`` for every pushed event of this type."""
        self._handlers[event_type].append(handler)

    def on_state(self, handler: Handler):
        self._state_handlers.append(handler)

    def on_reconnect(self, handler: Handler):
        """Call ``handler()`` each time the socket is re-established."""
        self._reconnect_handlers.append(handler)

    # --- Lifecycle ---

    def start(self) -> asyncio.Task:
        """Run the connection loop in the background."""
        if self._task is None or self._task.done():
            self._closing = False
            # A fresh run starts a fresh backoff and is not a reconnect
            self.attempt = 0
            self._was_open = False
            self._task = asyncio.create_task(self.run())
        return self._task

    async def close(self):
        """Close the socket and stop reconnecting."""
        self._closing = True
        if self._ws is not None:
            try:
                await self._ws.close()
            except WebSocketException as e:
                logger.debug("Error closing socket: %s", e)
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        await self._set_state(TransportState.CLOSED)

    async def run(self):
        """Connect, receive until the socket drops, back off, repeat."""
        await self._set_state(TransportState.CONNECTING)

        while not self._closing:
            rejected = False
            try:
                async with self._connect(self.url) as ws:
                    self._ws = ws
                    await ws.send(json.dumps({"type": "auth", "token": self.token}))
                    await self._receive_loop(ws)
                    rejected = self._rejected(getattr(ws, "close_code", None))
            except asyncio.CancelledError:
                raise
            except ConnectionClosed as e:
                rejected = self._rejected(e.rcvd.code if e.rcvd else None)
                logger.warning("Chat socket closed: %s", e)
            except (OSError, WebSocketException, asyncio.TimeoutError) as e:
                logger.warning("Chat socket error: %s", e)
            finally:
                self._ws = None

            if self._closing:
                break

            if rejected:
                logger.error("Chat server rejected the session token")
                await self._give_up(REJECTED_NOTICE)
                return

            self.attempt += 1
            if self.attempt > self.policy.max_attempts:
                logger.error("Giving up after %d reconnect attempts", self.policy.max_attempts)
                await self._give_up(GAVE_UP_NOTICE)
                return

            delay = self.policy.delay(self.attempt)
            logger.info("Reconnecting in %.1fs (attempt %d)", delay, self.attempt)
            await self._set_state(TransportState.RECONNECTING)
            await self._sleep(delay)

    # --- Sending ---

    async def send(self, frame: Dict) -> bool:
        """Send a frame if the socket is open. Returns whether it was sent."""
        if self._ws is None or self.state != TransportState.OPEN:
            return False
        try:
            await self._ws.send(json.dumps(frame))
        except (ConnectionClosed, OSError) as e:
            logger.warning("Could not send %s frame: %s", frame.get("type"), e)
            return False
        return True

    # --- Internals ---

    async def _receive_loop(self, ws):
        async for raw in ws:
            try:
                event = server_event_adapter.validate_json(raw)
            except SchemaError as e:
                logger.warning("Dropping malformed frame: %s", e.errors()[0]['msg'])
                continue

            if event.type == "connected":
                await self._opened()
            await self._dispatch(self._handlers.get(event.type, []), event)

    async def _opened(self):
        self.attempt = 0
        self.notice = None
        reconnected = self._was_open
        self._was_open = True
        await self._set_state(TransportState.OPEN)
        if reconnected:
            logger.info("Chat socket re-established")
            await self._dispatch(self._reconnect_handlers)

    async def _give_up(self, notice: str):
        self.notice = notice
        await self._set_state(TransportState.GAVE_UP)

    async def _set_state(self, state: TransportState):
        if state == self.state:
            return
        self.state = state
        await self._dispatch(self._state_handlers, state)

    async def _dispatch(self, handlers: List[Handler], *args):
        for handler in handlers:
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler %r failed", handler)

    @staticmethod
    def _rejected(code: Optional[int]) -> bool:
        return code == POLICY_VIOLATION
