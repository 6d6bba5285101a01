"""One signed-in user's chat view.

ChatSession wires the HTTP API, the socket transport, the reconciler, the
typing emitter and the notifier together and owns the state a chat window
shows: the active conversation and its messages, unread counters, who is
online and typing, pending connection requests and on-screen notices.

Nothing here raises into the caller. Every failure ends up as a notice,
and a failed send stays on screen as a failed message that can be retried.
"""
import logging
import mimetypes
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from .api import ChatApi, ChatApiError
from .notifications import Notifier
from .reconciler import ClientReconciler, Entry, ReconcileError
from .transport import TransportManager, TransportState
from .typing_emitter import TypingEmitter
from ..chat.conversations import Conversation, parse_key
from ..config import MAX_UPLOAD_BYTES
from ..errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    level: str
    text: str


class ChatSession:
    def __init__(
        self,
        user_id: str,
        api: ChatApi,
        transport: TransportManager,
        reconciler: Optional[ClientReconciler] = None,
        typing: Optional[TypingEmitter] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.user_id = user_id
        self.api = api
        self.transport = transport
        self.reconciler = reconciler or ClientReconciler(user_id)
        self.typing = typing or TypingEmitter(transport.send)
        self.notifier = notifier or Notifier()

        self.active: Optional[str] = None
        self.has_more: Dict[str, bool] = {}
        self.unread: Dict[str, int] = defaultdict(int)
        self.presence: Dict[str, str] = {}
        self.typing_users: Dict[str, Set[str]] = defaultdict(set)
        self.rooms: Dict[int, Dict] = {}
        self.requests: Dict[str, Dict] = {}
        self.notices: List[Notice] = []
        self._uploads: Dict[str, tuple] = {}

        transport.on("new_message", self._on_new_message)
        transport.on("typing", self._on_typing)
        transport.on("stop_typing", self._on_stop_typing)
        transport.on("user_online", self._on_presence)
        transport.on("user_offline", self._on_presence)
        transport.on("room_updated", self._on_room_updated)
        transport.on("connection_request", self._on_connection_request)
        transport.on("error", self._on_error)
        transport.on_state(self._on_state)
        transport.on_reconnect(self.resync)

    # --- Lifecycle ---

    async def start(self):
        """Load the sidebar and open the socket."""
        try:
            self.rooms = {room['id']: room for room in await self.api.rooms()}
            self.presence = {user['id']: user['status'] for user in await self.api.users()}
            self.requests = {req['id']: req for req in await self.api.requests()}
            self.unread.update(await self.api.unread())
        except ChatApiError as e:
            self.notify("error", f"Could not load chat: {e.message}")
        self.transport.start()

    async def close(self):
        await self.typing.stop()
        await self.transport.close()
        await self.api.aclose()

    def notify(self, level: str, text: str):
        logger.debug("[%s] %s", level, text)
        self.notices.append(Notice(level, text))

    def direct_key(self, other_id: str) -> str:
        return Conversation.direct(self.user_id, other_id).key

    def messages(self, conversation: Optional[str] = None) -> List[Entry]:
        return self.reconciler.entries(conversation or self.active)

    # --- Conversations ---

    async def open_conversation(self, conversation: str) -> bool:
        """Show a conversation: load its latest page, mark it read and tell
        the server this tab is viewing it."""
        try:
            parse_key(conversation)
        except ValidationError as e:
            self.notify("error", e.message)
            return False

        if self.active != conversation:
            await self.typing.stop()
        self.active = conversation

        try:
            await self._load_latest(conversation)
            await self.api.mark_read(conversation, self.user_id)
        except ChatApiError as e:
            self.notify("error", f"Could not load messages: {e.message}")
            return False

        self.unread.pop(conversation, None)
        await self.transport.send({"type": "view", "conversation": conversation})
        return True

    async def load_older(self) -> int:
        """Load the page before the oldest stored message. Returns how many
        messages arrived."""
        if not self.active or not self.has_more.get(self.active):
            return 0
        ids = [e.message_id for e in self.reconciler.entries(self.active) if e.message_id is not None]
        try:
            page = await self.api.messages(self.active, self.user_id, before=min(ids) if ids else None)
        except ChatApiError as e:
            self.notify("error", f"Could not load messages: {e.message}")
            return 0
        self.reconciler.load(page['messages'])
        self.has_more[self.active] = page['hasMore']
        return len(page['messages'])

    async def resync(self):
        """Catch up after the socket was re-established."""
        logger.info("Resyncing chat state")
        try:
            counts = await self.api.unread()
            requests = await self.api.requests()
            self.unread.clear()
            self.unread.update(counts)
            self.requests = {req['id']: req for req in requests}
            if self.active:
                await self._load_latest(self.active)
                self.unread.pop(self.active, None)
        except ChatApiError as e:
            self.notify("error", f"Could not refresh chat: {e.message}")
            return
        if self.active:
            await self.transport.send({"type": "view", "conversation": self.active})

    async def _load_latest(self, conversation: str):
        page = await self.api.messages(conversation, self.user_id)
        self.reconciler.load(page['messages'])
        self.has_more[conversation] = page['hasMore']

    # --- Sending ---

    async def send_text(self, text: str) -> Optional[Entry]:
        if not text.strip():
            self.notify("error", "Message text is required")
            return None
        if not self.active:
            self.notify("error", "Select a conversation first")
            return None

        await self.typing.stop()
        entry = self.reconciler.begin(self.active, text=text)
        await self._deliver(entry)
        return entry

    async def send_file(self, path: Union[str, Path]) -> Optional[Entry]:
        """Upload a file as a message in the active conversation."""
        path = Path(path)
        if not self.active:
            self.notify("error", "Select a conversation first")
            return None
        try:
            size = path.stat().st_size
            if size > MAX_UPLOAD_BYTES:
                self.notify("error", "File size should be less than 10MB")
                return None
            content = path.read_bytes()
        except OSError as e:
            self.notify("error", f"Could not read {path.name}: {e.strerror}")
            return None

        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        entry = self.reconciler.begin(
            self.active, file={'name': path.name, 'type': content_type, 'size': size}
        )
        self._uploads[entry.temp_id] = (path.name, content, content_type)
        await self._deliver(entry)
        return entry

    async def retry(self, temp_id: str) -> bool:
        """Re-send a failed message with the same content."""
        try:
            entry = self.reconciler.retry(temp_id)
        except ReconcileError as e:
            self.notify("error", str(e))
            return False
        return await self._deliver(entry)

    async def _deliver(self, entry: Entry) -> bool:
        if self.transport.state != TransportState.OPEN:
            self.reconciler.fail(entry.temp_id)
            self.notify("error", "You are offline. Message not sent.")
            return False

        try:
            if entry.temp_id in self._uploads:
                filename, content, content_type = self._uploads[entry.temp_id]
                result = await self.api.upload(
                    entry.conversation, self.user_id, filename, content, content_type
                )
                message = result['message']
            else:
                message = await self.api.send_message(entry.conversation, self.user_id, entry.text)
        except ChatApiError as e:
            self.reconciler.fail(entry.temp_id)
            self.notify("error", f"Message not sent: {e.message}")
            return False

        self._uploads.pop(entry.temp_id, None)
        self.reconciler.confirm(entry.temp_id, message)
        return True

    async def keystroke(self):
        if self.active:
            await self.typing.keystroke(self.active)

    async def like(self, message_id: int, liked: bool = True):
        try:
            result = await self.api.like(message_id, liked)
        except ChatApiError as e:
            self.notify("error", e.message)
            return
        self.reconciler.set_likes(message_id, result['likesCount'], result['isLiked'])

    # --- Rooms & contacts ---

    async def create_room(
        self,
        name: str,
        description: str = "",
        category: str = "general",
        is_private: bool = False,
    ) -> Optional[Dict]:
        if not name.strip():
            self.notify("error", "Room name is required")
            return None

        try:
            room = await self.api.create_room(name.strip(), description, category, is_private)
        except ChatApiError as e:
            self.notify("error", f"Could not create room: {e.message}")
            return None

        self.rooms[room['id']] = room
        self.notify("success", f"Room {room['name']} created")
        return room

    async def request_contact(self, user_id: str) -> bool:
        try:
            await self.api.send_request(user_id)
        except ChatApiError as e:
            self.notify("error", e.message)
            return False
        self.notify("success", "Connection request sent")
        return True

    async def accept_request(self, user_id: str) -> bool:
        try:
            result = await self.api.accept_request(user_id)
        except ChatApiError as e:
            self.notify("error", e.message)
            return False
        self.requests.pop(user_id, None)
        user = result['user']
        self.presence[user['id']] = user['status']
        self.notify("success", f"You are now connected with {user['name']}")
        return True

    async def decline_request(self, user_id: str) -> bool:
        try:
            await self.api.decline_request(user_id)
        except ChatApiError as e:
            self.notify("error", e.message)
            return False
        self.requests.pop(user_id, None)
        return True

    # --- Pushed events ---

    async def _on_new_message(self, event):
        message = event.message.model_dump(mode="json")
        conversation = message['conversation']
        from_me = message['senderId'] == self.user_id

        if conversation == self.active:
            self.reconciler.receive(message)
            self.typing_users[conversation].discard(message['senderId'])
            if not from_me:
                self.notifier.play_sound()
            return

        if from_me:
            return

        self.unread[conversation] += 1
        body = message['text'] or (message['file'] or {}).get('name', '')
        await self.notifier.notify(body, title=message['authorName'], icon=message['authorAvatar'])
        self.notifier.play_sound()

    def _on_typing(self, event):
        if event.userId != self.user_id:
            self.typing_users[event.conversation].add(event.userId)

    def _on_stop_typing(self, event):
        self.typing_users[event.conversation].discard(event.userId)

    def _on_presence(self, event):
        self.presence[event.user.id] = event.user.status

    def _on_room_updated(self, event):
        room = event.room.model_dump(mode="json")
        # unread and isMember in a pushed room belong to whoever changed it
        known = self.rooms.get(room['id'], {})
        room['unread'] = known.get('unread', 0)
        room['isMember'] = known.get('isMember', room['createdBy'] == self.user_id)
        self.rooms[room['id']] = room

    async def _on_connection_request(self, event):
        request = event.request.model_dump(mode="json")
        self.requests[request['id']] = request
        self.notifier.play_sound()
        await self.notifier.notify(
            f"{request['name']} wants to connect with you",
            title="New Connection Request",
            icon=request['avatar'],
        )

    def _on_error(self, event):
        self.notify("error", event.message)

    def _on_state(self, state: TransportState):
        if state == TransportState.RECONNECTING:
            self.notify("warning", "Disconnected from chat. Reconnecting...")
        elif state == TransportState.GAVE_UP:
            self.notify("error", self.transport.notice)
