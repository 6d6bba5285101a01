"""Async HTTP client for the chat API.

Every write goes through here; the socket only carries pushed events.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..chat.conversations import parse_key

logger = logging.getLogger(__name__)


class ChatApiError(Exception):
    """Raised for a failed request. ``status_code`` is None when the
    server was never reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def offline(self) -> bool:
        return self.status_code is None


class ChatApi:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = await self._client.request(
                method, f"{self.base_url}/api{path}", headers=headers, **kwargs
            )
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ChatApiError(f"Network error: {e}") from e

        if response.is_error:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            if not isinstance(detail, str):
                detail = "Invalid request"
            raise ChatApiError(detail, response.status_code)
        return response.json()

    # --- Auth ---

    async def register(self, username: str, display_name: str, avatar: Optional[str] = None) -> Dict:
        data = await self._request(
            "POST",
            "/auth/register",
            json={"username": username, "displayName": display_name, "avatar": avatar},
        )
        self.token = data["token"]
        return data

    async def session(self) -> Dict:
        return await self._request("GET", "/auth/session")

    # --- Conversations ---

    @staticmethod
    def _base_path(conversation: str, me: str) -> str:
        target = parse_key(conversation)
        if target.is_room:
            return f"/chat/rooms/{target.room_id}"
        return f"/chat/direct/{target.other(me)}"

    async def messages(
        self,
        conversation: str,
        me: str,
        before: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Dict:
        params = {k: v for k, v in (("before", before), ("limit", limit)) if v is not None}
        return await self._request(
            "GET", f"{self._base_path(conversation, me)}/messages", params=params
        )

    async def send_message(self, conversation: str, me: str, text: str) -> Dict:
        return await self._request(
            "POST", f"{self._base_path(conversation, me)}/messages", json={"text": text}
        )

    async def mark_read(self, conversation: str, me: str) -> Dict:
        return await self._request("POST", f"{self._base_path(conversation, me)}/read")

    async def upload(self, conversation: str, me: str, filename: str, content: bytes,
                     content_type: str = "application/octet-stream") -> Dict:
        target = parse_key(conversation)
        if target.is_room:
            data = {"roomId": str(target.room_id)}
        else:
            data = {"recipientId": target.other(me)}
        return await self._request(
            "POST",
            "/chat/upload",
            data=data,
            files={"file": (filename, content, content_type)},
        )

    # --- Rooms ---

    async def rooms(self) -> List[Dict]:
        return (await self._request("GET", "/chat/rooms"))["rooms"]

    async def create_room(self, name: str, description: str = "", category: str = "general",
                          is_private: bool = False) -> Dict:
        return await self._request(
            "POST",
            "/chat/rooms",
            json={
                "name": name,
                "description": description,
                "category": category,
                "isPrivate": is_private,
            },
        )

    async def join_room(self, room_id: int) -> Dict:
        return await self._request("POST", f"/chat/rooms/{room_id}/join")

    async def leave_room(self, room_id: int) -> Dict:
        return await self._request("POST", f"/chat/rooms/{room_id}/leave")

    # --- Contacts ---

    async def direct_contacts(self) -> List[Dict]:
        return (await self._request("GET", "/chat/direct"))["contacts"]

    async def requests(self) -> List[Dict]:
        return (await self._request("GET", "/chat/requests"))["requests"]

    async def send_request(self, user_id: str) -> Dict:
        return await self._request("POST", "/chat/requests", json={"userId": user_id})

    async def accept_request(self, user_id: str) -> Dict:
        return await self._request("POST", "/chat/accept-request", json={"userId": user_id})

    async def decline_request(self, user_id: str) -> Dict:
        return await self._request("POST", "/chat/decline-request", json={"userId": user_id})

    # --- Misc ---

    async def like(self, message_id: int, liked: bool = True) -> Dict:
        action = "like" if liked else "unlike"
        return await self._request("POST", f"/chat/messages/{message_id}/{action}")

    async def unread(self) -> Dict[str, int]:
        return (await self._request("GET", "/chat/unread"))["counts"]

    async def users(self) -> List[Dict]:
        return (await self._request("GET", "/users"))["users"]
