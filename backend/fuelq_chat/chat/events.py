"""Frames exchanged over the real-time chat socket.

Every frame is a JSON object tagged by ``type``. Server-pushed events and
client-sent frames are each a discriminated union, so a frame is validated
against exactly the model its tag names and anything else is rejected.
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from .schemas import ConnectionRequestOut, MessageOut, RoomOut
from ..users.schemas import UserInfo


# =============================================================================
# Server -> client
# =============================================================================


class ConnectedEvent(BaseModel):
    type: Literal["connected"] = "connected"
    userId: str


class NewMessageEvent(BaseModel):
    type: Literal["new_message"] = "new_message"
    message: MessageOut


class TypingEvent(BaseModel):
    type: Literal["typing"] = "typing"
    conversation: str
    userId: str
    userName: str


class StopTypingEvent(BaseModel):
    type: Literal["stop_typing"] = "stop_typing"
    conversation: str
    userId: str


class UserOnlineEvent(BaseModel):
    type: Literal["user_online"] = "user_online"
    user: UserInfo


class UserOfflineEvent(BaseModel):
    type: Literal["user_offline"] = "user_offline"
    user: UserInfo


class RoomUpdatedEvent(BaseModel):
    type: Literal["room_updated"] = "room_updated"
    room: RoomOut


class ConnectionRequestEvent(BaseModel):
    type: Literal["connection_request"] = "connection_request"
    request: ConnectionRequestOut


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str


class PongEvent(BaseModel):
    type: Literal["pong"] = "pong"


ServerEvent = Annotated[
    Union[
        ConnectedEvent,
        NewMessageEvent,
        TypingEvent,
        StopTypingEvent,
        UserOnlineEvent,
        UserOfflineEvent,
        RoomUpdatedEvent,
        ConnectionRequestEvent,
        ErrorEvent,
        PongEvent,
    ],
    Field(discriminator="type"),
]

server_event_adapter = TypeAdapter(ServerEvent)


# =============================================================================
# Client -> server
# =============================================================================


class AuthFrame(BaseModel):
    type: Literal["auth"] = "auth"
    token: str


class ViewFrame(BaseModel):
    type: Literal["view"] = "view"
    conversation: Optional[str] = None


class TypingFrame(BaseModel):
    type: Literal["typing"] = "typing"
    conversation: str


class StopTypingFrame(BaseModel):
    type: Literal["stop_typing"] = "stop_typing"
    conversation: str


class PingFrame(BaseModel):
    type: Literal["ping"] = "ping"


ClientFrame = Annotated[
    Union[AuthFrame, ViewFrame, TypingFrame, StopTypingFrame, PingFrame],
    Field(discriminator="type"),
]

client_frame_adapter = TypeAdapter(ClientFrame)
