"""Pydantic schemas for the chat API."""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from ..users.schemas import UserInfo


class FileInfo(BaseModel):
    name: str
    type: str
    size: int
    url: str


class MessageOut(BaseModel):
    id: int
    conversation: str
    roomId: Optional[int] = None
    recipientId: Optional[str] = None
    senderId: str
    authorName: str
    authorAvatar: Optional[str] = None
    text: str = ""
    file: Optional[FileInfo] = None
    timestamp: str
    likesCount: int = 0
    isLiked: bool = False


class MessagesResponse(BaseModel):
    messages: List[MessageOut]
    hasMore: bool


class SendMessageRequest(BaseModel):
    text: str = Field(..., max_length=5000)


class UploadResponse(BaseModel):
    id: int
    file: FileInfo
    message: MessageOut


class RoomOut(BaseModel):
    id: int
    name: str
    description: str = ""
    category: str = "general"
    isPrivate: bool = False
    createdBy: str
    createdAt: str
    participantCount: int = 0
    isMember: bool = False
    unread: int = 0


class RoomListResponse(BaseModel):
    rooms: List[RoomOut]


class RoomRequest(BaseModel):
    name: str
    description: str = ""
    category: str = "general"
    isPrivate: bool = False


class AddParticipantRequest(BaseModel):
    userId: str


class ParticipantsResponse(BaseModel):
    participants: List[UserInfo]


class ReadResponse(BaseModel):
    status: str
    unread: int


class StatusResponse(BaseModel):
    status: str


class LikeResponse(BaseModel):
    likesCount: int
    isLiked: bool


class ConnectionRequestBody(BaseModel):
    userId: str


class ConnectionRequestOut(BaseModel):
    id: str
    name: str
    avatar: Optional[str] = None
    createdAt: str


class ConnectionRequestsResponse(BaseModel):
    requests: List[ConnectionRequestOut]


class AcceptRequestResponse(BaseModel):
    status: str
    user: UserInfo


class DirectContact(UserInfo):
    conversation: str
    unread: int = 0


class DirectListResponse(BaseModel):
    contacts: List[DirectContact]


class UnreadResponse(BaseModel):
    counts: Dict[str, int]


class SearchResponse(BaseModel):
    messages: List[MessageOut]
    total: int
