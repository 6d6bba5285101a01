"""Chat API routes."""
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from .contacts import (
    accept_request,
    decline_request,
    get_contacts,
    get_pending_requests,
    send_request,
)
from .conversations import Conversation, message_conversation
from .hub import hub
from .rooms import (
    add_participant,
    check_read_access,
    create_room,
    ensure_can_post,
    get_room_members,
    get_user_rooms,
    join_room,
    leave_room,
    participants_of,
    require_room,
    update_room,
)
from .schemas import (
    AcceptRequestResponse,
    AddParticipantRequest,
    ConnectionRequestBody,
    ConnectionRequestOut,
    ConnectionRequestsResponse,
    DirectListResponse,
    LikeResponse,
    MessageOut,
    MessagesResponse,
    ParticipantsResponse,
    ReadResponse,
    RoomListResponse,
    RoomOut,
    RoomRequest,
    SearchResponse,
    SendMessageRequest,
    StatusResponse,
    UnreadResponse,
    UploadResponse,
)
from .store import (
    MessageLog,
    get_message,
    get_unread,
    get_unread_counts,
    like_message,
    search_messages,
    unlike_message,
)
from .uploads import save_upload
from ..config import MAX_UPLOAD_BYTES
from ..dependencies import require_auth
from ..errors import ChatError, ValidationError, handle_chat_error
from ..users.services import get_user, get_users

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def _room_audience(room: Dict) -> List[str]:
    """Who hears about changes to a room: everyone online for public rooms."""
    if room['isPrivate']:
        return get_room_members(room['id'])
    return hub.connections.connected_users()


async def _post_message(
    conversation: Conversation,
    user_id: str,
    text: str = '',
    file: Optional[Dict] = None,
) -> Dict:
    """Validate and authorize a message, then publish it."""
    if not file and not text.strip():
        raise ValidationError("Message text is required")
    ensure_can_post(conversation, user_id)
    return await _publish(conversation, user_id, text, file)


async def _publish(
    conversation: Conversation,
    user_id: str,
    text: str = '',
    file: Optional[Dict] = None,
) -> Dict:
    """Persist a message, then push it to the conversation's participants."""
    message = MessageLog(conversation).append(user_id, text, file)
    await hub.deliver(message, participants_of(conversation))
    return message


def _list_messages(
    conversation: Conversation,
    user_id: str,
    before: Optional[int],
    limit: Optional[int],
) -> MessagesResponse:
    check_read_access(conversation, user_id)
    messages, has_more = MessageLog(conversation).list(user_id, before=before, limit=limit)
    return MessagesResponse(messages=messages, hasMore=has_more)


def _mark_read(conversation: Conversation, user_id: str) -> ReadResponse:
    check_read_access(conversation, user_id)
    MessageLog(conversation).mark_read(user_id)
    return ReadResponse(status="ok", unread=get_unread(user_id, conversation.key))


# --- Rooms ---

@router.get("/rooms", response_model=RoomListResponse)
async def list_rooms(user_id: str = Depends(require_auth)):
    """Get rooms visible to the current user with their unread counts."""
    return RoomListResponse(rooms=get_user_rooms(user_id))


@router.post("/rooms", response_model=RoomOut, status_code=201)
async def create_new_room(request: RoomRequest, user_id: str = Depends(require_auth)):
    """Create a new chat room."""
    try:
        room = create_room(
            request.name,
            user_id,
            description=request.description,
            category=request.category,
            is_private=request.isPrivate,
        )
    except ChatError as e:
        raise handle_chat_error(e)

    logger.info("Room %s (%s) created by %s", room['id'], room['name'], user_id)
    await hub.room_updated(room, _room_audience(room))
    return room


@router.get("/rooms/{room_id}", response_model=RoomOut)
async def get_room_info(room_id: int, user_id: str = Depends(require_auth)):
    try:
        check_read_access(Conversation.room(room_id), user_id)
        return require_room(room_id, user_id)
    except ChatError as e:
        raise handle_chat_error(e)


@router.get("/rooms/{room_id}/settings", response_model=RoomOut)
async def get_room_settings(room_id: int, user_id: str = Depends(require_auth)):
    """Get room settings."""
    return await get_room_info(room_id, user_id)


@router.put("/rooms/{room_id}/settings", response_model=RoomOut)
async def save_room_settings(
    room_id: int,
    request: RoomRequest,
    user_id: str = Depends(require_auth),
):
    """Update room settings and tell everyone who can see the room."""
    try:
        room = update_room(
            room_id,
            user_id,
            request.name,
            description=request.description,
            category=request.category,
            is_private=request.isPrivate,
        )
    except ChatError as e:
        raise handle_chat_error(e)

    await hub.room_updated(room, _room_audience(room))
    return room


@router.get("/rooms/{room_id}/participants", response_model=ParticipantsResponse)
async def list_participants(room_id: int, user_id: str = Depends(require_auth)):
    """Get room participants with presence."""
    try:
        check_read_access(Conversation.room(room_id), user_id)
    except ChatError as e:
        raise handle_chat_error(e)
    return ParticipantsResponse(participants=get_users(get_room_members(room_id)))


@router.post("/rooms/{room_id}/participants", response_model=StatusResponse)
async def invite_participant(
    room_id: int,
    request: AddParticipantRequest,
    user_id: str = Depends(require_auth),
):
    """Add one of the caller's contacts to a room."""
    try:
        add_participant(room_id, user_id, request.userId)
        room = require_room(room_id)
    except ChatError as e:
        raise handle_chat_error(e)

    await hub.room_updated(room, _room_audience(room))
    return StatusResponse(status="ok")


@router.post("/rooms/{room_id}/join", response_model=StatusResponse)
async def join(room_id: int, user_id: str = Depends(require_auth)):
    """Join a public room."""
    try:
        joined = join_room(room_id, user_id)
        room = require_room(room_id)
    except ChatError as e:
        raise handle_chat_error(e)

    if joined:
        await hub.room_updated(room, _room_audience(room))
    return StatusResponse(status="ok")


@router.post("/rooms/{room_id}/leave", response_model=StatusResponse)
async def leave(room_id: int, user_id: str = Depends(require_auth)):
    """Leave a room."""
    try:
        if not leave_room(room_id, user_id):
            raise HTTPException(status_code=400, detail="Not a participant of this room")
        room = require_room(room_id)
    except ChatError as e:
        raise handle_chat_error(e)

    await hub.room_updated(room, _room_audience(room) + [user_id])
    return StatusResponse(status="ok")


@router.get("/rooms/{room_id}/messages", response_model=MessagesResponse)
async def get_room_messages(
    room_id: int,
    before: Optional[int] = Query(None, description="Return messages older than this id"),
    limit: Optional[int] = Query(None, ge=1, description="Page size"),
    user_id: str = Depends(require_auth),
):
    """Get a page of room history, oldest first."""
    try:
        return _list_messages(Conversation.room(room_id), user_id, before, limit)
    except ChatError as e:
        raise handle_chat_error(e)


@router.post("/rooms/{room_id}/messages", response_model=MessageOut, status_code=201)
async def send_room_message(
    room_id: int,
    request: SendMessageRequest,
    user_id: str = Depends(require_auth),
):
    """Send a message to a room."""
    try:
        return await _post_message(Conversation.room(room_id), user_id, request.text)
    except ChatError as e:
        raise handle_chat_error(e)


@router.post("/rooms/{room_id}/read", response_model=ReadResponse)
async def mark_room_read(room_id: int, user_id: str = Depends(require_auth)):
    """Reset the caller's unread counter for a room."""
    try:
        return _mark_read(Conversation.room(room_id), user_id)
    except ChatError as e:
        raise handle_chat_error(e)


@router.post("/rooms/{room_id}/typing", response_model=StatusResponse)
async def room_typing(room_id: int, user_id: str = Depends(require_auth)):
    try:
        conversation = Conversation.room(room_id)
        check_read_access(conversation, user_id)
    except ChatError as e:
        raise handle_chat_error(e)
    await hub.typing_started(conversation, user_id)
    return StatusResponse(status="ok")


@router.post("/rooms/{room_id}/stop-typing", response_model=StatusResponse)
async def room_stop_typing(room_id: int, user_id: str = Depends(require_auth)):
    try:
        conversation = Conversation.room(room_id)
        check_read_access(conversation, user_id)
    except ChatError as e:
        raise handle_chat_error(e)
    await hub.typing_stopped(conversation, user_id)
    return StatusResponse(status="ok")


# --- Direct messages ---

@router.get("/direct", response_model=DirectListResponse)
async def list_direct(user_id: str = Depends(require_auth)):
    """Get the caller's direct-message contacts with presence and unread counts."""
    contacts = []
    for contact in get_users(get_contacts(user_id)):
        key = Conversation.direct(user_id, contact['id']).key
        contacts.append({**contact, 'conversation': key, 'unread': get_unread(user_id, key)})
    return DirectListResponse(contacts=contacts)


@router.get("/direct/{other_id}/messages", response_model=MessagesResponse)
async def get_direct_messages(
    other_id: str,
    before: Optional[int] = Query(None, description="Return messages older than this id"),
    limit: Optional[int] = Query(None, ge=1, description="Page size"),
    user_id: str = Depends(require_auth),
):
    """Get a page of direct-message history, oldest first."""
    try:
        return _list_messages(Conversation.direct(user_id, other_id), user_id, before, limit)
    except ChatError as e:
        raise handle_chat_error(e)


@router.post("/direct/{other_id}/messages", response_model=MessageOut, status_code=201)
async def send_direct_message(
    other_id: str,
    request: SendMessageRequest,
    user_id: str = Depends(require_auth),
):
    """Send a direct message to a contact."""
    try:
        return await _post_message(Conversation.direct(user_id, other_id), user_id, request.text)
    except ChatError as e:
        raise handle_chat_error(e)


@router.post("/direct/{other_id}/read", response_model=ReadResponse)
async def mark_direct_read(other_id: str, user_id: str = Depends(require_auth)):
    """Reset the caller's unread counter for a direct conversation."""
    try:
        return _mark_read(Conversation.direct(user_id, other_id), user_id)
    except ChatError as e:
        raise handle_chat_error(e)


# --- Likes ---

def _readable_message(message_id: int, user_id: str) -> Dict:
    message = get_message(message_id, user_id)
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    try:
        check_read_access(message_conversation(message), user_id)
    except ChatError as e:
        raise handle_chat_error(e)
    return message


@router.post("/messages/{message_id}/like", response_model=LikeResponse)
async def like(message_id: int, user_id: str = Depends(require_auth)):
    _readable_message(message_id, user_id)
    return LikeResponse(likesCount=like_message(message_id, user_id), isLiked=True)


@router.post("/messages/{message_id}/unlike", response_model=LikeResponse)
async def unlike(message_id: int, user_id: str = Depends(require_auth)):
    _readable_message(message_id, user_id)
    return LikeResponse(likesCount=unlike_message(message_id, user_id), isLiked=False)


# --- Connection requests ---

@router.get("/requests", response_model=ConnectionRequestsResponse)
async def list_requests(user_id: str = Depends(require_auth)):
    """Get pending connection requests addressed to the caller."""
    return ConnectionRequestsResponse(requests=get_pending_requests(user_id))


@router.post("/requests", response_model=ConnectionRequestOut, status_code=201)
async def create_request(request: ConnectionRequestBody, user_id: str = Depends(require_auth)):
    """Propose a direct conversation to another user."""
    try:
        pending = send_request(user_id, request.userId)
    except ChatError as e:
        raise handle_chat_error(e)

    await hub.connection_request(pending, request.userId)
    return pending


@router.post("/accept-request", response_model=AcceptRequestResponse)
async def accept_connection_request(
    request: ConnectionRequestBody,
    user_id: str = Depends(require_auth),
):
    """Accept a pending connection request."""
    try:
        accept_request(user_id, request.userId)
    except ChatError as e:
        raise handle_chat_error(e)

    logger.info("%s accepted connection request from %s", user_id, request.userId)
    return AcceptRequestResponse(status="ok", user=get_user(request.userId))


@router.post("/decline-request", response_model=StatusResponse)
async def decline_connection_request(
    request: ConnectionRequestBody,
    user_id: str = Depends(require_auth),
):
    """Decline a pending connection request."""
    try:
        decline_request(user_id, request.userId)
    except ChatError as e:
        raise handle_chat_error(e)
    return StatusResponse(status="ok")


# --- Uploads ---

@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    roomId: Optional[int] = Form(None),
    recipientId: Optional[str] = Form(None),
    user_id: str = Depends(require_auth),
):
    """Upload a file into a room or direct conversation as a message."""
    if (roomId is None) == (recipientId is None):
        raise HTTPException(status_code=400, detail="Exactly one of roomId or recipientId is required")

    try:
        if roomId is not None:
            conversation = Conversation.room(roomId)
        else:
            conversation = Conversation.direct(user_id, recipientId)
        ensure_can_post(conversation, user_id)
        # One byte past the limit is enough to reject without buffering the rest
        content = await file.read(MAX_UPLOAD_BYTES + 1)
        descriptor = save_upload(file.filename, content, file.content_type)
        message = await _publish(conversation, user_id, file=descriptor)
    except ChatError as e:
        raise handle_chat_error(e)

    return UploadResponse(id=message['id'], file=descriptor, message=message)


# --- Unread & search ---

@router.get("/unread", response_model=UnreadResponse)
async def unread_counts(user_id: str = Depends(require_auth)):
    """Get all non-zero unread counters of the caller."""
    return UnreadResponse(counts=get_unread_counts(user_id))


@router.get("/search", response_model=SearchResponse)
async def search(
    q: str = Query(..., min_length=1, description="Search text in messages"),
    limit: int = Query(50, ge=1, le=200, description="Number of results to return"),
    offset: int = Query(0, ge=0, description="Number of results to skip"),
    user_id: str = Depends(require_auth),
):
    """Search messages in every conversation the caller can read."""
    messages, total = search_messages(user_id, q, limit=limit, offset=offset)
    return SearchResponse(messages=messages, total=total)
