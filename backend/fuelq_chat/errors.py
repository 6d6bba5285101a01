"""Exceptions raised by chat services and their HTTP translation."""
from fastapi import HTTPException


class ChatError(Exception):
    """Base exception for chat service errors."""
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ValidationError(ChatError):
    """Raised when a request is well-formed but semantically invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class PermissionDeniedError(ChatError):
    """Raised when the caller may not touch a conversation."""
    def __init__(self, message: str = "Not a participant of this conversation"):
        super().__init__(message, status_code=403)


class NotFoundError(ChatError):
    """Raised when a room, user or message does not exist."""
    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class ConflictError(ChatError):
    """Raised when a resource already exists."""
    def __init__(self, message: str):
        super().__init__(message, status_code=409)


class PayloadTooLargeError(ChatError):
    """Raised when an upload exceeds the size limit."""
    def __init__(self, message: str):
        super().__init__(message, status_code=413)


def handle_chat_error(e: ChatError) -> HTTPException:
    """Convert a ChatError to an HTTPException."""
    return HTTPException(status_code=e.status_code, detail=e.message)
