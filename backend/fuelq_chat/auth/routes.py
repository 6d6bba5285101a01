"""Authentication API routes."""
import logging

from fastapi import APIRouter, HTTPException, Depends
from typing import Optional

from .schemas import RegisterRequest, RegisterResponse, SessionResponse
from .services import (
    validate_username,
    create_user,
    create_session_token,
    revoke_session,
)
from ..dependencies import get_bearer_token, get_user_from_token, require_auth
from ..users.services import get_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(request: RegisterRequest):
    """Create a user and return a session token for it."""
    if not validate_username(request.username):
        raise HTTPException(
            status_code=400,
            detail="Username must be 3-20 letters and numbers"
        )

    display_name = request.displayName.strip()
    if not display_name:
        raise HTTPException(status_code=400, detail="Display name is required")

    if not create_user(request.username, display_name, request.avatar):
        raise HTTPException(status_code=409, detail="Username already taken")

    token = create_session_token(request.username)
    logger.info("Registered user %s", request.username)

    return RegisterResponse(token=token, user=get_user(request.username))


@router.get("/session", response_model=SessionResponse)
async def check_session(user_id: Optional[str] = Depends(get_user_from_token)):
    """Check if session is valid."""
    if user_id:
        user = get_user(user_id)
        if user:
            return SessionResponse(authenticated=True, user=user)

    return SessionResponse(authenticated=False)


@router.post("/logout")
async def logout(
    _: str = Depends(require_auth),
    token: Optional[str] = Depends(get_bearer_token),
):
    """Revoke the caller's session token."""
    revoke_session(token)
    return {"status": "ok"}
