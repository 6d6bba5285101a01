"""Shared dependencies for FastAPI endpoints."""
from typing import Optional
from fastapi import Header, HTTPException

from .auth.services import get_user_from_session


def get_bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Extract the raw token from a Bearer Authorization header."""
    if not authorization or not authorization.startswith('Bearer '):
        return None
    return authorization[7:]


def verify_token(token: Optional[str]) -> Optional[str]:
    """Return the user id for a session token, or None."""
    if not token:
        return None
    return get_user_from_session(token)


def get_user_from_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Extract user id from Bearer token."""
    return verify_token(get_bearer_token(authorization))


def require_auth(authorization: Optional[str] = Header(None)) -> str:
    """Require authentication."""
    user_id = get_user_from_token(authorization)
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id
