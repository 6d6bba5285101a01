"""Pydantic schemas for authentication."""
from pydantic import BaseModel
from typing import Optional

from ..users.schemas import UserInfo


class RegisterRequest(BaseModel):
    username: str
    displayName: str
    avatar: Optional[str] = None


class RegisterResponse(BaseModel):
    token: str
    user: UserInfo


class SessionResponse(BaseModel):
    authenticated: bool
    user: Optional[UserInfo] = None
