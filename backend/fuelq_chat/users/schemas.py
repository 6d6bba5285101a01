from pydantic import BaseModel
from typing import List, Optional


class UserInfo(BaseModel):
    id: str
    name: str
    avatar: Optional[str] = None
    status: str = "offline"


class UsersListResponse(BaseModel):
    users: List[UserInfo]
