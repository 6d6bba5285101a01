"""Users API routes."""
from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import require_auth
from .schemas import UserInfo, UsersListResponse
from .services import get_user, get_all_users

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=UsersListResponse)
async def list_all_users(_: str = Depends(require_auth)):
    """Get list of all users with their presence."""
    return UsersListResponse(users=get_all_users())


@router.get("/{user_id}", response_model=UserInfo)
async def get_one_user(user_id: str, _: str = Depends(require_auth)):
    """Get one user with their presence."""
    user = get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
