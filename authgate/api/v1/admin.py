"""
Admin endpoints.

Every route requires ``Authorization: Bearer <ADMIN_PASSWORD>``; the admin
rate limit applies before the secret is checked.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from authgate.common.dependencies import get_user_service, require_admin
from authgate.services.user_service import UserService

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


class AdminUser(BaseModel):
    id: int
    email: str
    name: str
    provider: str
    avatar_url: str
    first_login: Optional[datetime]
    last_login: Optional[datetime]
    login_count: int


class AdminUsersResponse(BaseModel):
    total: int
    users: List[AdminUser]


@router.get("/users", response_model=AdminUsersResponse)
async def list_users(user_service: UserService = Depends(get_user_service)) -> AdminUsersResponse:
    """All known users, most recent login first. ``provider_id`` is not exposed."""
    users = await user_service.list_all()
    return AdminUsersResponse(
        total=len(users),
        users=[AdminUser(**u.to_admin_dict()) for u in users],
    )
