"""
Admin User & Team Maintenance Endpoints.

Provides administrative operations:
- Block / unblock users
- Hard-delete users
- Rebuild the denormalized team name on every user
"""

import logging
import uuid

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from app.api.auth import UserResponse
from app.core.dependencies import AdminUser, DbSession
from app.core.exceptions import ServiceError
from app.services.team_service import TeamService
from app.services.user_service import UserService

router = APIRouter(prefix="/admin", tags=["Admin"])
logger = logging.getLogger(__name__)


class BlockUserResponse(BaseModel):
    message: str
    user: UserResponse


class RebuildResponse(BaseModel):
    message: str
    updated: int


@router.post("/users/{user_id}/block", response_model=BlockUserResponse)
async def block_user(
    user_id: uuid.UUID,
    admin: AdminUser,
    session: DbSession,
    blocked: bool = Query(True, description="False to unblock"),
) -> BlockUserResponse:
    """Block or unblock a user (admin only). Blocked users cannot authenticate."""
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="Admins cannot block themselves")

    try:
        user = await UserService(session).set_blocked(user_id, blocked)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    logger.info(f"Admin {admin.id} set blocked={blocked} on user {user.id}")
    return BlockUserResponse(
        message="User blocked." if blocked else "User unblocked.",
        user=UserResponse.from_user(user),
    )


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: uuid.UUID,
    admin: AdminUser,
    session: DbSession,
) -> dict[str, str]:
    """Permanently delete a user (admin only)."""
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="Admins cannot delete themselves")

    try:
        await UserService(session).delete_user(user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    logger.info(f"Admin {admin.id} deleted user {user_id}")
    return {"message": "User deleted."}


@router.post("/teams/rebuild-team-names", response_model=RebuildResponse)
async def rebuild_team_names(admin: AdminUser, session: DbSession) -> RebuildResponse:
    """Recompute every user's team name from team ownership and membership."""
    updated = await TeamService(session).rebuild_team_names()
    return RebuildResponse(message="Team names rebuilt.", updated=updated)
