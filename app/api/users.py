"""
User API Endpoints for Double M Arena.

Player profiles, profile updates and user search.
"""

import uuid

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from app.api.auth import UserResponse
from app.core.dependencies import CurrentUser, DbSession
from app.core.exceptions import ServiceError
from app.services.user_service import UserService

router = APIRouter(tags=["Users"])


# ============== Request/Response Models ==============

class UpdateProfileRequest(BaseModel):
    """Profile update. Accepts both snake_case and the legacy camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    ff_name: str | None = Field(None, alias="ffName", max_length=100)
    bio: str | None = None
    in_game_role: str | None = Field(None, alias="inGameRole", max_length=50)
    other_games: list[str] | str | None = Field(None, alias="otherGames")
    fav_guns: list[str] | str | None = Field(None, alias="favGuns")
    instagram_url: str | None = Field(None, alias="instagramURL", max_length=500)
    discord_tag: str | None = Field(None, alias="discordTag", max_length=100)
    profile_pic_url: str | None = Field(None, alias="profilePicURL", max_length=500)


class UpdateProfileResponse(BaseModel):
    message: str
    user: UserResponse


class UserListResponse(BaseModel):
    total: int
    limit: int
    skip: int
    data: list[UserResponse]


# ============== Endpoints ==============

@router.get("/profile/{user_id}", response_model=UserResponse)
async def get_profile(user_id: uuid.UUID, session: DbSession) -> UserResponse:
    """Get a player's public profile."""
    try:
        user = await UserService(session).get_profile(user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return UserResponse.from_user(user)


@router.get("/users", response_model=UserListResponse)
async def list_users(
    session: DbSession,
    name: str | None = None,
    ff_name: str | None = None,
    role: str | None = None,
    in_game_role: str | None = None,
    limit: int = Query(10, ge=1, le=100),
    skip: int = Query(0, ge=0),
) -> UserListResponse:
    """Search players by name, in-game name, role or in-game role."""
    page = await UserService(session).search_users(
        name=name,
        ff_name=ff_name,
        role=role,
        in_game_role=in_game_role,
        limit=limit,
        skip=skip,
    )
    return UserListResponse(
        total=page["total"],
        limit=page["limit"],
        skip=page["skip"],
        data=[UserResponse.from_user(user) for user in page["data"]],
    )


@router.post("/update-profile", response_model=UpdateProfileResponse)
@router.post("/updateProfile", response_model=UpdateProfileResponse, include_in_schema=False)
async def update_profile(
    data: UpdateProfileRequest,
    user: CurrentUser,
    session: DbSession,
) -> UpdateProfileResponse:
    """
    Update the current user's profile.

    Only verified users may update. Empty fields keep their current value;
    `other_games` and `fav_guns` are merged into the stored lists.
    """
    try:
        user = await UserService(session).update_profile(user, data.model_dump())
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return UpdateProfileResponse(
        message="Profile updated successfully!",
        user=UserResponse.from_user(user),
    )
