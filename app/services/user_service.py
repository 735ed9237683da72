"""
User Service - Player profiles, search and admin moderation.
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from app.models.team import JoinRequest, Team, TeamMember
from app.models.user import User
from app.services.auth_service import get_user_by_id

logger = logging.getLogger(__name__)

# Profile fields where an empty value keeps the stored one
SCALAR_PROFILE_FIELDS = ("ff_name", "bio", "in_game_role", "instagram_url", "discord_tag")


def merge_unique(current: Iterable[str], incoming: Union[str, List[str], None]) -> List[str]:
    """
    Merge `incoming` into `current` as an ordered, de-duplicated union.

    `incoming` may be a list or a comma-separated string.
    """
    if isinstance(incoming, str):
        incoming = incoming.split(",")
    if not isinstance(incoming, list):
        raise InvalidInputError("Expected a list or a comma-separated string")

    merged: List[str] = []
    for item in [*current, *incoming]:
        item = str(item).strip()
        if item and item not in merged:
            merged.append(item)
    return merged


class UserService:
    """Service for player profiles and moderation."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, user_id: uuid.UUID) -> User:
        user = await get_user_by_id(self.db, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def search_users(
        self,
        name: Optional[str] = None,
        ff_name: Optional[str] = None,
        role: Optional[str] = None,
        in_game_role: Optional[str] = None,
        limit: int = 10,
        skip: int = 0,
    ) -> Dict[str, Any]:
        """Filter users; name and ff_name match case-insensitive substrings."""
        conditions = []
        if name:
            conditions.append(User.name.ilike(f"%{name}%"))
        if ff_name:
            conditions.append(User.ff_name.ilike(f"%{ff_name}%"))
        if role:
            conditions.append(User.role == role)
        if in_game_role:
            conditions.append(User.in_game_role == in_game_role)

        total = await self.db.scalar(select(func.count(User.id)).where(*conditions))
        result = await self.db.execute(
            select(User)
            .where(*conditions)
            .order_by(User.created_at)
            .offset(skip)
            .limit(limit)
        )

        return {
            "total": total or 0,
            "limit": limit,
            "skip": skip,
            "data": list(result.scalars().all()),
        }

    async def update_profile(self, user: User, changes: Dict[str, Any]) -> User:
        """
        Apply profile changes for a verified user.

        Empty values leave a field unchanged; game and weapon lists are merged.
        """
        if not user.is_verified:
            raise ForbiddenError("User is not verified. Profile update not allowed.")

        for field in SCALAR_PROFILE_FIELDS:
            value = changes.get(field)
            if value:
                setattr(user, field, value)

        if changes.get("other_games"):
            user.other_games = merge_unique(user.other_games or [], changes["other_games"])

        if changes.get("fav_guns"):
            user.fav_guns = merge_unique(user.fav_guns or [], changes["fav_guns"])

        if changes.get("profile_pic_url"):
            user.profile_pic_url = changes["profile_pic_url"]

        await self.db.commit()
        await self.db.refresh(user)

        logger.info(f"User {user.id} updated their profile")
        return user

    # ==================== Moderation ====================

    async def set_blocked(self, user_id: uuid.UUID, blocked: bool) -> User:
        user = await self.get_profile(user_id)
        user.is_blocked = blocked
        await self.db.commit()
        await self.db.refresh(user)

        logger.warning(f"User {user.id} {'blocked' if blocked else 'unblocked'}")
        return user

    async def delete_user(self, user_id: uuid.UUID) -> User:
        """
        Hard-delete a user along with their membership and pending requests.

        Team creators cannot be deleted while their team exists.
        """
        user = await self.get_profile(user_id)

        created = await self.db.scalar(select(Team).where(Team.creator_id == user.id))
        if created:
            raise ConflictError(f"User is the creator of team {created.name}")

        await self.db.execute(delete(TeamMember).where(TeamMember.user_id == user.id))
        await self.db.execute(delete(JoinRequest).where(JoinRequest.user_id == user.id))
        await self.db.delete(user)
        await self.db.commit()

        logger.warning(f"User {user.id} ({user.email}) deleted")
        return user
