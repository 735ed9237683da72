"""
Team Service - Team directory and join-request workflow.

A user may create one team or be a member of one team, never both. Teams
start unapproved; once an admin approves a team other users can ask to join
it, and the creator approves or rejects each request. Every operation runs
inside the request's database session, so the team and user rows it touches
are committed together.
"""

import logging
import re
import uuid
from enum import Enum
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import (
    CapacityExceededError,
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from app.models.team import JoinRequest, Team, TeamMember
from app.models.user import User
from app.services.auth_service import get_user_by_id

logger = logging.getLogger(__name__)

TEAM_NAME_PATTERN = re.compile(r"^[A-Za-z0-9 ]+$")


class JoinAction(str, Enum):
    """Resolution of a join request, or of an admin team review."""

    APPROVE = "approve"
    REJECT = "reject"


class TeamRole(str, Enum):
    """The caller's relation to their team."""

    CREATOR = "creator"
    MEMBER = "member"


def parse_action(action: str) -> JoinAction:
    """Parse an approve/reject action, raising InvalidInputError otherwise."""
    try:
        return JoinAction(action)
    except ValueError:
        raise InvalidInputError("Invalid action.")


def validate_team_name(name: Optional[str], prohibited_words: List[str]) -> str:
    """
    Validate a requested team name and return it stripped.

    Names must be non-empty, consist of ASCII letters, digits and spaces,
    and must not contain any prohibited word, compared case-insensitively.
    """
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("Team Name is required.")

    if not TEAM_NAME_PATTERN.match(name):
        raise InvalidInputError(
            "Invalid team name. Only alphanumeric characters and spaces are allowed."
        )

    lowered = name.lower()
    if any(word.lower() in lowered for word in prohibited_words if word):
        raise InvalidInputError("Prohibited words in the team name.")

    return name


class TeamService:
    """Service for managing teams and join requests."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    # ==================== Lookups ====================

    async def get_team(self, team_id: uuid.UUID, for_update: bool = False) -> Optional[Team]:
        """Get a team by ID, optionally locking its row until commit."""
        query = select(Team).where(Team.id == team_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_team_by_name(self, name: str) -> Optional[Team]:
        """Case-insensitive exact name lookup."""
        result = await self.db.execute(
            select(Team).where(func.lower(Team.name) == name.lower())
        )
        return result.scalar_one_or_none()

    async def get_created_team(self, user_id: uuid.UUID) -> Optional[Team]:
        result = await self.db.execute(select(Team).where(Team.creator_id == user_id))
        return result.scalar_one_or_none()

    async def get_member_team(self, user_id: uuid.UUID) -> Optional[Team]:
        result = await self.db.execute(
            select(Team).join(TeamMember).where(TeamMember.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def _withdraw_join_requests(
        self, user_id: uuid.UUID, keep_team_id: Optional[uuid.UUID] = None
    ) -> None:
        """Drop a user's pending requests, except the one on keep_team_id."""
        query = delete(JoinRequest).where(JoinRequest.user_id == user_id)
        if keep_team_id is not None:
            query = query.where(JoinRequest.team_id != keep_team_id)
        await self.db.execute(query)

    # ==================== Team Creation ====================

    async def create_team(
        self,
        creator: User,
        name: Optional[str],
        logo_url: str,
        slogan: Optional[str] = None,
    ) -> Team:
        """Create an unapproved team owned by `creator`."""
        existing = await self.get_created_team(creator.id)
        if existing:
            raise ConflictError(f"You have already created team {existing.name}")

        if await self.get_member_team(creator.id):
            raise ConflictError("User is already a member of a team.")

        name = validate_team_name(name, self.settings.prohibited_team_words)

        if await self.get_team_by_name(name):
            raise ConflictError("Team name is already in use.")

        team = Team(
            name=name,
            creator_id=creator.id,
            creator=creator,
            slogan=slogan,
            logo_url=logo_url,
            is_approved=False,
            memberships=[],
            join_requests=[],
        )
        self.db.add(team)
        await self._withdraw_join_requests(creator.id)
        creator.team_name = name

        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent create of the same name
            await self.db.rollback()
            logger.warning(f"Concurrent create of team name {name!r} rejected")
            raise ConflictError("Team name is already in use.")

        logger.info(f"User {creator.id} created team {team.id} ({team.name})")
        return team

    # ==================== Join Requests ====================

    async def request_to_join(self, user: User, team_id: uuid.UUID) -> Team:
        """Queue a request by `user` to join an approved team."""
        if user.team_name:
            raise ConflictError(f"Already part of a team - {user.team_name}")

        team = await self.get_team(team_id)
        if not team:
            raise NotFoundError("Team not found.")

        if not team.is_approved:
            raise ForbiddenError("Team not approved.")

        if team.creator_id == user.id:
            raise InvalidInputError("Team creator cannot join their own team.")

        if team.find_join_request(user.id):
            raise ConflictError("Join request already sent.")

        team.join_requests.append(JoinRequest(user_id=user.id, user=user))
        await self.db.commit()

        logger.info(f"User {user.id} requested to join team {team.id}")
        return team

    async def handle_join_request(
        self,
        caller: User,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        action: str,
    ) -> Tuple[User, JoinAction]:
        """
        Approve or reject a pending join request on the caller's team.

        Returns the requesting user and the applied action.
        """
        team = await self.get_team(team_id, for_update=True)
        if not team or team.creator_id != caller.id:
            raise ForbiddenError("Permission denied.")

        target = await get_user_by_id(self.db, user_id)
        if not target:
            raise NotFoundError("User not found.")

        join_request = team.find_join_request(target.id)
        if not join_request:
            raise InvalidInputError("Invalid join request.")

        resolved = parse_action(action)

        if resolved is JoinAction.APPROVE:
            if len(team.memberships) + 1 > self.settings.team_max_members:
                raise CapacityExceededError(
                    "Adding this user would exceed the team's maximum capacity "
                    f"({self.settings.team_max_members + 1} members)."
                )
            if await self.get_created_team(target.id) or await self.get_member_team(target.id):
                raise ConflictError(f"{target.name} is already part of another team.")

            team.memberships.append(TeamMember(user_id=target.id, user=target))
            target.team_name = team.name
            await self._withdraw_join_requests(target.id, keep_team_id=team.id)

        team.join_requests.remove(join_request)
        target_name = target.name

        try:
            await self.db.commit()
        except IntegrityError:
            # Another team approved the same user since the check above
            await self.db.rollback()
            raise ConflictError(f"{target_name} is already part of another team.")

        logger.info(
            f"Join request of user {target.id} on team {team.id} {resolved.value}d by {caller.id}"
        )
        return target, resolved

    # ==================== Views ====================

    async def my_team(self, user: User) -> Tuple[Team, TeamRole]:
        """Return the team the user created or belongs to, with their role."""
        team = await self.get_created_team(user.id)
        if team:
            return team, TeamRole.CREATOR

        team = await self.get_member_team(user.id)
        if team:
            return team, TeamRole.MEMBER

        raise NotFoundError("No team found for the user. You can create or join a team.")

    async def pending_requests(self, user: User) -> Team:
        """Return the team created by `user`, whose join requests they resolve."""
        team = await self.get_created_team(user.id)
        if not team:
            raise NotFoundError("No team found for the user. You can create or join a team.")
        return team

    async def list_teams(self, team_id: Optional[uuid.UUID] = None) -> List[Team]:
        """List all teams, or the single team with `team_id`."""
        query = select(Team).order_by(Team.created_at)
        if team_id is not None:
            query = query.where(Team.id == team_id)

        result = await self.db.execute(query)
        teams = list(result.scalars().all())
        if not teams:
            raise NotFoundError("Team not found.")
        return teams

    # ==================== Administration ====================

    async def set_team_approval(self, team_id: uuid.UUID, action: str) -> Team:
        """Approve or reject a team on behalf of an admin."""
        resolved = parse_action(action)

        team = await self.get_team(team_id)
        if not team:
            raise NotFoundError("Team not found.")

        if resolved is JoinAction.APPROVE and team.is_approved:
            raise ConflictError("This team is already approved.")

        if resolved is JoinAction.REJECT and not team.is_approved:
            raise ConflictError("This team is already rejected or not yet approved.")

        team.is_approved = resolved is JoinAction.APPROVE
        await self.db.commit()

        logger.info(f"Team {team.id} ({team.name}) {resolved.value}d")
        return team

    async def rebuild_team_names(self) -> int:
        """
        Recompute every user's denormalized team_name from the teams tables.

        Returns:
            Number of users whose team_name changed.
        """
        expected: dict[uuid.UUID, str] = {}

        teams = (await self.db.execute(select(Team))).scalars().all()
        for team in teams:
            expected[team.creator_id] = team.name
            for membership in team.memberships:
                expected[membership.user_id] = team.name

        users = (await self.db.execute(select(User))).scalars().all()
        updated = 0
        for user in users:
            team_name = expected.get(user.id)
            if user.team_name != team_name:
                user.team_name = team_name
                updated += 1

        await self.db.commit()

        logger.info(f"Rebuilt team names: {updated} users updated")
        return updated
