"""
Team API Endpoints for Double M Arena.

Team creation, the join-request workflow, team views and admin review.
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from app.core.dependencies import AdminUser, CurrentUser, DbSession
from app.core.exceptions import ServiceError
from app.models.team import Team
from app.services.team_service import JoinAction, TeamService

router = APIRouter(tags=["Teams"])


# ============== Request/Response Models ==============

class CreateTeamRequest(BaseModel):
    """Team creation request. `logoURL` is accepted as an alias of `logo_url`."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field("", max_length=100)
    slogan: str | None = Field(None, max_length=255)
    logo_url: str = Field(..., alias="logoURL", min_length=1, max_length=500)


class HandleJoinRequest(BaseModel):
    """Resolution of a pending join request. `userId` is accepted as an alias."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: uuid.UUID = Field(..., alias="userId")
    action: str = Field(..., description="approve or reject")


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    ff_name: str | None = None
    in_game_role: str | None = None
    profile_pic_url: str | None = None
    team_name: str | None = None


class JoinRequestOut(BaseModel):
    user: UserSummary
    requested_at: datetime


class TeamOut(BaseModel):
    id: uuid.UUID
    name: str
    slogan: str | None
    logo_url: str
    is_approved: bool
    creator: UserSummary
    members: list[UserSummary]
    join_requests: list[JoinRequestOut]
    created_at: datetime

    @classmethod
    def from_team(cls, team: Team) -> "TeamOut":
        return cls(
            id=team.id,
            name=team.name,
            slogan=team.slogan,
            logo_url=team.logo_url,
            is_approved=team.is_approved,
            creator=UserSummary.model_validate(team.creator),
            members=[UserSummary.model_validate(user) for user in team.members],
            join_requests=[
                JoinRequestOut(
                    user=UserSummary.model_validate(join_request.user),
                    requested_at=join_request.created_at,
                )
                for join_request in team.join_requests
            ],
            created_at=team.created_at,
        )


class TeamMessageResponse(BaseModel):
    message: str
    team: TeamOut


class MessageResponse(BaseModel):
    message: str


class MyTeamResponse(BaseModel):
    team: TeamOut
    role: str


class JoinRequestsResponse(BaseModel):
    team_id: uuid.UUID
    requests: list[JoinRequestOut]


class TeamListResponse(BaseModel):
    teams: list[TeamOut]


# ============== Team Workflow ==============

@router.post(
    "/create-team",
    response_model=TeamMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_team(
    data: CreateTeamRequest,
    user: CurrentUser,
    session: DbSession,
) -> TeamMessageResponse:
    """
    Create a team owned by the current user.

    The team starts unapproved and cannot receive join requests until an
    admin approves it.
    """
    try:
        team = await TeamService(session).create_team(
            creator=user,
            name=data.name,
            slogan=data.slogan,
            logo_url=data.logo_url,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return TeamMessageResponse(message="Team created successfully.", team=TeamOut.from_team(team))


@router.post("/join-team/{team_id}", response_model=MessageResponse)
async def join_team(
    team_id: uuid.UUID,
    user: CurrentUser,
    session: DbSession,
) -> MessageResponse:
    """Ask to join an approved team."""
    try:
        await TeamService(session).request_to_join(user, team_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return MessageResponse(message="Join request sent successfully.")


@router.post("/handle-join-request/{team_id}", response_model=MessageResponse)
async def handle_join_request(
    team_id: uuid.UUID,
    data: HandleJoinRequest,
    user: CurrentUser,
    session: DbSession,
) -> MessageResponse:
    """Approve or reject a pending join request (team creator only)."""
    try:
        target, action = await TeamService(session).handle_join_request(
            caller=user,
            team_id=team_id,
            user_id=data.user_id,
            action=data.action,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    verb = "approved" if action is JoinAction.APPROVE else "rejected"
    return MessageResponse(message=f"Join request {verb} for {target.name}")


# ============== Team Views ==============

@router.get("/my-team", response_model=MyTeamResponse)
async def my_team(user: CurrentUser, session: DbSession) -> MyTeamResponse:
    """Get the team the current user created or belongs to."""
    try:
        team, role = await TeamService(session).my_team(user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return MyTeamResponse(team=TeamOut.from_team(team), role=role.value)


@router.get("/join-requests", response_model=JoinRequestsResponse)
async def join_requests(user: CurrentUser, session: DbSession) -> JoinRequestsResponse:
    """List pending join requests on the team the current user created."""
    try:
        team = await TeamService(session).pending_requests(user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return JoinRequestsResponse(
        team_id=team.id,
        requests=TeamOut.from_team(team).join_requests,
    )


@router.get("/teams", response_model=TeamListResponse)
@router.get("/teams/{team_id}", response_model=TeamListResponse)
async def list_teams(
    user: CurrentUser,
    session: DbSession,
    team_id: uuid.UUID | None = None,
) -> TeamListResponse:
    """List all teams, or one team, with creator, members and requests resolved."""
    try:
        teams = await TeamService(session).list_teams(team_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return TeamListResponse(teams=[TeamOut.from_team(team) for team in teams])


# ============== Admin Review ==============

@router.get("/team-action/{team_id}", response_model=TeamMessageResponse)
async def team_action(
    team_id: uuid.UUID,
    admin: AdminUser,
    session: DbSession,
    action: str = Query(..., description="approve or reject"),
) -> TeamMessageResponse:
    """Approve or reject a team (admin only)."""
    try:
        team = await TeamService(session).set_team_approval(team_id, action)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    message = (
        "Team approved successfully." if team.is_approved else "Team rejected successfully."
    )
    return TeamMessageResponse(message=message, team=TeamOut.from_team(team))
