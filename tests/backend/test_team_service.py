"""
Team Service Tests for Double M Arena.

Tests for:
- Team name validation
- Team creation and the one-team-per-user rule
- Join request submission and resolution
- Roster capacity
- Admin approval
- Denormalized team name maintenance
"""

import uuid
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from app.core.exceptions import (
    CapacityExceededError,
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from app.models.team import JoinRequest, Team, TeamMember
from app.models.user import User
from app.services.team_service import (
    JoinAction,
    TeamRole,
    TeamService,
    parse_action,
    validate_team_name,
)

PROHIBITED = ["mm", "sex", "sexy"]
LOGO = "https://cdn.example.com/logo.png"


@pytest.fixture
def service(db_session):
    return TeamService(db_session)


@pytest.fixture
def approved_team(service, make_user):
    """Factory: create and approve a team, returning (creator, team)."""

    async def factory(name: str = "Foxes"):
        creator = await make_user(f"{name} Captain")
        team = await service.create_team(creator, name, logo_url=LOGO)
        await service.set_team_approval(team.id, "approve")
        return creator, team

    return factory


async def add_member(service, creator, team, user):
    await service.request_to_join(user, team.id)
    await service.handle_join_request(creator, team.id, user.id, "approve")


# ============== Name Validation Tests ==============

class TestTeamNameValidation:
    """Tests for team name rules."""

    def test_valid_name_is_stripped(self):
        """Test a valid name is returned stripped."""
        assert validate_team_name("  Night Owls 7 ", PROHIBITED) == "Night Owls 7"

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_empty_name_rejected(self, name):
        """Test missing or blank names are rejected."""
        with pytest.raises(InvalidInputError, match="required"):
            validate_team_name(name, PROHIBITED)

    @pytest.mark.parametrize("name", ["Foxes!", "team_one", "Ünicorns", "tab\tname"])
    def test_disallowed_characters_rejected(self, name):
        """Test punctuation, underscores, accents and tabs are rejected."""
        with pytest.raises(InvalidInputError, match="alphanumeric"):
            validate_team_name(name, PROHIBITED)

    @pytest.mark.parametrize("name", ["Team MM", "team mm", "SeXy Squad", "Summit"])
    def test_prohibited_substring_rejected_regardless_of_case(self, name):
        """Test prohibited substrings are rejected in any case."""
        with pytest.raises(InvalidInputError, match="Prohibited"):
            validate_team_name(name, PROHIBITED)

    def test_parse_action(self):
        """Test parsing approve, reject and unknown actions."""
        assert parse_action("approve") is JoinAction.APPROVE
        assert parse_action("reject") is JoinAction.REJECT
        with pytest.raises(InvalidInputError):
            parse_action("ban")


# ============== Team Creation Tests ==============

class TestCreateTeam:
    """Tests for team creation."""

    @pytest.mark.asyncio
    async def test_create_team_sets_team_name(self, service, make_user):
        """Test a new team is unapproved and named on its creator."""
        creator = await make_user("Alice")

        team = await service.create_team(creator, "Foxes", logo_url=LOGO, slogan="Sly")

        assert team.name == "Foxes"
        assert team.creator_id == creator.id
        assert team.is_approved is False
        assert team.members == []
        assert team.join_requests == []
        assert creator.team_name == "Foxes"

    @pytest.mark.asyncio
    async def test_creator_cannot_create_second_team(self, service, make_user):
        """Test a creator cannot create a second team."""
        creator = await make_user("Alice")
        await service.create_team(creator, "Foxes", logo_url=LOGO)

        with pytest.raises(ConflictError, match="already created team Foxes"):
            await service.create_team(creator, "Wolves", logo_url=LOGO)

    @pytest.mark.asyncio
    async def test_member_cannot_create_team(self, service, make_user, approved_team):
        """Test a team member cannot create a team."""
        creator, team = await approved_team("Foxes")
        member = await make_user("Bob")
        await add_member(service, creator, team, member)

        with pytest.raises(ConflictError, match="already a member"):
            await service.create_team(member, "Wolves", logo_url=LOGO)

    @pytest.mark.asyncio
    async def test_team_names_unique_case_insensitive(self, service, make_user):
        """Test team names are unique regardless of case."""
        await service.create_team(await make_user("Alice"), "Alpha", logo_url=LOGO)

        with pytest.raises(ConflictError, match="already in use"):
            await service.create_team(await make_user("Bob"), "alpha", logo_url=LOGO)

    @pytest.mark.asyncio
    async def test_racing_case_variant_rejected_by_database(self, service, make_user, monkeypatch):
        """Test that a case variant slipping past the name lookup is rejected at commit."""
        await service.create_team(await make_user("Alice"), "Alpha", logo_url=LOGO)
        bob = await make_user("Bob")
        bob_id = bob.id
        # A concurrent create whose lookup ran before "Alpha" was committed
        monkeypatch.setattr(service, "get_team_by_name", AsyncMock(return_value=None))

        with pytest.raises(ConflictError, match="already in use"):
            await service.create_team(bob, "alpha", logo_url=LOGO)

        names = await service.db.execute(select(Team.name))
        assert names.scalars().all() == ["Alpha"]
        assert await service.db.scalar(select(User.team_name).where(User.id == bob_id)) is None

    @pytest.mark.asyncio
    async def test_invalid_name_rejected(self, service, make_user):
        """Test an invalid name leaves the creator without a team."""
        creator = await make_user("Alice")

        with pytest.raises(InvalidInputError):
            await service.create_team(creator, "Team MM", logo_url=LOGO)

        assert creator.team_name is None

    @pytest.mark.asyncio
    async def test_create_team_withdraws_pending_requests(self, service, make_user, approved_team):
        """Test creating a team withdraws the creator's pending requests."""
        _, team = await approved_team("Foxes")
        user = await make_user("Bob")
        await service.request_to_join(user, team.id)

        await service.create_team(user, "Wolves", logo_url=LOGO)

        result = await service.db.execute(select(JoinRequest).where(JoinRequest.user_id == user.id))
        assert result.scalars().all() == []


# ============== Join Request Tests ==============

class TestRequestToJoin:
    """Tests for join request submission."""

    @pytest.mark.asyncio
    async def test_request_queued(self, service, make_user, approved_team):
        """Test requests are queued in arrival order."""
        _, team = await approved_team()
        first = await make_user("Bob")
        second = await make_user("Carol")

        await service.request_to_join(first, team.id)
        await service.request_to_join(second, team.id)

        assert [r.user_id for r in team.join_requests] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_unapproved_team_forbidden(self, service, make_user):
        """Test joining an unapproved team is forbidden."""
        team = await service.create_team(await make_user("Alice"), "Foxes", logo_url=LOGO)

        with pytest.raises(ForbiddenError, match="not approved"):
            await service.request_to_join(await make_user("Bob"), team.id)

    @pytest.mark.asyncio
    async def test_missing_team_not_found(self, service, make_user):
        """Test joining an unknown team returns NotFound."""
        with pytest.raises(NotFoundError):
            await service.request_to_join(await make_user("Bob"), uuid.uuid4())

    @pytest.mark.asyncio
    async def test_user_with_team_conflict(self, service, make_user, approved_team):
        """Test a user with a team cannot request another."""
        _, foxes = await approved_team("Foxes")
        wolves_creator, _ = await approved_team("Wolves")

        with pytest.raises(ConflictError, match="Already part of a team - Wolves"):
            await service.request_to_join(wolves_creator, foxes.id)

    @pytest.mark.asyncio
    async def test_creator_cannot_join_own_team(self, service, approved_team):
        """Test a creator cannot request their own team."""
        creator, team = await approved_team()
        creator.team_name = None  # out-of-sync denormalized field

        with pytest.raises(InvalidInputError, match="own team"):
            await service.request_to_join(creator, team.id)

    @pytest.mark.asyncio
    async def test_duplicate_request_conflict(self, service, make_user, approved_team):
        """Test a second request to the same team conflicts."""
        _, team = await approved_team()
        user = await make_user("Bob")
        await service.request_to_join(user, team.id)

        with pytest.raises(ConflictError, match="already sent"):
            await service.request_to_join(user, team.id)

        assert len(team.join_requests) == 1


class TestHandleJoinRequest:
    """Tests for join request resolution."""

    @pytest.mark.asyncio
    async def test_approve_adds_member(self, service, make_user, approved_team):
        """Test approval adds the member and names their team."""
        creator, team = await approved_team("Foxes")
        user = await make_user("Bob")
        await service.request_to_join(user, team.id)

        target, action = await service.handle_join_request(creator, team.id, user.id, "approve")

        assert target is user
        assert action is JoinAction.APPROVE
        assert user.team_name == "Foxes"
        assert team.members == [user]
        assert team.join_requests == []

    @pytest.mark.asyncio
    async def test_reject_removes_request_only(self, service, make_user, approved_team):
        """Test rejection drops the request and leaves team_name alone."""
        creator, team = await approved_team()
        user = await make_user("Bob")
        await service.request_to_join(user, team.id)
        # Team name written behind the workflow's back
        user.team_name = "Legacy"
        await service.db.commit()

        _, action = await service.handle_join_request(creator, team.id, user.id, "reject")

        assert action is JoinAction.REJECT
        assert team.join_requests == []
        assert team.members == []
        assert user.team_name == "Legacy"
        stored = await service.db.scalar(select(User.team_name).where(User.id == user.id))
        assert stored == "Legacy"

    @pytest.mark.asyncio
    async def test_non_creator_forbidden(self, service, make_user, approved_team):
        """Test only the creator may resolve requests."""
        _, team = await approved_team()
        user = await make_user("Bob")
        await service.request_to_join(user, team.id)

        with pytest.raises(ForbiddenError, match="Permission denied"):
            await service.handle_join_request(user, team.id, user.id, "approve")

    @pytest.mark.asyncio
    async def test_missing_team_forbidden(self, service, make_user):
        """Test resolving on an unknown team is forbidden."""
        caller = await make_user("Alice")

        with pytest.raises(ForbiddenError):
            await service.handle_join_request(caller, uuid.uuid4(), caller.id, "approve")

    @pytest.mark.asyncio
    async def test_unknown_user_not_found(self, service, approved_team):
        """Test resolving for an unknown user returns NotFound."""
        creator, team = await approved_team()

        with pytest.raises(NotFoundError, match="User not found"):
            await service.handle_join_request(creator, team.id, uuid.uuid4(), "approve")

    @pytest.mark.asyncio
    async def test_no_pending_request_invalid(self, service, make_user, approved_team):
        """Test resolving without a pending request is invalid."""
        creator, team = await approved_team()
        user = await make_user("Bob")

        with pytest.raises(InvalidInputError, match="Invalid join request"):
            await service.handle_join_request(creator, team.id, user.id, "approve")

    @pytest.mark.asyncio
    async def test_unknown_action_invalid(self, service, make_user, approved_team):
        """Test an unknown action leaves the request pending."""
        creator, team = await approved_team()
        user = await make_user("Bob")
        await service.request_to_join(user, team.id)

        with pytest.raises(InvalidInputError, match="Invalid action"):
            await service.handle_join_request(creator, team.id, user.id, "kick")

        assert len(team.join_requests) == 1

    @pytest.mark.asyncio
    async def test_approve_withdraws_other_requests(self, service, make_user, approved_team):
        """Test approval withdraws the user's requests elsewhere."""
        foxes_creator, foxes = await approved_team("Foxes")
        _, wolves = await approved_team("Wolves")
        user = await make_user("Bob")
        await service.request_to_join(user, foxes.id)
        await service.request_to_join(user, wolves.id)

        await service.handle_join_request(foxes_creator, foxes.id, user.id, "approve")

        result = await service.db.execute(select(JoinRequest).where(JoinRequest.user_id == user.id))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_approve_user_already_in_other_team_conflict(
        self, service, make_user, approved_team
    ):
        """Test approving a user already on another team conflicts."""
        foxes_creator, foxes = await approved_team("Foxes")
        _, wolves = await approved_team("Wolves")
        user = await make_user("Bob")
        await service.request_to_join(user, foxes.id)
        # Membership written behind the workflow's back
        service.db.add(TeamMember(team_id=wolves.id, user_id=user.id))
        await service.db.commit()

        with pytest.raises(ConflictError, match="another team"):
            await service.handle_join_request(foxes_creator, foxes.id, user.id, "approve")

        assert foxes.members == []
        assert len(foxes.join_requests) == 1

    @pytest.mark.asyncio
    async def test_approval_racing_other_team_conflict(
        self, service, make_user, approved_team, monkeypatch
    ):
        """Test that a membership committed by another team after the check yields a conflict."""
        foxes_creator, foxes = await approved_team("Foxes")
        _, wolves = await approved_team("Wolves")
        user = await make_user("Bob")
        user_id, foxes_id, wolves_id = user.id, foxes.id, wolves.id
        await service.request_to_join(user, foxes_id)
        # Wolves' approval commits after Foxes has looked the user up
        service.db.add(TeamMember(team_id=wolves_id, user_id=user_id))
        await service.db.commit()
        monkeypatch.setattr(service, "get_member_team", AsyncMock(return_value=None))

        with pytest.raises(ConflictError, match="Bob is already part of another team"):
            await service.handle_join_request(foxes_creator, foxes_id, user_id, "approve")

        teams = await service.db.execute(
            select(TeamMember.team_id).where(TeamMember.user_id == user_id)
        )
        assert teams.scalars().all() == [wolves_id]
        pending = await service.db.execute(
            select(JoinRequest.team_id).where(JoinRequest.user_id == user_id)
        )
        assert pending.scalars().all() == [foxes_id]


class TestCapacity:
    """Tests for roster capacity enforcement."""

    @pytest.mark.asyncio
    async def test_fifth_member_exceeds_capacity(self, service, make_user, approved_team):
        """Test a fifth member exceeds capacity and changes nothing."""
        creator, team = await approved_team()
        for name in ("Bob", "Carol", "Dave", "Erin"):
            await add_member(service, creator, team, await make_user(name))
        late = await make_user("Frank")
        await service.request_to_join(late, team.id)

        with pytest.raises(CapacityExceededError, match="maximum capacity"):
            await service.handle_join_request(creator, team.id, late.id, "approve")

        assert len(team.members) == 4
        assert [r.user_id for r in team.join_requests] == [late.id]
        assert late.team_name is None

    @pytest.mark.asyncio
    async def test_reject_allowed_when_full(self, service, make_user, approved_team):
        """Test a full team can still reject."""
        creator, team = await approved_team()
        for name in ("Bob", "Carol", "Dave", "Erin"):
            await add_member(service, creator, team, await make_user(name))
        late = await make_user("Frank")
        await service.request_to_join(late, team.id)

        await service.handle_join_request(creator, team.id, late.id, "reject")

        assert team.join_requests == []
        assert len(team.members) == 4


# ============== Admin Approval Tests ==============

class TestTeamApproval:
    """Tests for admin approval toggling."""

    @pytest.mark.asyncio
    async def test_approve_then_reject(self, service, make_user):
        """Test an admin can approve then reject a team."""
        team = await service.create_team(await make_user("Alice"), "Foxes", logo_url=LOGO)

        team = await service.set_team_approval(team.id, "approve")
        assert team.is_approved is True

        team = await service.set_team_approval(team.id, "reject")
        assert team.is_approved is False

    @pytest.mark.asyncio
    async def test_noop_transitions_conflict(self, service, make_user):
        """Test repeating the current approval state conflicts."""
        team = await service.create_team(await make_user("Alice"), "Foxes", logo_url=LOGO)

        with pytest.raises(ConflictError, match="not yet approved"):
            await service.set_team_approval(team.id, "reject")

        await service.set_team_approval(team.id, "approve")
        with pytest.raises(ConflictError, match="already approved"):
            await service.set_team_approval(team.id, "approve")

    @pytest.mark.asyncio
    async def test_invalid_action(self, service, make_user):
        """Test an unknown admin action is invalid."""
        team = await service.create_team(await make_user("Alice"), "Foxes", logo_url=LOGO)

        with pytest.raises(InvalidInputError):
            await service.set_team_approval(team.id, "maybe")

    @pytest.mark.asyncio
    async def test_missing_team(self, service):
        """Test reviewing an unknown team returns NotFound."""
        with pytest.raises(NotFoundError):
            await service.set_team_approval(uuid.uuid4(), "approve")


# ============== Views & Maintenance Tests ==============

class TestTeamViews:
    """Tests for my-team, join request listing and team listing."""

    @pytest.mark.asyncio
    async def test_my_team_roles(self, service, make_user, approved_team):
        """Test my_team reports creator, member or NotFound."""
        creator, team = await approved_team()
        member = await make_user("Bob")
        loner = await make_user("Carol")
        await add_member(service, creator, team, member)

        assert await service.my_team(creator) == (team, TeamRole.CREATOR)
        assert await service.my_team(member) == (team, TeamRole.MEMBER)
        with pytest.raises(NotFoundError):
            await service.my_team(loner)

    @pytest.mark.asyncio
    async def test_pending_requests_for_creator_only(self, service, make_user, approved_team):
        """Test only creators can list pending requests."""
        creator, team = await approved_team()
        user = await make_user("Bob")
        await service.request_to_join(user, team.id)

        pending = await service.pending_requests(creator)
        assert [r.user_id for r in pending.join_requests] == [user.id]

        with pytest.raises(NotFoundError):
            await service.pending_requests(user)

    @pytest.mark.asyncio
    async def test_list_teams(self, service, approved_team):
        """Test listing all teams or one by id."""
        _, foxes = await approved_team("Foxes")
        _, wolves = await approved_team("Wolves")

        assert {t.name for t in await service.list_teams()} == {"Foxes", "Wolves"}
        assert await service.list_teams(wolves.id) == [wolves]
        with pytest.raises(NotFoundError):
            await service.list_teams(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_list_teams_empty(self, service):
        """Test listing with no teams returns NotFound."""
        with pytest.raises(NotFoundError):
            await service.list_teams()


class TestRebuildTeamNames:
    """Tests for recomputing the denormalized team name."""

    @pytest.mark.asyncio
    async def test_rebuild_restores_corrupted_names(self, service, make_user, approved_team):
        """Test rebuild fixes missing, wrong and stray team names."""
        creator, team = await approved_team("Foxes")
        member = await make_user("Bob")
        stray = await make_user("Carol")
        await add_member(service, creator, team, member)

        creator.team_name = None
        member.team_name = "Wolves"
        stray.team_name = "Ghosts"
        await service.db.commit()

        updated = await service.rebuild_team_names()

        assert updated == 3
        assert creator.team_name == "Foxes"
        assert member.team_name == "Foxes"
        assert stray.team_name is None

    @pytest.mark.asyncio
    async def test_rebuild_noop_when_consistent(self, service, approved_team):
        """Test rebuild changes nothing on consistent data."""
        await approved_team("Foxes")

        assert await service.rebuild_team_names() == 0
