"""
Team, membership and join-request models for Double M Arena.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base

if TYPE_CHECKING:
    from app.models.user import User


class Team(Base):
    """Team model representing tournament squads."""

    __tablename__ = "teams"

    # Identity
    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        index=True,
        nullable=False,
    )
    slogan: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    logo_url: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    # Admin-gated visibility and joinability
    is_approved: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        index=True,
    )

    # Creator (one team per user)
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
    )

    # Relationships
    creator: Mapped["User"] = relationship(
        "User",
        foreign_keys=[creator_id],
        lazy="selectin",
    )
    memberships: Mapped[list["TeamMember"]] = relationship(
        "TeamMember",
        back_populates="team",
        cascade="all, delete-orphan",
        order_by="TeamMember.created_at",
        lazy="selectin",
    )
    join_requests: Mapped[list["JoinRequest"]] = relationship(
        "JoinRequest",
        back_populates="team",
        cascade="all, delete-orphan",
        order_by="JoinRequest.created_at",
        lazy="selectin",
    )

    @property
    def members(self) -> list["User"]:
        """Member users in join order, creator excluded."""
        return [membership.user for membership in self.memberships]

    def find_join_request(self, user_id: uuid.UUID) -> "JoinRequest | None":
        for join_request in self.join_requests:
            if join_request.user_id == user_id:
                return join_request
        return None

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name={self.name}, approved={self.is_approved})>"


# "Alpha" and "alpha" name the same team
Index("uix_teams_name_lower", func.lower(Team.name), unique=True)


class TeamMember(Base):
    """A user's membership in a team. A user belongs to at most one team."""

    __tablename__ = "team_members"

    team_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    team: Mapped["Team"] = relationship("Team", back_populates="memberships")
    user: Mapped["User"] = relationship("User", lazy="selectin")

    def __repr__(self) -> str:
        return f"<TeamMember(team_id={self.team_id}, user_id={self.user_id})>"


class JoinRequest(Base):
    """A pending request by a user to join a team."""

    __tablename__ = "join_requests"

    team_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    team: Mapped["Team"] = relationship("Team", back_populates="join_requests")
    user: Mapped["User"] = relationship("User", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uix_join_request_team_user"),
        Index("ix_join_requests_team_created", "team_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<JoinRequest(team_id={self.team_id}, user_id={self.user_id})>"
