"""
User model for Double M Arena.
"""

from sqlalchemy import JSON, Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from app.models.base import Base

USER_ROLES = ("user", "admin", "guild")

DEFAULT_INSTAGRAM_URL = "https://help.instagram.com/415595770433263/?helpref=uf_share"


class User(Base):
    """User model representing platform players."""

    __tablename__ = "users"

    # Authentication & Identity
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Role & Status
    role: Mapped[str] = mapped_column(
        String(20),
        default="user",
        nullable=False,
        comment="user, admin, or guild",
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Email verification status",
    )
    is_blocked: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Gaming Profile
    ff_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        index=True,
        comment="In-game display name",
    )
    position: Mapped[str] = mapped_column(
        String(50),
        default="member",
        nullable=False,
    )
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    in_game_role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    other_games: Mapped[list[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    fav_guns: Mapped[list[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    tournaments_played: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    # Social
    instagram_url: Mapped[str | None] = mapped_column(
        String(500),
        default=DEFAULT_INSTAGRAM_URL,
        nullable=True,
    )
    discord_tag: Mapped[str | None] = mapped_column(String(100), nullable=True)
    profile_pic_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Denormalized from the teams tables, see TeamService.rebuild_team_names
    team_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    @validates("role")
    def validate_role(self, key: str, value: str) -> str:
        """Validate role value."""
        if value not in USER_ROLES:
            raise ValueError(f"role must be one of: {USER_ROLES}")
        return value

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
