"""
Double M Arena Models Package

All SQLAlchemy models for the Double M Arena platform.
"""

from app.models.base import Base
from app.models.team import JoinRequest, Team, TeamMember
from app.models.user import User

__all__ = [
    # Base
    "Base",
    # User
    "User",
    # Teams
    "Team",
    "TeamMember",
    "JoinRequest",
]
