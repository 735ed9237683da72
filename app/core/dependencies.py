"""
FastAPI Dependencies for Double M Arena.

Reusable dependencies for database sessions, authentication and authorization.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.user import User
from app.services.auth_service import AuthError, get_user_from_token, has_role

# Security scheme for API documentation
security = HTTPBearer(auto_error=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting database sessions."""
    async for session in get_db():
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db_session)]


async def get_current_user(
    session: DbSession,
    authorization: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> User:
    """
    Get the currently authenticated user from the Bearer token.

    Args:
        session: Database session
        authorization: Bearer token from Authorization header

    Returns:
        Authenticated User object

    Raises:
        HTTPException: If authentication fails
    """
    if not authorization or not authorization.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return await get_user_from_token(session, authorization.credentials)
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_role(role: str):
    """Build a dependency that admits only users holding `role`."""

    async def dependency(user: CurrentUser) -> User:
        if not has_role(user, role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Only {role}s can perform this action.",
            )
        return user

    return dependency


require_admin = require_role("admin")

AdminUser = Annotated[User, Depends(require_admin)]
