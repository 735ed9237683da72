"""
Authentication Service for Double M Arena.

Handles password hashing, JWT issuance and validation, user registration,
email verification and login.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import status
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import ServiceError
from app.models.user import User

logger = logging.getLogger(__name__)
settings = get_settings()
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

VERIFY_TOKEN_PURPOSE = "verify"


class AuthError(ServiceError):
    """Custom authentication error."""

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(message, status_code)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a plain password."""
    return pwd_context.hash(password)


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return encoded_jwt


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        return payload
    except JWTError as e:
        raise AuthError("Invalid or expired token", status.HTTP_401_UNAUTHORIZED) from e


def create_verification_token(email: str) -> str:
    """Create a short-lived token that proves ownership of an email address."""
    return create_access_token(
        data={"email": email, "purpose": VERIFY_TOKEN_PURPOSE},
        expires_delta=timedelta(minutes=settings.verification_token_expire_minutes),
    )


def has_role(user: User, role: str) -> bool:
    """Return True if the user holds the given role."""
    return user is not None and user.role == role


async def get_user_by_id(session: AsyncSession, user_id: uuid.UUID | str) -> User | None:
    """Look up a user by primary key; malformed ids resolve to None."""
    if not isinstance(user_id, uuid.UUID):
        try:
            user_id = uuid.UUID(str(user_id))
        except ValueError:
            return None
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def register_user(
    session: AsyncSession,
    name: str,
    email: str,
    password: str,
) -> User:
    """
    Register a new, unverified user.

    Args:
        session: Database session
        name: Display name
        email: User's email address
        password: Plain text password

    Returns:
        Created User object

    Raises:
        AuthError: If validation fails or the email is already registered
    """
    if await get_user_by_email(session, email):
        raise AuthError("User already registered", status.HTTP_409_CONFLICT)

    # Validate password length
    if len(password) < settings.password_min_length:
        raise AuthError(
            f"Password must be at least {settings.password_min_length} characters",
            status.HTTP_400_BAD_REQUEST,
        )

    user = User(
        name=name.strip(),
        email=email.strip().lower(),
        password_hash=get_password_hash(password),
    )

    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(f"Registered user {user.id} ({user.email})")
    return user


async def verify_email(session: AsyncSession, token: str) -> User:
    """
    Mark the user owning the token's email address as verified.

    Raises:
        AuthError: If the token is invalid, expired or of the wrong kind,
            or no user holds the email address
    """
    try:
        payload = decode_token(token)
    except AuthError as e:
        raise AuthError("Invalid or expired verification link", status.HTTP_400_BAD_REQUEST) from e

    email = payload.get("email")
    if payload.get("purpose") != VERIFY_TOKEN_PURPOSE or not email:
        raise AuthError("Invalid or expired verification link", status.HTTP_400_BAD_REQUEST)

    user = await get_user_by_email(session, email)
    if not user:
        raise AuthError("User not found", status.HTTP_404_NOT_FOUND)

    if not user.is_verified:
        user.is_verified = True
        await session.commit()
        logger.info(f"User {user.id} verified their email")

    return user


async def authenticate_user(
    session: AsyncSession,
    email: str,
    password: str,
) -> User:
    """
    Authenticate a user with email and password.

    Args:
        session: Database session
        email: Email address
        password: Plain text password

    Returns:
        User object if authentication succeeds

    Raises:
        AuthError: If authentication fails
    """
    user = await get_user_by_email(session, email)

    if not user:
        raise AuthError("User with this email not found", status.HTTP_401_UNAUTHORIZED)

    if not user.is_verified:
        raise AuthError("Verify your email first", status.HTTP_401_UNAUTHORIZED)

    if not verify_password(password, user.password_hash):
        raise AuthError("Wrong credentials", status.HTTP_401_UNAUTHORIZED)

    if user.is_blocked:
        raise AuthError("Your account has been blocked", status.HTTP_403_FORBIDDEN)

    return user


async def get_user_from_token(session: AsyncSession, token: str) -> User:
    """
    Resolve the caller from a bearer access token.

    Raises:
        AuthError: 401 if the token is invalid or the user does not exist,
            403 if the account is blocked
    """
    payload = decode_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Invalid token payload", status.HTTP_401_UNAUTHORIZED)

    user = await get_user_by_id(session, user_id)
    if not user:
        raise AuthError("Unauthorized", status.HTTP_401_UNAUTHORIZED)

    if user.is_blocked:
        raise AuthError("Your account has been blocked", status.HTTP_403_FORBIDDEN)

    return user
