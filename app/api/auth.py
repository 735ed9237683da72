"""
Authentication API Endpoints for Double M Arena.

Handles user registration, email verification and login.
"""

import uuid
from datetime import datetime, timedelta
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.core.config import get_settings
from app.core.dependencies import CurrentUser, DbSession
from app.middleware.security import rate_limit_login
from app.models.user import User
from app.services.auth_service import (
    AuthError,
    authenticate_user,
    create_access_token,
    create_verification_token,
    register_user,
    verify_email,
)
from app.services.email_service import EmailService, get_email_service

router = APIRouter(tags=["Authentication"])
settings = get_settings()


# ============== Request/Response Models ==============

class RegisterRequest(BaseModel):
    """User registration request."""

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=1)

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "Shadow",
                "email": "user@example.com",
                "password": "securepassword123",
            }
        }
    }


class LoginRequest(BaseModel):
    """User login request."""

    email: str = Field(..., description="Email address")
    password: str = Field(..., description="Password")


class UserResponse(BaseModel):
    """User data response. Never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    role: str
    is_verified: bool
    is_blocked: bool
    ff_name: str | None = None
    position: str
    bio: str | None = None
    in_game_role: str | None = None
    other_games: list[str] = []
    fav_guns: list[str] = []
    instagram_url: str | None = None
    discord_tag: str | None = None
    profile_pic_url: str | None = None
    team_name: str | None = None
    tournaments_played: int = 0
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls.model_validate(user)


class RegisterResponse(BaseModel):
    message: str
    user_id: uuid.UUID


class AuthResponse(BaseModel):
    """Login response with the access token and user data."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


# ============== Endpoints ==============

@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
)
@rate_limit_login()
async def register(
    request: Request,
    data: RegisterRequest,
    session: DbSession,
    background_tasks: BackgroundTasks,
    email_service: Annotated[EmailService, Depends(get_email_service)],
) -> RegisterResponse:
    """
    Register a new user account.

    The account starts unverified; a verification link is emailed to the
    given address and must be followed before logging in.
    """
    try:
        user = await register_user(
            session=session,
            name=data.name,
            email=data.email,
            password=data.password,
        )
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    token = create_verification_token(user.email)
    background_tasks.add_task(email_service.send_verification_email, user.email, user.name, token)

    return RegisterResponse(
        message="Verify your email before proceeding..",
        user_id=user.id,
    )


@router.get("/verify/{token}")
async def verify(token: str, session: DbSession):
    """
    Verify an email address from the link sent at registration.

    Redirects to the frontend when a redirect URL is configured.
    """
    try:
        await verify_email(session, token)
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    if settings.verification_redirect_url:
        return RedirectResponse(settings.verification_redirect_url)
    return {"message": "Email verified successfully"}


@router.post("/login", response_model=AuthResponse)
@rate_limit_login()
async def login(
    request: Request,
    data: LoginRequest,
    session: DbSession,
) -> AuthResponse:
    """
    Authenticate with email and password.

    Returns an access token to send as `Authorization: Bearer <token>`.
    """
    try:
        user = await authenticate_user(
            session=session,
            email=data.email,
            password=data.password,
        )
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    access_token = create_access_token(
        data={"sub": str(user.id)},
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )

    return AuthResponse(
        access_token=access_token,
        expires_in=settings.access_token_expire_minutes * 60,
        user=UserResponse.from_user(user),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(user: CurrentUser) -> UserResponse:
    """
    Get the current authenticated user's information.
    """
    return UserResponse.from_user(user)
