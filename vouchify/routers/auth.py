"""
Authentication router — signup and login endpoints.

Endpoints:
  POST /auth/signup  — Register a new member and get a token
  POST /auth/login   — Authenticate and get a token
  GET  /auth/me      — The authenticated user's profile

Plaintext passwords exist only in memory during request processing; they
are hashed before any database operation and never logged.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.database import get_db
from vouchify.dependencies import get_current_user
from vouchify.models.user import User
from vouchify.schemas.auth import (
    UserSignupRequest,
    UserLoginRequest,
    TokenResponse,
    SignupResponse,
)
from vouchify.schemas.user import UserResponse
from vouchify.services import auth_service

router = APIRouter()


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def signup(
    request: UserSignupRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new marketplace member. Returns a JWT token so the user is
    immediately logged in.

    - **email**: Must be a valid email format and not already registered
    - **password**: Minimum 8 characters
    - **display_name**: Shown to buyers and sellers, 1-100 characters
    """
    user, token = await auth_service.signup(
        db=db,
        email=request.email,
        password=request.password,
        display_name=request.display_name,
    )

    return SignupResponse(
        user_id=user.id,
        email=user.email,
        role=user.role.value,
        token=token,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Authenticate and get a token",
)
async def login(
    request: UserLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Authenticate with email and password. Returns a JWT bearer token."""
    _, token = await auth_service.login(
        db=db,
        email=request.email,
        password=request.password,
    )
    return TokenResponse(token=token)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get the authenticated user's profile",
)
async def me(user: User = Depends(get_current_user)):
    return user
