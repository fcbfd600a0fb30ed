"""
Vistagram Backend — Auth Route Handlers
=========================================

What:  POST /api/auth/register, /login, /refresh, /logout.
How:   Thin HTTP layer over AuthService; this module owns the refresh
       cookie (name, flags, lifetime), the service never sees HTTP.

Refresh cookie:
    HttpOnly, SameSite=Strict, Secure in production, Max-Age = refresh
    token lifetime. The access token is returned in the body only.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from vistagram.config import settings
from vistagram.database import get_db_session
from vistagram.middleware.auth import get_current_user
from vistagram.models.user import User
from vistagram.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    UserPublic,
)
from vistagram.schemas.common import ErrorResponse, MessageResponse
from vistagram.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=token,
        max_age=int(settings.refresh_token_lifetime.total_seconds()),
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def _clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=RegisterResponse,
    responses={
        400: {"description": "Invalid input or username/email already taken", "model": ErrorResponse},
        429: {"description": "Too many attempts", "model": ErrorResponse},
    },
    summary="Create an account",
)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> RegisterResponse:
    user = await auth_service.register(db, payload)
    await db.commit()
    return RegisterResponse(user=UserPublic.model_validate(user))


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        401: {"description": "Invalid credentials", "model": ErrorResponse},
        429: {"description": "Too many attempts", "model": ErrorResponse},
    },
    summary="Log in with email and password",
    description=(
        "Returns a short-lived access token in the body and sets the refresh token "
        "as an HttpOnly cookie. Any refresh token from an earlier login stops working."
    ),
)
async def login(
    payload: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> LoginResponse:
    result = await auth_service.login(db, payload)
    # Persist the session slot before the cookie reaches the client
    await db.commit()
    _set_refresh_cookie(response, result.refresh_token)
    return LoginResponse(
        access_token=result.access_token,
        user=UserPublic.model_validate(result.user),
    )


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    responses={401: {"description": "Missing, invalid or superseded refresh token", "model": ErrorResponse}},
    summary="Exchange the refresh cookie for a new access token",
)
async def refresh(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> RefreshResponse:
    token = request.cookies.get(settings.refresh_cookie_name)
    access_token = await auth_service.refresh(db, token)
    return RefreshResponse(access_token=access_token)


@router.post(
    "/logout",
    response_model=MessageResponse,
    responses={401: {"description": "Access token missing or invalid", "model": ErrorResponse}},
    summary="End the refresh session",
)
async def logout(
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    user_id = user.id
    await auth_service.logout(db, user)
    _clear_refresh_cookie(response)
    logger.info("User logged out: %s", user_id)
    return MessageResponse(message="Logged out successfully")
