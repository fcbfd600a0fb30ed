"""
Vistagram Backend — User Route Handlers
=========================================

What:  Public profile reads: GET /api/users/{id} and GET /api/users/{id}/posts.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vistagram.database import get_db_session
from vistagram.routes.posts import parse_id
from vistagram.schemas.common import ErrorResponse
from vistagram.schemas.user import UserPostsResponse, UserProfileResponse
from vistagram.services.user_service import user_service

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get(
    "/{user_id}",
    response_model=UserProfileResponse,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Get a user's public profile",
)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> UserProfileResponse:
    return await user_service.get_profile(db, parse_id(user_id, "user"))


@router.get(
    "/{user_id}/posts",
    response_model=UserPostsResponse,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="List a user's posts, newest first",
)
async def get_user_posts(
    user_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> UserPostsResponse:
    return await user_service.get_user_posts(db, parse_id(user_id, "user"))
