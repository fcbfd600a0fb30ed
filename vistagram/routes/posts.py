"""
Vistagram Backend — Post Route Handlers
=========================================

What:  /api/posts: create, feed, detail, like toggle, likers, share.
Who:   The web client's feed and post pages.

Auth:
    POST /api/posts, POST /api/posts/{id}/like     required gate
    GET  /api/posts, GET /api/posts/{id}           optional gate (likedByUser)
    GET  /api/posts/{id}/likes, POST .../share     open
"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from vistagram.database import get_db_session
from vistagram.exceptions import NotFoundError, ValidationError
from vistagram.middleware.auth import get_current_user, get_optional_user
from vistagram.models.user import User
from vistagram.schemas.common import ErrorResponse
from vistagram.schemas.post import (
    LikeToggleResponse,
    PostLikesResponse,
    PostResponse,
    ShareResponse,
)
from vistagram.services.post_service import post_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts", tags=["Posts"])


def parse_id(value: str, resource: str) -> uuid.UUID:
    """A malformed id cannot name an existing row: report it as not found."""
    try:
        return uuid.UUID(value)
    except ValueError:
        raise NotFoundError(resource=resource, resource_id=value)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=PostResponse,
    responses={
        400: {"description": "Missing or invalid image", "model": ErrorResponse},
        401: {"description": "Access token missing or invalid", "model": ErrorResponse},
    },
    summary="Create a post from an uploaded image",
)
async def create_post(
    request: Request,
    image: Optional[UploadFile] = File(default=None, description="PNG, JPEG, WebP or GIF"),
    caption: str = Form(default=""),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> PostResponse:
    if image is None or not image.filename:
        raise ValidationError(message="Image is required", field="image")

    content = await image.read()
    content_length = request.headers.get("content-length")

    return await post_service.create_post(
        db=db,
        author=user,
        filename=image.filename,
        content=content,
        caption=caption,
        content_length=int(content_length) if content_length else None,
    )


@router.get(
    "",
    response_model=List[PostResponse],
    summary="List all posts, newest first",
)
async def list_posts(
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[PostResponse]:
    return await post_service.list_posts(db, viewer_id=viewer.id if viewer else None)


@router.get(
    "/{post_id}",
    response_model=PostResponse,
    responses={404: {"description": "Post not found", "model": ErrorResponse}},
    summary="Get a single post",
)
async def get_post(
    post_id: str,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> PostResponse:
    return await post_service.get_post(
        db,
        parse_id(post_id, "post"),
        viewer_id=viewer.id if viewer else None,
    )


@router.post(
    "/{post_id}/like",
    response_model=LikeToggleResponse,
    responses={
        401: {"description": "Access token missing or invalid", "model": ErrorResponse},
        404: {"description": "Post not found", "model": ErrorResponse},
    },
    summary="Like or unlike a post",
)
async def toggle_like(
    post_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> LikeToggleResponse:
    return await post_service.toggle_like(db, parse_id(post_id, "post"), user.id)


@router.get(
    "/{post_id}/likes",
    response_model=PostLikesResponse,
    responses={404: {"description": "Post not found", "model": ErrorResponse}},
    summary="List the users who liked a post",
)
async def get_post_likes(
    post_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> PostLikesResponse:
    return await post_service.get_likes(db, parse_id(post_id, "post"))


@router.post(
    "/{post_id}/share",
    response_model=ShareResponse,
    responses={404: {"description": "Post not found", "model": ErrorResponse}},
    summary="Count a share",
)
async def share_post(
    post_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> ShareResponse:
    return await post_service.share_post(db, parse_id(post_id, "post"))
