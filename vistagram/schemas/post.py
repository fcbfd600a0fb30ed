"""
Vistagram Backend — Post, Like and Share Schemas
==================================================

What:  Response contracts for the /api/posts routes.
Why:   likesCount / likedByUser are computed per viewer, so posts are always
       rendered through these models rather than returned as ORM rows.
"""

import uuid
from datetime import datetime
from typing import List

from vistagram.schemas.common import CamelModel


class PostAuthor(CamelModel):
    """Author (or liker) summary embedded in post payloads."""
    id: uuid.UUID
    username: str


class PostResponse(CamelModel):
    """
    What:  One post as seen by a particular viewer.
    Who:   GET /api/posts, GET /api/posts/{id}, POST /api/posts.

    liked_by_user is False for anonymous viewers.
    """
    id: uuid.UUID
    user: PostAuthor
    image_url: str
    caption: str
    share_count: int
    likes_count: int
    liked_by_user: bool
    created_at: datetime


class LikeToggleResponse(CamelModel):
    message: str
    liked: bool
    likes_count: int


class PostLikesResponse(CamelModel):
    likes_count: int
    users: List[PostAuthor]


class ShareResponse(CamelModel):
    message: str = "Post shared"
    share_count: int
