"""
Vistagram Backend — User Profile Schemas
==========================================

What:  Response contracts for /api/users/{id} and /api/users/{id}/posts.
"""

import uuid
from datetime import datetime
from typing import List

from vistagram.schemas.common import CamelModel


class UserProfileResponse(CamelModel):
    """Public profile; secret columns are simply not declared here."""
    id: uuid.UUID
    username: str
    email: str
    created_at: datetime
    posts_count: int


class UserPostItem(CamelModel):
    """Compact post row for a profile grid."""
    id: uuid.UUID
    image_url: str
    caption: str
    share_count: int
    likes_count: int
    created_at: datetime


class UserPostsResponse(CamelModel):
    posts: List[UserPostItem]
