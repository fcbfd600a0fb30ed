# Importing the models registers them on Base.metadata (Alembic, create_all)
from vistagram.models.post import Post, post_likes
from vistagram.models.user import User

__all__ = ["Post", "User", "post_likes"]
