"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.user import Role, User, user_roles

__all__ = ["Base", "Role", "User", "user_roles"]
