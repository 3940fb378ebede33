"""SQLAlchemy models package."""

from .base import Base
from .user import User
from .role import Role
from .permission import Permission
from .user_role import UserRole
from .user_permission import UserPermission
from .role_permission import RolePermission

__all__ = [
    "Base",
    "User",
    "Role",
    "Permission",
    "UserRole",
    "UserPermission",
    "RolePermission",
]
