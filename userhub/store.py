"""Entity store: relational persistence for users, roles, permissions and their associations.

Every method runs inside the caller's session transaction and nothing here
commits on its own. The service calls ``commit()`` once per operation so a
lookup and the association change that follows it land atomically. The one
exception is a unique-constraint violation on flush: ``_flush`` rolls the
session back itself before raising ConflictError, so the session stays usable.
"""

from collections.abc import Iterable
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import ConflictError, NotFoundError
from .models.permission import Permission
from .models.role import Role
from .models.role_permission import RolePermission
from .models.user import User
from .models.user_permission import UserPermission
from .models.user_role import UserRole
from .utils.logging import get_logger

logger = get_logger("store")


class EntityStore:
    """Async data access for the RBAC tables, bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def _flush(self, conflict_message: str) -> None:
        """Flush pending writes, turning a unique-constraint violation into a ConflictError."""
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("integrity_conflict", message=conflict_message, error=str(e.orig))
            raise ConflictError(conflict_message) from e

    # --- Users ---

    async def add_user(self, name: str, email: str, password_hash: str) -> User:
        if await self.find_user_by_email(email) is not None:
            raise ConflictError("The email has already been taken.")
        user = User(name=name, email=email, password_hash=password_hash)
        self.session.add(user)
        await self._flush("The email has already been taken.")
        await self.session.refresh(user)
        return user

    async def get_user(self, user_id: int) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def find_user_by_email(
        self, email: str, exclude_id: Optional[int] = None
    ) -> Optional[User]:
        query = select(User).where(User.email == email)
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_users(self) -> list[User]:
        result = await self.session.execute(select(User).order_by(User.id))
        return list(result.scalars().all())

    async def update_user(self, user: User, fields: dict) -> User:
        """Apply the given column values and stamp updated_at."""
        for key, value in fields.items():
            setattr(user, key, value)
        user.updated_at = func.now()
        await self._flush("The email has already been taken.")
        await self.session.refresh(user)
        return user

    async def delete_user(self, user: User) -> None:
        """Delete a user and its association rows; shared roles/permissions stay."""
        await self.session.execute(delete(UserRole).where(UserRole.user_id == user.id))
        await self.session.execute(
            delete(UserPermission).where(UserPermission.user_id == user.id)
        )
        await self.session.delete(user)
        await self.session.flush()

    # --- Roles ---

    async def add_role(self, name: str, description: Optional[str] = None) -> Role:
        if await self.find_role_by_name(name) is not None:
            raise ConflictError(f"Role '{name}' already exists")
        role = Role(name=name, description=description)
        self.session.add(role)
        await self._flush(f"Role '{name}' already exists")
        await self.session.refresh(role)
        return role

    async def find_role_by_name(self, name: str) -> Optional[Role]:
        result = await self.session.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()

    async def get_role_by_name(self, name: str) -> Role:
        role = await self.find_role_by_name(name)
        if role is None:
            raise NotFoundError(f"Role '{name}' does not exist")
        return role

    async def list_roles(self) -> list[Role]:
        result = await self.session.execute(select(Role).order_by(Role.name))
        return list(result.scalars().all())

    async def delete_role(self, role: Role) -> None:
        await self.session.execute(delete(UserRole).where(UserRole.role_id == role.id))
        await self.session.execute(
            delete(RolePermission).where(RolePermission.role_id == role.id)
        )
        await self.session.delete(role)
        await self.session.flush()

    # --- Permissions ---

    async def add_permission(self, name: str, description: Optional[str] = None) -> Permission:
        if await self.find_permission_by_name(name) is not None:
            raise ConflictError(f"Permission '{name}' already exists")
        permission = Permission(name=name, description=description)
        self.session.add(permission)
        await self._flush(f"Permission '{name}' already exists")
        await self.session.refresh(permission)
        return permission

    async def find_permission_by_name(self, name: str) -> Optional[Permission]:
        result = await self.session.execute(select(Permission).where(Permission.name == name))
        return result.scalar_one_or_none()

    async def get_permission_by_name(self, name: str) -> Permission:
        permission = await self.find_permission_by_name(name)
        if permission is None:
            raise NotFoundError(f"Permission '{name}' does not exist")
        return permission

    async def list_permissions(self) -> list[Permission]:
        result = await self.session.execute(select(Permission).order_by(Permission.name))
        return list(result.scalars().all())

    async def delete_permission(self, permission: Permission) -> None:
        await self.session.execute(
            delete(UserPermission).where(UserPermission.permission_id == permission.id)
        )
        await self.session.execute(
            delete(RolePermission).where(RolePermission.permission_id == permission.id)
        )
        await self.session.delete(permission)
        await self.session.flush()

    # --- User <-> Role ---

    async def has_user_role(self, user_id: int, role_id: int) -> bool:
        result = await self.session.execute(
            select(UserRole.id).where(
                UserRole.user_id == user_id,
                UserRole.role_id == role_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def add_user_role(self, user_id: int, role_id: int) -> bool:
        """Link user and role. Returns False when the pair already exists."""
        if await self.has_user_role(user_id, role_id):
            return False
        self.session.add(UserRole(user_id=user_id, role_id=role_id))
        await self._flush("Role already assigned to user")
        return True

    async def remove_user_role(self, user_id: int, role_id: int) -> bool:
        result = await self.session.execute(
            delete(UserRole).where(
                UserRole.user_id == user_id,
                UserRole.role_id == role_id,
            )
        )
        return result.rowcount > 0

    # --- User <-> Permission (direct grants) ---

    async def has_user_permission(self, user_id: int, permission_id: int) -> bool:
        result = await self.session.execute(
            select(UserPermission.id).where(
                UserPermission.user_id == user_id,
                UserPermission.permission_id == permission_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def add_user_permission(self, user_id: int, permission_id: int) -> bool:
        """Grant a permission directly. Returns False when already granted."""
        if await self.has_user_permission(user_id, permission_id):
            return False
        self.session.add(UserPermission(user_id=user_id, permission_id=permission_id))
        await self._flush("Permission already granted to user")
        return True

    async def remove_user_permission(self, user_id: int, permission_id: int) -> bool:
        result = await self.session.execute(
            delete(UserPermission).where(
                UserPermission.user_id == user_id,
                UserPermission.permission_id == permission_id,
            )
        )
        return result.rowcount > 0

    # --- Role <-> Permission ---

    async def has_role_permission(self, role_id: int, permission_id: int) -> bool:
        result = await self.session.execute(
            select(RolePermission.id).where(
                RolePermission.role_id == role_id,
                RolePermission.permission_id == permission_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def add_role_permission(self, role_id: int, permission_id: int) -> bool:
        if await self.has_role_permission(role_id, permission_id):
            return False
        self.session.add(RolePermission(role_id=role_id, permission_id=permission_id))
        await self._flush("Permission already granted to role")
        return True

    async def remove_role_permission(self, role_id: int, permission_id: int) -> bool:
        result = await self.session.execute(
            delete(RolePermission).where(
                RolePermission.role_id == role_id,
                RolePermission.permission_id == permission_id,
            )
        )
        return result.rowcount > 0

    # --- Read models ---

    async def role_names_for(self, user_ids: Iterable[int]) -> dict[int, list[str]]:
        """Map each user id to the sorted names of the roles it holds."""
        names: dict[int, list[str]] = {uid: [] for uid in user_ids}
        if not names:
            return names
        rows = await self.session.execute(
            select(UserRole.user_id, Role.name)
            .join(Role, Role.id == UserRole.role_id)
            .where(UserRole.user_id.in_(list(names)))
            .order_by(Role.name)
        )
        for user_id, name in rows:
            names[user_id].append(name)
        return names

    async def direct_permission_names_for(self, user_ids: Iterable[int]) -> dict[int, list[str]]:
        """Map each user id to the sorted names of its directly granted permissions."""
        names: dict[int, list[str]] = {uid: [] for uid in user_ids}
        if not names:
            return names
        rows = await self.session.execute(
            select(UserPermission.user_id, Permission.name)
            .join(Permission, Permission.id == UserPermission.permission_id)
            .where(UserPermission.user_id.in_(list(names)))
            .order_by(Permission.name)
        )
        for user_id, name in rows:
            names[user_id].append(name)
        return names

    async def role_permission_names_for(self, user_ids: Iterable[int]) -> dict[int, set[str]]:
        """Map each user id to the permission names conferred by its roles."""
        names: dict[int, set[str]] = {uid: set() for uid in user_ids}
        if not names:
            return names
        rows = await self.session.execute(
            select(UserRole.user_id, Permission.name)
            .join(RolePermission, RolePermission.role_id == UserRole.role_id)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(UserRole.user_id.in_(list(names)))
        )
        for user_id, name in rows:
            names[user_id].add(name)
        return names

    async def effective_permission_names_for(
        self, user_ids: Iterable[int]
    ) -> dict[int, list[str]]:
        """Direct grants union role-derived permissions, sorted per user."""
        user_ids = list(user_ids)
        direct = await self.direct_permission_names_for(user_ids)
        inherited = await self.role_permission_names_for(user_ids)
        return {
            uid: sorted(set(direct[uid]) | inherited[uid])
            for uid in user_ids
        }

    async def permission_names_for_roles(self, role_ids: Iterable[int]) -> dict[int, list[str]]:
        names: dict[int, list[str]] = {rid: [] for rid in role_ids}
        if not names:
            return names
        rows = await self.session.execute(
            select(RolePermission.role_id, Permission.name)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(RolePermission.role_id.in_(list(names)))
            .order_by(Permission.name)
        )
        for role_id, name in rows:
            names[role_id].append(name)
        return names
