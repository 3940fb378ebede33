"""Authorization service: user lifecycle and RBAC association rules.

All mutations go through here so the invariants live in one place:
every new account gets the default role explicitly, association adds are
idempotent, removals of something not held are an InvalidStateError, and
revoking a permission only ever touches the direct grant.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from email_validator import EmailNotValidError, validate_email

from ..errors import ConflictError, InvalidStateError, ValidationError
from ..models.permission import Permission
from ..models.role import Role
from ..models.user import User
from ..store import EntityStore
from ..utils.logging import get_logger
from ..utils.security import hash_password, validate_password_length

logger = get_logger("auth.service")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class UserView:
    """A user with resolved roles and permissions. Carries no credential data."""

    id: int
    name: str
    email: str
    roles: list[str] = field(default_factory=list)
    permissions: list[str] = field(default_factory=list)
    effective_permissions: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "roles": self.roles,
            "permissions": self.permissions,
            "effective_permissions": self.effective_permissions,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class RoleView:
    id: int
    name: str
    description: Optional[str] = None
    permissions: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "permissions": self.permissions,
            "created_at": _iso(self.created_at),
        }


@dataclass
class PermissionView:
    id: int
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, permission: Permission) -> "PermissionView":
        return cls(
            id=permission.id,
            name=permission.name,
            description=permission.description,
            created_at=permission.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": _iso(self.created_at),
        }


class AuthorizationService:
    """Business rules over an EntityStore. One instance per request/session."""

    def __init__(
        self,
        store: EntityStore,
        min_password_length: int = 6,
        default_role: str = "user",
    ):
        self.store = store
        self.min_password_length = min_password_length
        self.default_role = default_role
        self._depth = 0

    @asynccontextmanager
    async def transaction(self):
        """Commit once when the outermost block exits; roll back on any error.

        Nested blocks join the enclosing transaction, which lets bootstrap
        run several operations atomically.
        """
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            yield
            await self.store.commit()
        except BaseException:
            await self.store.rollback()
            raise
        finally:
            self._depth = 0

    # --- Validation helpers ---

    @staticmethod
    def _require_name(value: str, field_name: str = "name") -> str:
        value = (value or "").strip()
        if not value:
            raise ValidationError(detail=f"The {field_name} field is required.")
        return value

    @staticmethod
    def _normalize_email(email: str) -> str:
        try:
            validated = validate_email(email, check_deliverability=False)
        except EmailNotValidError as e:
            raise ValidationError(
                detail=f"The email field must be a valid email address: {e}"
            ) from e
        return validated.normalized.lower()

    def _check_password(self, password: str) -> None:
        try:
            validate_password_length(password, self.min_password_length)
        except ValueError as e:
            raise ValidationError(detail=str(e)) from e

    # --- Read models ---

    async def _user_views(self, users: list[User]) -> list[UserView]:
        ids = [u.id for u in users]
        roles = await self.store.role_names_for(ids)
        direct = await self.store.direct_permission_names_for(ids)
        effective = await self.store.effective_permission_names_for(ids)
        return [
            UserView(
                id=u.id,
                name=u.name,
                email=u.email,
                roles=roles[u.id],
                permissions=direct[u.id],
                effective_permissions=effective[u.id],
                created_at=u.created_at,
                updated_at=u.updated_at,
            )
            for u in users
        ]

    async def _role_views(self, roles: list[Role]) -> list[RoleView]:
        perms = await self.store.permission_names_for_roles([r.id for r in roles])
        return [
            RoleView(
                id=r.id,
                name=r.name,
                description=r.description,
                permissions=perms[r.id],
                created_at=r.created_at,
            )
            for r in roles
        ]

    async def _effective_permissions(self, user_id: int) -> list[str]:
        return (await self.store.effective_permission_names_for([user_id]))[user_id]

    async def get_user(self, user_id: int) -> UserView:
        user = await self.store.get_user(user_id)
        return (await self._user_views([user]))[0]

    async def list_users(self) -> list[UserView]:
        return await self._user_views(await self.store.list_users())

    async def has_role(self, user_id: int, role_name: str) -> bool:
        user = await self.store.get_user(user_id)
        role = await self.store.find_role_by_name(role_name)
        if role is None:
            return False
        return await self.store.has_user_role(user.id, role.id)

    async def has_permission(self, user_id: int, permission_name: str) -> bool:
        """Effective check: direct grant or conferred by any held role."""
        user = await self.store.get_user(user_id)
        return permission_name in await self._effective_permissions(user.id)

    async def permissions_for_subject(self, subject: str) -> list[str]:
        """Effective permissions of the account a token subject (email) names."""
        user = await self.store.find_user_by_email(subject.strip().lower())
        if user is None:
            return []
        return await self._effective_permissions(user.id)

    # --- User lifecycle ---

    async def create_user(self, name: str, email: str, password: str) -> UserView:
        name = self._require_name(name)
        email = self._normalize_email(email)
        self._check_password(password)

        async with self.transaction():
            user = await self.store.add_user(name, email, hash_password(password))
            role = await self.store.get_role_by_name(self.default_role)
            await self.store.add_user_role(user.id, role.id)
            view = await self.get_user(user.id)

        logger.info("user_created", user_id=user.id, default_role=self.default_role)
        return view

    async def update_user(
        self,
        user_id: int,
        name: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> UserView:
        """Apply only the supplied fields; unspecified fields stay untouched."""
        async with self.transaction():
            user = await self.store.get_user(user_id)

            fields = {}
            if name is not None:
                fields["name"] = self._require_name(name)
            if email is not None:
                email = self._normalize_email(email)
                if await self.store.find_user_by_email(email, exclude_id=user.id):
                    raise ConflictError(detail="The email has already been taken.")
                fields["email"] = email
            if password is not None:
                self._check_password(password)
                fields["password_hash"] = hash_password(password)

            if fields:
                await self.store.update_user(user, fields)
            view = await self.get_user(user.id)

        logger.info("user_updated", user_id=user_id, fields=sorted(fields))
        return view

    async def delete_user(self, user_id: int) -> None:
        async with self.transaction():
            user = await self.store.get_user(user_id)
            await self.store.delete_user(user)
        logger.info("user_deleted", user_id=user_id)

    # --- User <-> Role ---

    async def assign_role(self, user_id: int, role_name: str) -> bool:
        """Give the user a role. Re-assigning a held role is a no-op (returns False)."""
        async with self.transaction():
            user = await self.store.get_user(user_id)
            role = await self.store.get_role_by_name(role_name)
            added = await self.store.add_user_role(user.id, role.id)
        logger.info("role_assigned", user_id=user_id, role=role_name, changed=added)
        return added

    async def remove_role(self, user_id: int, role_name: str) -> None:
        async with self.transaction():
            user = await self.store.get_user(user_id)
            role = await self.store.find_role_by_name(role_name)
            if role is None or not await self.store.remove_user_role(user.id, role.id):
                raise InvalidStateError(detail=f"User does not have role '{role_name}'")
        logger.info("role_removed", user_id=user_id, role=role_name)

    # --- User <-> Permission ---

    async def give_permission_to(self, user_id: int, permission_name: str) -> bool:
        """Grant a permission directly. Re-granting is a no-op (returns False)."""
        async with self.transaction():
            user = await self.store.get_user(user_id)
            permission = await self.store.get_permission_by_name(permission_name)
            added = await self.store.add_user_permission(user.id, permission.id)
        logger.info("permission_granted", user_id=user_id, permission=permission_name, changed=added)
        return added

    async def revoke_permission_to(self, user_id: int, permission_name: str) -> bool:
        """Remove a direct grant. Returns whether a direct row was deleted.

        The held-check uses the effective set, so a permission that only comes
        from a role passes the check; the role still confers it afterwards.
        """
        async with self.transaction():
            user = await self.store.get_user(user_id)
            if permission_name not in await self._effective_permissions(user.id):
                raise InvalidStateError(
                    detail=f"User does not have permission '{permission_name}'"
                )
            permission = await self.store.get_permission_by_name(permission_name)
            removed = await self.store.remove_user_permission(user.id, permission.id)
            still_held = permission_name in await self._effective_permissions(user.id)

        if still_held:
            logger.warning(
                "permission_revoke_role_derived",
                user_id=user_id,
                permission=permission_name,
                direct_removed=removed,
            )
        else:
            logger.info("permission_revoked", user_id=user_id, permission=permission_name)
        return removed

    # --- Role and permission catalogue ---

    async def list_roles(self) -> list[RoleView]:
        return await self._role_views(await self.store.list_roles())

    async def get_role(self, role_name: str) -> RoleView:
        role = await self.store.get_role_by_name(role_name)
        return (await self._role_views([role]))[0]

    async def create_role(self, name: str, description: Optional[str] = None) -> RoleView:
        name = self._require_name(name)
        async with self.transaction():
            role = await self.store.add_role(name, description)
            view = (await self._role_views([role]))[0]
        logger.info("role_created", role=name)
        return view

    async def delete_role(self, role_name: str) -> None:
        if role_name == self.default_role:
            raise InvalidStateError(detail="The default role cannot be deleted")
        async with self.transaction():
            role = await self.store.get_role_by_name(role_name)
            await self.store.delete_role(role)
        logger.info("role_deleted", role=role_name)

    async def list_permissions(self) -> list[PermissionView]:
        return [PermissionView.from_model(p) for p in await self.store.list_permissions()]

    async def create_permission(self, name: str, description: Optional[str] = None) -> PermissionView:
        name = self._require_name(name)
        async with self.transaction():
            permission = await self.store.add_permission(name, description)
        logger.info("permission_created", permission=name)
        return PermissionView.from_model(permission)

    async def delete_permission(self, permission_name: str) -> None:
        async with self.transaction():
            permission = await self.store.get_permission_by_name(permission_name)
            await self.store.delete_permission(permission)
        logger.info("permission_deleted", permission=permission_name)

    async def grant_permission_to_role(self, role_name: str, permission_name: str) -> bool:
        async with self.transaction():
            role = await self.store.get_role_by_name(role_name)
            permission = await self.store.get_permission_by_name(permission_name)
            added = await self.store.add_role_permission(role.id, permission.id)
        logger.info("role_permission_granted", role=role_name, permission=permission_name, changed=added)
        return added

    async def revoke_permission_from_role(self, role_name: str, permission_name: str) -> None:
        async with self.transaction():
            role = await self.store.get_role_by_name(role_name)
            permission = await self.store.find_permission_by_name(permission_name)
            if permission is None or not await self.store.remove_role_permission(role.id, permission.id):
                raise InvalidStateError(
                    detail=f"Role '{role_name}' does not have permission '{permission_name}'"
                )
        logger.info("role_permission_revoked", role=role_name, permission=permission_name)
