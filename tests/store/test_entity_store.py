"""Tests for the entity store: uniqueness, lookups, association rows, and cascades."""

import pytest
from sqlalchemy import func, select

from userhub.errors import ConflictError, NotFoundError
from userhub.models.permission import Permission
from userhub.models.role import Role
from userhub.models.role_permission import RolePermission
from userhub.models.user_permission import UserPermission
from userhub.models.user_role import UserRole


async def _count(session, model, *where):
    query = select(func.count()).select_from(model)
    if where:
        query = query.where(*where)
    return (await session.execute(query)).scalar_one()


class TestUsers:
    @pytest.mark.asyncio
    async def test_add_and_get_user(self, store):
        user = await store.add_user("Ada", "ada@example.com", "hash")
        await store.commit()

        fetched = await store.get_user(user.id)
        assert fetched.email == "ada@example.com"
        assert fetched.created_at is not None
        assert fetched.updated_at is not None

    @pytest.mark.asyncio
    async def test_get_missing_user_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            await store.get_user(999)

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, store):
        await store.add_user("Ada", "ada@example.com", "hash")
        await store.commit()

        with pytest.raises(ConflictError):
            await store.add_user("Other", "ada@example.com", "hash")

    @pytest.mark.asyncio
    async def test_find_user_by_email_excludes_id(self, store):
        user = await store.add_user("Ada", "ada@example.com", "hash")
        assert await store.find_user_by_email("ada@example.com") is user
        assert await store.find_user_by_email("ada@example.com", exclude_id=user.id) is None


class TestNamedLookups:
    @pytest.mark.asyncio
    async def test_role_lookup_by_name(self, store):
        role = await store.add_role("admin", "Full access")
        assert (await store.get_role_by_name("admin")).id == role.id
        with pytest.raises(NotFoundError, match="does not exist"):
            await store.get_role_by_name("ghost")

    @pytest.mark.asyncio
    async def test_duplicate_role_and_permission_names_conflict(self, store):
        await store.add_role("admin")
        await store.add_permission("edit posts")
        with pytest.raises(ConflictError):
            await store.add_role("admin")
        with pytest.raises(ConflictError):
            await store.add_permission("edit posts")


class TestAssociations:
    @pytest.mark.asyncio
    async def test_add_user_role_is_idempotent(self, store, session):
        user = await store.add_user("Ada", "ada@example.com", "hash")
        role = await store.add_role("admin")

        assert await store.add_user_role(user.id, role.id) is True
        assert await store.add_user_role(user.id, role.id) is False
        await store.commit()

        assert await _count(session, UserRole, UserRole.user_id == user.id) == 1

    @pytest.mark.asyncio
    async def test_remove_reports_whether_row_existed(self, store):
        user = await store.add_user("Ada", "ada@example.com", "hash")
        permission = await store.add_permission("edit posts")

        assert await store.remove_user_permission(user.id, permission.id) is False
        await store.add_user_permission(user.id, permission.id)
        assert await store.remove_user_permission(user.id, permission.id) is True
        assert await store.has_user_permission(user.id, permission.id) is False

    @pytest.mark.asyncio
    async def test_effective_permissions_union_direct_and_role(self, store):
        user = await store.add_user("Ada", "ada@example.com", "hash")
        role = await store.add_role("editor")
        via_role = await store.add_permission("edit posts")
        direct = await store.add_permission("view user")
        await store.add_role_permission(role.id, via_role.id)
        await store.add_user_role(user.id, role.id)
        await store.add_user_permission(user.id, direct.id)

        effective = await store.effective_permission_names_for([user.id])
        assert effective[user.id] == ["edit posts", "view user"]
        direct_only = await store.direct_permission_names_for([user.id])
        assert direct_only[user.id] == ["view user"]

    @pytest.mark.asyncio
    async def test_read_models_cover_users_without_rows(self, store):
        user = await store.add_user("Ada", "ada@example.com", "hash")
        assert await store.role_names_for([user.id]) == {user.id: []}
        assert await store.role_names_for([]) == {}


class TestCascades:
    @pytest.mark.asyncio
    async def test_delete_user_keeps_shared_rows(self, store, session):
        ada = await store.add_user("Ada", "ada@example.com", "hash")
        bob = await store.add_user("Bob", "bob@example.com", "hash")
        role = await store.add_role("admin")
        permission = await store.add_permission("edit posts")
        for user in (ada, bob):
            await store.add_user_role(user.id, role.id)
            await store.add_user_permission(user.id, permission.id)
        await store.commit()

        await store.delete_user(ada)
        await store.commit()

        assert await _count(session, UserRole, UserRole.user_id == ada.id) == 0
        assert await _count(session, UserPermission, UserPermission.user_id == ada.id) == 0
        assert await _count(session, UserRole, UserRole.user_id == bob.id) == 1
        assert await _count(session, UserPermission, UserPermission.user_id == bob.id) == 1
        assert await _count(session, Role) == 1
        assert await _count(session, Permission) == 1

    @pytest.mark.asyncio
    async def test_delete_role_removes_its_links_only(self, store, session):
        user = await store.add_user("Ada", "ada@example.com", "hash")
        role = await store.add_role("editor")
        permission = await store.add_permission("edit posts")
        await store.add_user_role(user.id, role.id)
        await store.add_role_permission(role.id, permission.id)
        await store.commit()

        await store.delete_role(role)
        await store.commit()

        assert await _count(session, UserRole) == 0
        assert await _count(session, RolePermission) == 0
        assert await _count(session, Permission) == 1
        assert (await store.get_user(user.id)).name == "Ada"


class TestFlushConflicts:
    @pytest.mark.asyncio
    async def test_constraint_violation_rolls_back_and_session_stays_usable(self, store, session):
        await store.add_user("Ada", "ada@example.com", "hash")
        bob = await store.add_user("Bob", "bob@example.com", "hash")
        await store.commit()

        # update_user has no pre-check, so the unique index fires on flush
        with pytest.raises(ConflictError):
            await store.update_user(bob, {"email": "ada@example.com"})

        assert await _count(session, Role) == 0
        assert await store.find_user_by_email("bob@example.com") is not None
