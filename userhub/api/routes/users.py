"""User management routes: CRUD, role assignment, and direct permission grants."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...auth.rbac import (
    PERM_CREATE_USER,
    PERM_DELETE_USER,
    PERM_EDIT_USER,
    PERM_VIEW_USER,
    require_permission,
)
from ...auth.service import AuthorizationService
from ...dependencies import get_authorization_service

router = APIRouter(prefix="/users", tags=["users"])


# --- Request bodies ---

class CreateUserRequest(BaseModel):
    name: str
    email: str
    password: str


class UpdateUserRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class AssignRoleRequest(BaseModel):
    role: str


class GivePermissionRequest(BaseModel):
    permission: str


# --- User CRUD ---

@router.get("")
async def list_users(
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_VIEW_USER)),
):
    """List all users with their roles and permissions."""
    return [u.to_dict() for u in await service.list_users()]


@router.post("", status_code=201)
async def create_user(
    body: CreateUserRequest,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_CREATE_USER)),
):
    """Create a user; the default role is assigned as part of creation."""
    user = await service.create_user(body.name, body.email, body.password)
    return user.to_dict()


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_VIEW_USER)),
):
    """Get user detail with roles and permissions."""
    return (await service.get_user(user_id)).to_dict()


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    body: UpdateUserRequest,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_EDIT_USER)),
):
    """Update the supplied fields of a user."""
    user = await service.update_user(
        user_id,
        name=body.name,
        email=body.email,
        password=body.password,
    )
    return user.to_dict()


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_DELETE_USER)),
):
    """Delete a user together with its role and permission links."""
    await service.delete_user(user_id)
    return {"message": "User deleted"}


# --- Role assignment ---

@router.post("/{user_id}/assign-role")
async def assign_role(
    user_id: int,
    body: AssignRoleRequest,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_EDIT_USER)),
):
    await service.assign_role(user_id, body.role)
    return {"message": "Role assigned successfully"}


@router.delete("/{user_id}/remove-role/{role}")
async def remove_role(
    user_id: int,
    role: str,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_EDIT_USER)),
):
    await service.remove_role(user_id, role)
    return {"message": "Deleted"}


# --- Direct permissions ---

@router.post("/{user_id}/give-permission")
async def give_permission(
    user_id: int,
    body: GivePermissionRequest,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_EDIT_USER)),
):
    await service.give_permission_to(user_id, body.permission)
    return {"message": "Permission granted successfully"}


@router.delete("/{user_id}/revoke-permission-to/{permission}")
async def revoke_permission(
    user_id: int,
    permission: str,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_EDIT_USER)),
):
    await service.revoke_permission_to(user_id, permission)
    return {"message": "Deleted"}
