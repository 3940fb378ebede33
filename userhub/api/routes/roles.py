"""Role catalogue routes: create, list, delete roles and manage the permissions they confer."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...auth.rbac import PERM_EDIT_USER, PERM_VIEW_USER, require_permission
from ...auth.service import AuthorizationService
from ...dependencies import get_authorization_service

router = APIRouter(prefix="/roles", tags=["roles"])


class CreateRoleRequest(BaseModel):
    name: str
    description: Optional[str] = None


class RolePermissionRequest(BaseModel):
    permission: str


@router.get("")
async def list_roles(
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_VIEW_USER)),
):
    """List all roles with the permissions they confer."""
    return [r.to_dict() for r in await service.list_roles()]


@router.post("", status_code=201)
async def create_role(
    body: CreateRoleRequest,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_EDIT_USER)),
):
    return (await service.create_role(body.name, body.description)).to_dict()


@router.get("/{role}")
async def get_role(
    role: str,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_VIEW_USER)),
):
    return (await service.get_role(role)).to_dict()


@router.delete("/{role}")
async def delete_role(
    role: str,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_EDIT_USER)),
):
    """Delete a role; users holding it lose it, permissions stay."""
    await service.delete_role(role)
    return {"message": "Deleted"}


@router.post("/{role}/permissions")
async def grant_permission_to_role(
    role: str,
    body: RolePermissionRequest,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_EDIT_USER)),
):
    await service.grant_permission_to_role(role, body.permission)
    return {"message": "Permission granted successfully"}


@router.delete("/{role}/permissions/{permission}")
async def revoke_permission_from_role(
    role: str,
    permission: str,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_EDIT_USER)),
):
    await service.revoke_permission_from_role(role, permission)
    return {"message": "Deleted"}
