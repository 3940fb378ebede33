"""Permission catalogue routes."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...auth.rbac import PERM_EDIT_USER, PERM_VIEW_USER, require_permission
from ...auth.service import AuthorizationService
from ...dependencies import get_authorization_service

router = APIRouter(prefix="/permissions", tags=["permissions"])


class CreatePermissionRequest(BaseModel):
    name: str
    description: Optional[str] = None


@router.get("")
async def list_permissions(
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_VIEW_USER)),
):
    return [p.to_dict() for p in await service.list_permissions()]


@router.post("", status_code=201)
async def create_permission(
    body: CreatePermissionRequest,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_EDIT_USER)),
):
    return (await service.create_permission(body.name, body.description)).to_dict()


@router.delete("/{permission}")
async def delete_permission(
    permission: str,
    service: AuthorizationService = Depends(get_authorization_service),
    _principal=Depends(require_permission(PERM_EDIT_USER)),
):
    """Delete a permission and every grant of it, direct or via roles."""
    await service.delete_permission(permission)
    return {"message": "Deleted"}
