"""Role-Based Access Control: baseline catalogue and route permission checks."""

from fastapi import Depends, HTTPException, status

from ..config import UserhubConfig
from ..dependencies import get_app_config, get_authorization_service, get_current_principal
from ..utils.logging import get_logger
from .service import AuthorizationService
from .tokens import Principal

logger = get_logger("auth.rbac")

# Permission names double as lookup keys in the permissions table
PERM_CREATE_USER = "create user"
PERM_EDIT_USER = "edit user"
PERM_DELETE_USER = "delete user"
PERM_VIEW_USER = "view user"

BASELINE_PERMISSIONS = [
    PERM_CREATE_USER,
    PERM_EDIT_USER,
    PERM_DELETE_USER,
    PERM_VIEW_USER,
]

ROLE_ADMIN = "admin"
ROLE_USER = "user"

DEFAULT_ROLES = {
    ROLE_ADMIN: {
        "description": "Full user management access",
        "permissions": BASELINE_PERMISSIONS,
    },
    ROLE_USER: {
        "description": "Default role for every new account",
        "permissions": [],
    },
}


def require_permission(*required_perms: str):
    """FastAPI dependency factory: authenticate, then check effective permissions.

    Only authentication is enforced unless ``enforce_permissions`` is set.
    """
    async def _check(
        principal: Principal = Depends(get_current_principal),
        service: AuthorizationService = Depends(get_authorization_service),
        config: UserhubConfig = Depends(get_app_config),
    ) -> Principal:
        if not config.enforce_permissions:
            return principal

        granted = await service.permissions_for_subject(principal.subject)
        for perm in required_perms:
            if perm not in granted:
                logger.info("permission_denied", subject=principal.subject, permission=perm)
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Permission required: {perm}",
                )
        return principal

    return _check
