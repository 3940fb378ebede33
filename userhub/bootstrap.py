"""One-shot bootstrap: baseline roles, permissions, and the first admin account.

Run once per environment (see scripts/seed.py). A second run fails with
ConflictError on the first role name and writes nothing.
"""

from .auth.rbac import DEFAULT_ROLES, ROLE_ADMIN
from .auth.service import AuthorizationService, UserView
from .utils.logging import get_logger

logger = get_logger("bootstrap")


async def bootstrap(
    service: AuthorizationService,
    admin_name: str,
    admin_email: str,
    admin_password: str,
) -> UserView:
    """Seed the RBAC catalogue and an admin account in a single transaction."""
    async with service.transaction():
        seeded_roles = list(DEFAULT_ROLES)
        for role_name, role_def in DEFAULT_ROLES.items():
            await service.create_role(role_name, role_def["description"])
        # A configured default role outside the baseline starts with no permissions
        if service.default_role not in DEFAULT_ROLES:
            await service.create_role(service.default_role, "Default role for every new account")
            seeded_roles.append(service.default_role)

        seeded_permissions = []
        for role_def in DEFAULT_ROLES.values():
            for permission_name in role_def["permissions"]:
                if permission_name not in seeded_permissions:
                    await service.create_permission(permission_name)
                    seeded_permissions.append(permission_name)

        for role_name, role_def in DEFAULT_ROLES.items():
            for permission_name in role_def["permissions"]:
                await service.grant_permission_to_role(role_name, permission_name)

        admin = await service.create_user(admin_name, admin_email, admin_password)
        await service.assign_role(admin.id, ROLE_ADMIN)
        admin = await service.get_user(admin.id)

    logger.info(
        "bootstrap_complete",
        roles=seeded_roles,
        permissions=seeded_permissions,
        admin_id=admin.id,
    )
    return admin


async def run_seed(
    config,
    admin_name: str | None = None,
    admin_email: str | None = None,
    admin_password: str | None = None,
) -> UserView:
    """Ensure the schema exists, then bootstrap through a fresh session."""
    from .database import create_tables, get_session_factory
    from .store import EntityStore

    await create_tables(config)
    factory = get_session_factory(config)
    async with factory() as session:
        service = AuthorizationService(
            EntityStore(session),
            min_password_length=config.min_password_length,
            default_role=config.default_role,
        )
        return await bootstrap(
            service,
            admin_name or config.seed_admin_name,
            admin_email or config.seed_admin_email,
            admin_password or config.seed_admin_password,
        )
