"""Master API router: includes all sub-routers."""

from fastapi import APIRouter

from .routes.permissions import router as permissions_router
from .routes.roles import router as roles_router
from .routes.users import router as users_router

api_router = APIRouter(prefix="/api")

api_router.include_router(users_router)
api_router.include_router(roles_router)
api_router.include_router(permissions_router)
