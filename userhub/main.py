"""userhub: user management API with role and permission based access control.

FastAPI entry point with lifespan management, middleware, and routing.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from . import __version__
from .api.router import api_router
from .config import get_config
from .database import close_engine, create_tables, get_session_factory
from .middleware.error_handler import register_error_handlers
from .middleware.request_id import RequestIDMiddleware
from .middleware.security_headers import SecurityHeadersMiddleware
from .utils.logging import get_logger, setup_logging

config = get_config()
setup_logging(
    debug=config.debug,
    log_dir=config.log_dir,
    log_max_bytes=config.log_max_bytes,
    log_backup_count=config.log_backup_count,
)
logger = get_logger("userhub.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: ensure the schema on startup, dispose the engine on shutdown.

    Seeding is not done here; operators run scripts/seed.py once per environment.
    """
    await create_tables(config)
    logger.info("userhub_started", version=__version__, enforce_permissions=config.enforce_permissions)
    yield
    await close_engine()
    logger.info("userhub_stopped")


app = FastAPI(
    title=config.app_name,
    description="User management API with role and permission based access control",
    version=__version__,
    lifespan=lifespan,
)

register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)
app.add_middleware(SecurityHeadersMiddleware)
# Added last so it runs first
app.add_middleware(RequestIDMiddleware)

app.include_router(api_router)


@app.get("/")
async def root():
    return {"name": config.app_name, "version": __version__, "status": "operational"}


@app.get("/health")
async def health():
    """Liveness plus a database round-trip."""
    database = "ok"
    try:
        factory = get_session_factory(config)
        async with factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("health_database_failed", error=str(e))
        database = "unavailable"
    return {"status": "healthy" if database == "ok" else "degraded", "database": database}


if __name__ == "__main__":
    uvicorn.run("userhub.main:app", host=config.host, port=config.port, reload=config.debug)
