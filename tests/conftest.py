"""Shared test fixtures: in-memory database, entity store, and authorization service."""

import os
import tempfile

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Force test config BEFORE any app imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-userhub-tests")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "userhub-test-logs"))

from userhub.auth.service import AuthorizationService
from userhub.database import enable_sqlite_foreign_keys
from userhub.models.base import Base
from userhub.store import EntityStore


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test, shared across connections via StaticPool."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session):
    return EntityStore(session)


@pytest.fixture
def service(store):
    return AuthorizationService(store, min_password_length=6, default_role="user")


@pytest_asyncio.fixture
async def seeded_service(service):
    """Service over a database holding the "admin" and "user" roles and the baseline permissions."""
    await service.create_role("admin", "Full user management access")
    await service.create_role("user", "Default role for every new account")
    for name in ("create user", "edit user", "delete user", "view user"):
        await service.create_permission(name)
        await service.grant_permission_to_role("admin", name)
    return service
