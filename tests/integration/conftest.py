"""Integration test fixtures: in-memory app, async client, seeded admin auth."""

import os

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Force test config BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-integration-tests"

import userhub.database as db_mod
import userhub.dependencies as dep_mod

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-password"


def _reset_singletons():
    """Reset module-level singletons so each test starts clean."""
    db_mod._engine = None
    db_mod._session_factory = None
    dep_mod._config_instance = None
    dep_mod._token_verifier = None


def _bearer(subject: str, config) -> dict:
    from userhub.utils.security import create_access_token

    token = create_access_token({"sub": subject}, config.secret_key, config.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_app():
    """App wired to a fresh in-memory database seeded with the baseline catalogue and an admin."""
    _reset_singletons()

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    db_mod.enable_sqlite_foreign_keys(engine)

    # Inject into database module BEFORE app import
    db_mod._engine = engine
    factory = async_sessionmaker(engine, expire_on_commit=False)
    db_mod._session_factory = factory

    config = dep_mod.get_app_config()

    from userhub.auth.service import AuthorizationService
    from userhub.bootstrap import bootstrap
    from userhub.main import app
    from userhub.models.base import Base
    from userhub.store import EntityStore

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with factory() as session:
        service = AuthorizationService(
            EntityStore(session),
            min_password_length=config.min_password_length,
            default_role=config.default_role,
        )
        await bootstrap(service, "Admin", ADMIN_EMAIL, ADMIN_PASSWORD)

    yield app

    app.dependency_overrides.clear()
    await engine.dispose()
    _reset_singletons()


@pytest_asyncio.fixture
async def client(test_app):
    """Async HTTP client for testing."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_headers(test_app):
    """Bearer headers for the seeded admin account."""
    return _bearer(ADMIN_EMAIL, dep_mod.get_app_config())


@pytest_asyncio.fixture
async def enforcing(test_app):
    """Turn on per-route permission checks for the duration of a test."""
    config = dep_mod.get_app_config().model_copy(update={"enforce_permissions": True})
    test_app.dependency_overrides[dep_mod.get_app_config] = lambda: config
    yield config
    test_app.dependency_overrides.pop(dep_mod.get_app_config, None)


@pytest_asyncio.fixture
async def bearer_for(test_app):
    """Factory for bearer headers naming an arbitrary subject."""
    config = dep_mod.get_app_config()
    return lambda subject: _bearer(subject, config)
