"""FastAPI dependency injection providers."""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .auth.service import AuthorizationService
from .auth.tokens import JWTTokenVerifier, Principal, TokenVerifier
from .config import UserhubConfig, get_config
from .database import get_session
from .errors import AuthError
from .store import EntityStore

security_scheme = HTTPBearer(auto_error=False)

_config_instance: UserhubConfig | None = None
_token_verifier: TokenVerifier | None = None


def get_app_config() -> UserhubConfig:
    """Get the application config singleton."""
    global _config_instance
    if _config_instance is None:
        _config_instance = get_config()
    return _config_instance


async def get_db(config: UserhubConfig = Depends(get_app_config)):
    """Get an async database session."""
    async for session in get_session(config):
        yield session


def get_token_verifier(config: UserhubConfig = Depends(get_app_config)) -> TokenVerifier:
    """Get the token verifier singleton. Override this dependency to plug in another identity provider."""
    global _token_verifier
    if _token_verifier is None:
        _token_verifier = JWTTokenVerifier(config.secret_key, config.jwt_algorithm)
    return _token_verifier


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> Principal:
    """Resolve the bearer token into the calling principal."""
    if credentials is None or not credentials.credentials:
        raise AuthError("Not authenticated")
    return verifier.verify_token(credentials.credentials)


def get_store(db: AsyncSession = Depends(get_db)) -> EntityStore:
    return EntityStore(db)


def get_authorization_service(
    store: EntityStore = Depends(get_store),
    config: UserhubConfig = Depends(get_app_config),
) -> AuthorizationService:
    return AuthorizationService(
        store,
        min_password_length=config.min_password_length,
        default_role=config.default_role,
    )
