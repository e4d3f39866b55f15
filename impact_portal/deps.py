"""FastAPI dependencies — settings, data store and the caller's identity."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from impact_portal.config import Settings
from impact_portal.schemas.auth import Identity
from impact_portal.services.auth import AuthService
from impact_portal.store import DataStore

bearer = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> DataStore:
    return request.app.state.store


def get_auth_service(
    store: DataStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> AuthService:
    return AuthService(store, settings)


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
) -> str | None:
    return credentials.credentials if credentials else None


def get_current_identity(
    token: str | None = Depends(get_bearer_token),
    auth: AuthService = Depends(get_auth_service),
) -> Identity:
    """Resolve the bearer token; unauthenticated callers get a 401."""
    identity = auth.resolve(token)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity
