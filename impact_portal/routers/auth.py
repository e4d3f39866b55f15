"""Authentication API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from impact_portal.deps import get_auth_service, get_bearer_token, get_current_identity
from impact_portal.errors import AuthError
from impact_portal.schemas.auth import (
    Credentials,
    Identity,
    SessionResponse,
    SignOutResponse,
    SignUpResponse,
)
from impact_portal.services.auth import AuthService

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/signup", response_model=SignUpResponse, status_code=status.HTTP_201_CREATED)
async def sign_up(
    credentials: Credentials,
    auth: AuthService = Depends(get_auth_service),
) -> SignUpResponse:
    """Create an account. The user signs in separately afterwards."""
    try:
        identity = auth.sign_up(credentials.email, credentials.password)
    except AuthError as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    return SignUpResponse(user=identity, message="Account created! You can now log in.")


@router.post("/signin", response_model=SessionResponse)
async def sign_in(
    credentials: Credentials,
    auth: AuthService = Depends(get_auth_service),
) -> SessionResponse:
    """Exchange email and password for an access token."""
    try:
        identity, token = auth.sign_in(credentials.email, credentials.password)
    except AuthError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return SessionResponse(access_token=token, user=identity)


@router.post("/signout", response_model=SignOutResponse)
async def sign_out(
    token: str | None = Depends(get_bearer_token),
    auth: AuthService = Depends(get_auth_service),
) -> SignOutResponse:
    """Revoke the caller's token. Always succeeds."""
    auth.sign_out(token)
    return SignOutResponse(message="Signed out")


@router.get("/me", response_model=Identity)
async def current_user(identity: Identity = Depends(get_current_identity)) -> Identity:
    """The identity behind the bearer token."""
    return identity
