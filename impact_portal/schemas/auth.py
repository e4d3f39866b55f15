"""Schemas for authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class Identity(BaseModel):
    """The authenticated user as the portal sees it."""

    id: str
    email: str
    created_at: datetime


class Credentials(BaseModel):
    """Email and password submitted from the login form."""

    email: str = Field(..., max_length=320)
    password: str


class SignUpResponse(BaseModel):
    user: Identity
    message: str


class SessionResponse(BaseModel):
    """Issued after a successful sign-in."""

    access_token: str
    token_type: str = "bearer"
    user: Identity


class SignOutResponse(BaseModel):
    message: str
