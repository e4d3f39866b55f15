"""Authentication — password hashing, access tokens and sign-up/sign-in."""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from jose import JWTError, jwt
from passlib.context import CryptContext

from impact_portal.config import Settings
from impact_portal.errors import AuthError
from impact_portal.schemas.auth import Identity
from impact_portal.store import DataStore

logger = structlog.get_logger()

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user: dict[str, Any], settings: Settings) -> str:
    """Issue a signed access token for ``user``."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": user["id"],
        "email": user["email"],
        "jti": str(uuid.uuid4()),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> dict[str, Any] | None:
    """Return the token claims, or None when the token is invalid or expired."""
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if claims.get("type") != "access":
        return None
    return claims


def to_identity(user: dict[str, Any]) -> Identity:
    return Identity(id=user["id"], email=user["email"], created_at=user["created_at"])


class AuthService:
    """Sign-up, sign-in and sign-out against the backend's user table."""

    def __init__(self, store: DataStore, settings: Settings) -> None:
        self.store = store
        self.settings = settings

    def sign_up(self, email: str, password: str) -> Identity:
        """Register a new account.

        Raises AuthError when the email is malformed or taken, or the
        password is shorter than the configured minimum.
        """
        email = (email or "").strip()
        if not email or not password:
            raise AuthError("Email and password are required")
        if not _EMAIL_RE.match(email):
            raise AuthError("Unable to validate email address: invalid format")
        if len(password) < self.settings.password_min_length:
            raise AuthError(
                f"Password must be at least {self.settings.password_min_length} characters"
            )
        user = self.store.create_user(email, hash_password(password))
        logger.info("user_signed_up", user_id=user["id"])
        return to_identity(user)

    def sign_in(self, email: str, password: str) -> tuple[Identity, str]:
        """Authenticate and return the identity plus a fresh access token."""
        user = self.store.find_user_by_email(email or "")
        if user is None or not verify_password(password or "", user["password_hash"]):
            logger.info("sign_in_rejected")
            raise AuthError("Invalid login credentials")
        token = create_access_token(user, self.settings)
        logger.info("user_signed_in", user_id=user["id"])
        return to_identity(user), token

    def sign_out(self, token: str | None) -> None:
        """Revoke ``token``. Unknown or expired tokens are ignored."""
        if not token:
            return
        claims = decode_access_token(token, self.settings)
        if claims is None:
            return
        self.store.revoke_token(claims["jti"])
        logger.info("user_signed_out", user_id=claims["sub"])

    def resolve(self, token: str | None) -> Identity | None:
        """Map a bearer token onto the identity it was issued for."""
        if not token:
            return None
        claims = decode_access_token(token, self.settings)
        if claims is None or self.store.is_token_revoked(claims.get("jti", "")):
            return None
        user = self.store.get_user(claims.get("sub", ""))
        if user is None:
            return None
        return to_identity(user)
