"""Session holder — the current identity and its change notifications.

One ``SessionContext`` is created per client and passed by reference to
every view that needs the caller's identity. Views subscribe to it and
react when the user signs in or out.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog

from impact_portal.errors import AuthError
from impact_portal.schemas.auth import Identity
from impact_portal.services.auth import AuthService

logger = structlog.get_logger()

INITIAL_SESSION = "INITIAL_SESSION"
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

SessionListener = Callable[[str, Identity | None], None]


class SessionContext:
    """Holds the authenticated identity for one client."""

    def __init__(self, auth: AuthService) -> None:
        self.auth = auth
        self.identity: Identity | None = None
        self.token: str | None = None
        self.loaded = False
        self._listeners: list[SessionListener] = []

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            listener(event, self.identity)

    def load(self, token: str | None) -> Identity | None:
        """Restore a session from a stored token (initial page load)."""
        self.identity = self.auth.resolve(token)
        self.token = token if self.identity else None
        self.loaded = True
        self._notify(INITIAL_SESSION)
        return self.identity

    def sign_up(self, email: str, password: str) -> Identity:
        """Create an account. The new user still has to sign in."""
        return self.auth.sign_up(email, password)

    def sign_in(self, email: str, password: str) -> Identity:
        identity, token = self.auth.sign_in(email, password)
        self.identity = identity
        self.token = token
        self.loaded = True
        self._notify(SIGNED_IN)
        return identity

    def sign_out(self) -> None:
        """Clear the session. The local state is dropped even if revocation fails."""
        token = self.token
        self.identity = None
        self.token = None
        try:
            self.auth.sign_out(token)
        finally:
            self._notify(SIGNED_OUT)

    def require_identity(self) -> Identity:
        """Return the identity or raise AuthError so the caller redirects to login."""
        if self.identity is None:
            raise AuthError("Not authenticated")
        return self.identity
