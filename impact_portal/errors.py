"""Error taxonomy for the impact assessment portal."""

from __future__ import annotations


class PortalError(Exception):
    """Base class for every error the portal surfaces to a user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class FetchError(PortalError):
    """Raised when a backend query or storage call fails."""


class AuthError(PortalError):
    """Raised on bad credentials, duplicate sign-up or a missing session."""


class NotFoundError(PortalError):
    """Raised when a request, attachment or result is absent."""


class ValidationError(PortalError):
    """Raised when form input fails validation.

    Carries a field -> message mapping so the form can show each error
    next to the field that caused it.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = dict(errors)


class InvalidTransitionError(PortalError):
    """Raised when a status change is not an edge of the request lifecycle."""


class SubmissionError(FetchError):
    """Raised when a submission failed part-way and was rolled back."""
