"""
Error taxonomy for authentication and authorization.

Token decode failures (``TokenError`` and its subclasses) never leave the
request authenticator; they collapse into a single unauthenticated outcome.
The remaining errors are rendered by the exception handlers in
``api/errors.py``.
"""

from __future__ import annotations

from typing import Optional


class AuthError(Exception):
    """Base class for every auth-layer failure."""

    message = "Authentication failed"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class TokenError(AuthError):
    message = "Invalid token"


class MalformedToken(TokenError):
    message = "Malformed token"


class InvalidSignature(TokenError):
    message = "Invalid signature"


class TokenExpired(TokenError):
    message = "Token expired"


class InvalidCredentials(AuthError):
    """Unknown email, inactive account and wrong password all raise this."""

    message = "Invalid credentials"


class InsufficientPermissions(AuthError):
    message = "Insufficient permissions"

    def __init__(self, role: Optional[str] = None, required: Optional[str] = None) -> None:
        super().__init__()
        self.role = role
        self.required = required


class NotFoundOrForbidden(AuthError):
    """A scoped lookup missed; rendered exactly like a plain not-found."""

    def __init__(self, resource: str = "Resource") -> None:
        super().__init__(f"{resource} not found")
        self.resource = resource
