"""Domain-specific exceptions for dancing-pony.

Every error that may reach a client carries its HTTP status and a short,
stable message. The API layer renders them as ``{"error": message}``.
"""

from __future__ import annotations


class DancingPonyError(Exception):
    """Base class for errors rendered into the JSON error envelope."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MalformedError(DancingPonyError):
    """Request input has a bad shape or encoding."""

    status_code = 400
    default_message = "Malformed request"


class InvalidTenantError(MalformedError):
    """Restaurant identifier in the path is not a well-formed UUID."""

    default_message = "Invalid restaurant ID"


class UnauthenticatedError(DancingPonyError):
    """Credential missing, invalid, expired, or bound to an unknown user."""

    status_code = 401
    default_message = "Unauthenticated"


class ForbiddenError(DancingPonyError):
    """Valid credential, but insufficient tenant scope or permission."""

    status_code = 403
    default_message = "Forbidden"


class NotFoundError(DancingPonyError):
    status_code = 404
    default_message = "Not found"


class ConflictError(DancingPonyError):
    """Unique field already taken, e.g. registering an existing email."""

    status_code = 409
    default_message = "Conflict"


class TooManyRequestsError(DancingPonyError):
    """Rate limit exceeded for the client key."""

    status_code = 429
    default_message = "Too many requests. Please try again later."

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)


class InternalError(DancingPonyError):
    """Storage, cache, or object-store failure."""


class CacheCorruptedError(InternalError):
    """A cached payload exists but cannot be decoded."""


class MissingSigningKeyError(RuntimeError):
    """JWT signing key is not configured. Fatal at startup."""


# --- Token verification ---


class TokenError(Exception):
    """Base class for session token verification failures."""


class InvalidSignatureError(TokenError):
    """Token signature does not match the signing key."""


class MalformedTokenError(TokenError):
    """Token structure or claims cannot be decoded."""


class ExpiredTokenError(TokenError):
    """Token expiry is in the past."""
