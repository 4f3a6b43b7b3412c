"""Stateless session tokens (HS256 JWT)."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import jwt as pyjwt

from dancing_pony.errors import (
    ExpiredTokenError,
    InvalidSignatureError,
    MalformedTokenError,
    MissingSigningKeyError,
)

ALGORITHM = "HS256"
DEFAULT_TTL = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenService:
    """Issue and verify signed session tokens.

    The token carries the subject (user id) and an absolute expiry.
    There is no server-side revocation: a token is valid iff its
    signature verifies and the current time is before ``exp``.

    The clock is injectable so expiry can be tested without sleeping.
    """

    def __init__(
        self,
        secret: str,
        *,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            msg = "JWT signing key is not configured"
            raise MissingSigningKeyError(msg)
        self._secret = secret
        self._ttl = ttl
        self._clock = clock

    def issue(self, subject_id: uuid.UUID) -> str:
        """Create a token for ``subject_id`` expiring ``ttl`` from now."""
        now = self._clock()
        claims = {
            "sub": str(subject_id),
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl).timestamp()),
        }
        return pyjwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> uuid.UUID:
        """Verify ``token`` and return its subject id.

        Raises:
            InvalidSignatureError: signature does not match the key.
            MalformedTokenError: token or its claims cannot be decoded.
            ExpiredTokenError: current time is at or past ``exp``.
        """
        try:
            claims = pyjwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                # Expiry is checked below against the injected clock.
                options={
                    "require": ["exp", "sub"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except pyjwt.InvalidSignatureError as e:
            raise InvalidSignatureError(str(e)) from e
        except pyjwt.InvalidTokenError as e:
            raise MalformedTokenError(str(e)) from e

        exp = claims["exp"]
        if not isinstance(exp, int | float):
            msg = "exp claim is not a timestamp"
            raise MalformedTokenError(msg)
        if self._clock().timestamp() >= exp:
            msg = "Token has expired"
            raise ExpiredTokenError(msg)

        try:
            return uuid.UUID(str(claims["sub"]))
        except ValueError as e:
            msg = "sub claim is not a UUID"
            raise MalformedTokenError(msg) from e
