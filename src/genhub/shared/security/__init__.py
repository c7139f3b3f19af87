"""Shared-secret checks for machine-to-machine triggers."""

from __future__ import annotations

import hmac

from genhub.domain.exceptions import AuthenticationError


def validate_api_key(provided: str, expected: str) -> bool:
    """Constant-time comparison for API keys."""
    return hmac.compare_digest(provided.encode(), expected.encode())


def require_bearer_secret(authorization: str | None, expected: str) -> None:
    """Accept only ``Authorization: Bearer <expected>``.

    An empty ``expected`` secret never authenticates anything.
    """
    if not expected:
        raise AuthenticationError("Trigger secret is not configured")
    if not authorization:
        raise AuthenticationError("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not validate_api_key(token.strip(), expected):
        raise AuthenticationError("Invalid trigger credentials")
