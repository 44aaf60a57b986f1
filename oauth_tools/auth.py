"""
Host authentication: who is the caller of a tool?

The orchestrating host sends a Bearer JWT with every MCP request. Its "sub"
claim is the caller identity, the key under which provider credentials are
stored in the Token Store. This module validates that token:

- Extracts the Bearer token from the HTTP Authorization header
- Validates the JWT signature and expiration
- Extracts the caller identity from the "sub" claim

Token structure (JWT payload):
    {
        "sub": "agent-1234",           # Caller identity
        "exp": 1738800000              # When this token expires (Unix timestamp)
    }
"""

from dataclasses import dataclass

import jwt

from oauth_tools.config import settings


class AuthError(Exception):
    """
    Raised when host token validation fails for any reason.

    A single exception type covers all failures (missing token, invalid
    signature, expired, malformed claims).

    Attributes:
        message: Human-readable error description (logged server-side)
        status_code: HTTP status code to return (401 for auth failures)
    """

    def __init__(self, message: str, status_code: int = 401):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class CallerInfo:
    """
    Validated caller information extracted from the host JWT.

    Attributes:
        caller_id: The "sub" claim, e.g. "agent-1234"
    """

    caller_id: str


def validate_token(
    authorization_header: str | None,
    secret: str | None = None,
    algorithm: str | None = None,
) -> CallerInfo:
    """
    Validate a Bearer token from the Authorization header.

    Args:
        authorization_header: The raw Authorization header value,
                              expected format: "Bearer <jwt-token>"
        secret: Verification key (defaults to settings.jwt_secret_key)
        algorithm: JWT algorithm (defaults to settings.jwt_algorithm)

    Returns:
        CallerInfo with the validated caller identity

    Raises:
        AuthError: If any validation step fails
    """
    if not authorization_header:
        raise AuthError("Missing Authorization header")

    # RFC 6750: the scheme is matched case-insensitively.
    parts = authorization_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthError("Invalid Authorization header format, expected 'Bearer <token>'")

    token = parts[1]

    try:
        payload = jwt.decode(
            token,
            secret or settings.jwt_secret_key,
            algorithms=[algorithm or settings.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise AuthError(f"Invalid token: {e}")

    # OAuth2 `state` values are signed with the same key; they carry an
    # audience and a provider, host tokens carry neither.
    if "aud" in payload or "provider" in payload:
        raise AuthError("Invalid token: not a host token")

    caller_id = payload["sub"]
    if not isinstance(caller_id, str) or not caller_id.strip():
        raise AuthError("Invalid sub claim: must be a non-empty string")

    return CallerInfo(caller_id=caller_id)
