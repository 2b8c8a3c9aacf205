"""JWT handling for identities asserted by the identity provider.

LearnHub does not own credentials. It validates the signature, expiry and
token type of bearer tokens minted by the identity provider and trusts
their claims (``sub``, ``email``, ``role``).
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from src.config.settings import get_settings


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token.

    Used by tooling and tests to mint tokens compatible with the identity
    provider's.

    Args:
        data: Payload data (typically {"sub": user_id, "email": email, "role": role})
        expires_delta: Token lifetime (default from settings)

    Returns:
        Encoded JWT string
    """
    settings = get_settings()

    now = datetime.now(UTC)
    to_encode = data.copy()
    to_encode.update(
        {
            "exp": now
            + (
                expires_delta
                or timedelta(minutes=settings.auth_access_token_expire_minutes)
            ),
            "iat": now,
            "type": "access",
        }
    )

    return jwt.encode(
        to_encode,
        settings.auth_secret_key,
        algorithm=settings.auth_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Validates signature, expiration, token type and required claims.

    Raises:
        JWTError: If token is invalid, expired, of the wrong type or
            missing claims
    """
    settings = get_settings()

    payload = jwt.decode(
        token,
        settings.auth_secret_key,
        algorithms=[settings.auth_algorithm],
    )

    if payload.get("type") != "access":
        msg = "Invalid token type: expected 'access'"
        raise JWTError(msg)

    missing = [claim for claim in ("sub", "role") if claim not in payload]
    if missing:
        msg = f"Token missing claims: {', '.join(missing)}"
        raise JWTError(msg)

    return payload
