"""Tests for auth security functions."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from jose import JWTError, jwt

from src.auth.permissions import UserRole
from src.auth.security import create_access_token, decode_access_token
from src.config import get_settings


def _encode_raw(payload: dict) -> str:
    settings = get_settings()
    return jwt.encode(payload, settings.auth_secret_key, algorithm=settings.auth_algorithm)


class TestAccessToken:
    """Tests for access token creation and decoding."""

    def test_create_access_token(self) -> None:
        """Should create valid access token."""
        data = {
            "sub": str(uuid4()),
            "email": "test@example.com",
            "role": UserRole.STUDENT.value,
        }
        token = create_access_token(data)
        assert token is not None
        assert len(token) > 0

    def test_decode_access_token(self) -> None:
        """Should decode token and return payload."""
        user_id = uuid4()
        email = "test@example.com"
        role = UserRole.TEACHER

        data = {"sub": str(user_id), "email": email, "role": role.value}
        token = create_access_token(data)
        payload = decode_access_token(token)

        assert payload["sub"] == str(user_id)
        assert payload["email"] == email
        assert payload["role"] == role.value
        assert payload["type"] == "access"
        assert "exp" in payload
        assert "iat" in payload

    def test_decode_access_token_expired(self) -> None:
        """Should raise JWTError for expired token."""
        data = {"sub": str(uuid4()), "role": UserRole.STUDENT.value}
        token = create_access_token(data, expires_delta=timedelta(seconds=-1))

        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_decode_access_token_invalid(self) -> None:
        """Should raise JWTError for invalid token."""
        with pytest.raises(JWTError):
            decode_access_token("invalid.token.here")

    def test_decode_access_token_wrong_type(self) -> None:
        """Should raise JWTError if token type is not 'access'."""
        token = _encode_raw(
            {
                "sub": str(uuid4()),
                "role": UserRole.STUDENT.value,
                "type": "refresh",
                "exp": datetime.now(UTC) + timedelta(minutes=5),
            }
        )

        with pytest.raises(JWTError, match="expected 'access'"):
            decode_access_token(token)

    def test_decode_access_token_missing_role(self) -> None:
        """Tokens without a role claim are rejected."""
        token = create_access_token({"sub": str(uuid4())})

        with pytest.raises(JWTError, match="role"):
            decode_access_token(token)

    def test_decode_access_token_wrong_signature(self) -> None:
        """Tokens signed with another key are rejected."""
        token = jwt.encode(
            {
                "sub": str(uuid4()),
                "role": UserRole.ADMIN.value,
                "type": "access",
                "exp": datetime.now(UTC) + timedelta(minutes=5),
            },
            "not-the-secret",
            algorithm="HS256",
        )

        with pytest.raises(JWTError):
            decode_access_token(token)
