"""Password hashing and token helpers."""

import secrets
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from taskboard.config import get_settings
from taskboard.exceptions import AuthenticationError, InvalidArgumentError

ACCESS_TOKEN_TYPE = "access"
PASSWORD_RESET_TOKEN_TYPE = "password_reset"


@lru_cache
def _pwd_context() -> CryptContext:
    settings = get_settings()
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__rounds=settings.password_hash_rounds,
    )


def hash_password(password: str) -> str:
    return _pwd_context().hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return _pwd_context().verify(plain, hashed)
    except ValueError:
        # Malformed stored hash
        return False


def _encode(claims: dict[str, Any]) -> str:
    settings = get_settings()
    return jwt.encode(
        claims,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def _decode(token: str, verify_exp: bool = True) -> dict[str, Any]:
    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret_key.get_secret_value(),
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
        options={"verify_exp": verify_exp},
    )


def create_access_token(
    user_id: UUID,
    role: str,
    email: str,
    expires_delta: timedelta | None = None,
) -> tuple[str, datetime]:
    """Create a signed access token carrying user id and role.

    Returns the token together with its expiry instant.
    """
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )
    token = _encode(
        {
            "sub": str(user_id),
            "role": role,
            "email": email,
            "exp": expire,
            "iss": settings.jwt_issuer,
            "aud": settings.jwt_audience,
            "type": ACCESS_TOKEN_TYPE,
        }
    )
    return token, expire


def create_refresh_token() -> str:
    """Opaque refresh token; never stored or verified beyond presence."""
    return secrets.token_urlsafe(48)


def decode_access_token(token: str, verify_exp: bool = True) -> dict[str, Any]:
    """Decode and validate an access token, raising AuthenticationError on failure."""
    try:
        payload = _decode(token, verify_exp=verify_exp)
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError:
        raise AuthenticationError("Invalid token")

    if payload.get("type") != ACCESS_TOKEN_TYPE or not payload.get("sub"):
        raise AuthenticationError("Invalid token")
    return payload


def user_id_from_payload(payload: dict[str, Any]) -> UUID:
    try:
        return UUID(payload["sub"])
    except (KeyError, ValueError):
        raise AuthenticationError("Invalid token")


def create_password_reset_token(user_id: UUID) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.password_reset_token_expire_minutes
    )
    return _encode(
        {
            "sub": str(user_id),
            "exp": expire,
            "iss": settings.jwt_issuer,
            "aud": settings.jwt_audience,
            "type": PASSWORD_RESET_TOKEN_TYPE,
        }
    )


def decode_password_reset_token(token: str) -> UUID:
    try:
        data = _decode(token)
    except JWTError:
        raise InvalidArgumentError("Invalid or expired reset token")
    if data.get("type") != PASSWORD_RESET_TOKEN_TYPE:
        raise InvalidArgumentError("Invalid reset token")
    try:
        return UUID(data["sub"])
    except (KeyError, ValueError):
        raise InvalidArgumentError("Invalid reset token")
