"""Access token helpers built on python-jose."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from kraken_chat.core.identity import Principal
from kraken_chat.core.settings import settings


def create_access_token(
    subject: str,
    email: str | None = None,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """Create a JWT access token for a principal."""
    to_encode: dict[str, object] = {"sub": subject}
    if email is not None:
        to_encode["email"] = email
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> Principal:
    """Decode a JWT access token into the principal it describes.

    Raises:
        JWTError: If the token is malformed, expired or wrongly signed.
    """
    payload = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.jwt_algorithm],
    )
    subject = payload.get("sub")
    if subject is None:
        raise JWTError("Token has no subject")
    return Principal(subject=str(subject), email=payload.get("email"))
