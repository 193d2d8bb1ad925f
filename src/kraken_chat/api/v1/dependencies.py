"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from kraken_chat.core.identity import Identity, Principal, credential_from_principal, resolve
from kraken_chat.core.security import decode_access_token
from kraken_chat.db.session import get_db

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> Principal:
    """Decode the bearer token into the authenticated principal.

    Raises:
        HTTPException: If the token is invalid.
    """
    try:
        return decode_access_token(credentials.credentials)
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err


def get_current_identity(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Identity:
    """Resolve the request's identity once; endpoints only see the result.

    Raises:
        IdentityResolutionAmbiguous: If the principal matches neither credential shape.
    """
    return resolve(credential_from_principal(principal))


# Type aliases for the authenticated caller
IdentityDep = Annotated[Identity, Depends(get_current_identity)]
