"""
Token utilities.

The login handshake itself (password check, LDAP bind, OAuth2 code exchange)
happens in an external authenticator. It hands us a signed *directory
assertion*; we answer with our own access token. Both are HS256 JWTs carrying
``sub`` (username) and ``groups`` (raw group identifiers).
"""
from datetime import datetime, timedelta, timezone
from typing import Iterable

import jwt
from fastapi import HTTPException, status

from rcaccess.core import config
from rcaccess.features.users.schemas import Identity


ACCESS_TOKEN_TYPE = "access"
DIRECTORY_ASSERTION_TYPE = "directory"


def create_token(
    username: str,
    groups: Iterable[str] = (),
    token_type: str = ACCESS_TOKEN_TYPE,
    ttl: timedelta | None = None,
) -> str:
    """Sign a token for ``username`` carrying its group identifiers."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": username,
        "groups": list(groups),
        "typ": token_type,
        "iat": now,
        "exp": now + (ttl or timedelta(minutes=config.ACCESS_TOKEN_TTL_MINUTES)),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def create_access_token(identity: Identity) -> str:
    return create_token(identity.username, identity.group_identifiers)


def verify_jwt_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> Identity:
    """
    Verify a token and return the identity it carries.
    
    Raises:
        HTTPException: 401 if the token is invalid, expired, or of the wrong type
    """
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    username = payload.get("sub")
    groups = payload.get("groups") or []
    if not username or payload.get("typ") != expected_type or not isinstance(groups, list):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    return Identity(username=username, group_identifiers=tuple(str(g) for g in groups))
