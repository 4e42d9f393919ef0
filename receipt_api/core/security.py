
from datetime import datetime, timedelta, timezone

import jwt

from .config import settings
from .errors import AuthError

# Tokens are issued by the auth service; create_access_token exists for
# local development and tests.


def create_access_token(owner_id: str, expires_delta: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": owner_id,
        "type": "access",
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=settings.access_token_ttl_minutes)),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def resolve_owner_id(authorization: str | None) -> str:
    """Resolve an Authorization header to exactly one owner id or raise AuthError"""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthError("Missing bearer token", public_message="Access token required")

    token = authorization.split(" ", 1)[1].strip()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        raise AuthError(f"Token rejected: {e}", public_message="Invalid or expired token")

    if payload.get("type", "access") != "access":
        raise AuthError("Wrong token type", public_message="Invalid or expired token")

    owner_id = payload.get("sub")
    if not owner_id or not isinstance(owner_id, str):
        raise AuthError("Token has no subject", public_message="Invalid or expired token")

    return owner_id
