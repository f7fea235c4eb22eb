"""
Bearer tokens identifying trip members.

Members sign in through the identity service, which signs tokens with the
shared ``SECRET_KEY``. The API only reads the member id out of them;
``issue_member_token`` exists for tests and local tooling.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError

from .config import settings

logger = logging.getLogger(__name__)

TOKEN_TYPE = "auth"

# Claims a token must carry before its subject is trusted.
_DECODE_OPTIONS = {
    "require_exp": True,
    "require_sub": True,
    "require_aud": True,
}


def issue_member_token(user_id: str, lifetime: Optional[timedelta] = None) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = lifetime or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": user_id,
        "aud": settings.TOKEN_AUDIENCE,
        "type": TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def member_id_from_token(token: str) -> Optional[str]:
    """Return the member id a token was issued for, or None if it cannot be trusted."""
    try:
        claims = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            audience=settings.TOKEN_AUDIENCE,
            options=_DECODE_OPTIONS,
        )
    except JWTError as exc:
        logger.debug(f"Rejected bearer token: {exc}")
        return None

    if claims.get("type") != TOKEN_TYPE:
        logger.debug(f"Rejected bearer token of type {claims.get('type')!r}")
        return None
    return claims["sub"]
