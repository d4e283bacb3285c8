"""Token signing and verification for upstream admission"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt, JWTError

# Service identifier every upstream token must name in its "aud" claim.
SERVICE_AUDIENCE = "denorite"

# The only accepted signing algorithm.
JWT_ALGORITHM = "HS512"


def create_jwt_token(
    secret_key: str,
    data: Optional[Dict[str, Any]] = None,
    expires_delta: Optional[timedelta] = None,
    audience: str = SERVICE_AUDIENCE,
) -> str:
    """Create an HS512 token carrying the service audience

    Args:
        secret_key: Shared signing secret
        data: Extra claims to embed
        expires_delta: Lifetime; omitted means no "exp" claim
        audience: Audience claim, defaults to the service identifier
    """
    to_encode = dict(data or {})
    to_encode["aud"] = audience
    to_encode.setdefault("iat", datetime.now(timezone.utc))

    if expires_delta:
        to_encode["exp"] = datetime.now(timezone.utc) + expires_delta

    return jwt.encode(to_encode, secret_key, algorithm=JWT_ALGORITHM)


def verify_jwt_token(
    token: str,
    secret_key: str,
    audience: str = SERVICE_AUDIENCE,
) -> Optional[Dict[str, Any]]:
    """Verify and decode a token, returning its claims or None

    The algorithm is pinned to HS512 and the audience claim is mandatory.
    """
    try:
        return jwt.decode(
            token,
            secret_key,
            algorithms=[JWT_ALGORITHM],
            audience=audience,
            options={"require_aud": True},
        )
    except JWTError:
        return None


def generate_secret() -> str:
    """Generate a random shared secret suitable for JWT_SECRET"""
    return secrets.token_urlsafe(48)
