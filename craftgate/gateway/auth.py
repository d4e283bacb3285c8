"""Admission checks for incoming upstream connections"""

import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from craftgate.errors import AuthError, OriginError
from craftgate.security import SERVICE_AUDIENCE, verify_jwt_token

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "

# verify(token, key, audience) -> claims or None
TokenVerifier = Callable[[str, str, str], Optional[Dict[str, Any]]]


class AuthGate:
    """Validates the bearer token and Origin header of an upgrade request

    Both checks must pass before a connection is registered. The credential
    is checked first; the first failure is the one reported.
    """

    def __init__(
        self,
        secret_key: str,
        allowed_origins: Iterable[str],
        audience: str = SERVICE_AUDIENCE,
        verifier: TokenVerifier = verify_jwt_token,
    ):
        self._secret_key = secret_key
        self._allowed_origins = frozenset(allowed_origins)
        self._audience = audience
        self._verify = verifier

    @property
    def allowed_origins(self) -> frozenset:
        return self._allowed_origins

    def admit(self, headers: Mapping[str, str]) -> Dict[str, Any]:
        """Run every admission check against request headers

        Returns:
            The verified token claims

        Raises:
            AuthError: Credential absent, malformed or invalid
            OriginError: Origin absent or not allowed
        """
        claims = self.check_credential(headers)
        self.check_origin(headers)
        return claims

    def check_credential(self, headers: Mapping[str, str]) -> Dict[str, Any]:
        auth = _header(headers, "Authorization")
        if not auth or not auth.startswith(BEARER_PREFIX):
            logger.warning("Rejected connection: missing bearer token")
            raise AuthError("Missing bearer token")

        token = auth[len(BEARER_PREFIX):].strip()
        if not token:
            logger.warning("Rejected connection: empty bearer token")
            raise AuthError("Malformed bearer token")

        claims = self._verify(token, self._secret_key, self._audience)
        if claims is None:
            logger.warning("Rejected connection: JWT validation failed")
            raise AuthError("Invalid token")
        return claims

    def check_origin(self, headers: Mapping[str, str]):
        origin = _header(headers, "Origin")
        if not origin:
            logger.warning("Rejected connection: missing Origin header")
            raise OriginError("Missing origin")
        if origin not in self._allowed_origins:
            logger.warning(f"Rejected connection: origin {origin!r} not allowed")
            raise OriginError(f"Origin not allowed: {origin}", details={"origin": origin})


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # duplicated headers are treated as absent
    try:
        return headers.get(name)
    except LookupError:
        return None
