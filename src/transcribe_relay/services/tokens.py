"""Session token issuance and verification.

Session tokens are stateless HS256 JWTs carrying only ``iat`` and ``exp``.
Expiry is the only way a token stops being valid.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL_SECONDS = 3600


class SessionTokenService:
    """Signs and verifies session tokens with the process-wide secret."""

    def __init__(
        self,
        secret: str,
        *,
        nonce_required: bool,
        ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
        algorithm: str = "HS256",
    ) -> None:
        if not secret:
            raise ValueError("A non-empty signing secret is required")
        self._secret = secret
        self.nonce_required = nonce_required
        self.ttl_seconds = ttl_seconds
        self.algorithm = algorithm

    def issue(self, *, now: datetime | None = None) -> str:
        """Create a signed session token valid for ``ttl_seconds``."""
        issued_at = now or datetime.now(UTC)
        claims = {
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + timedelta(seconds=self.ttl_seconds)).timestamp()),
        }
        token: str = jwt.encode(claims, self._secret, algorithm=self.algorithm)
        return token

    def verify(self, token: str | None) -> bool:
        """Return True if ``token`` has a valid signature and has not expired.

        Malformed, unsigned, tampered and expired tokens all return False.
        """
        if not token or not isinstance(token, str):
            return False
        try:
            jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require_exp": True, "require_iat": True},
            )
        except JWTError as exc:
            logger.debug("Session token rejected: %s", exc)
            return False
        return True
