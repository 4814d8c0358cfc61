"""Signed, time-boxed cookie values (HS256 JWT)"""

import logging
from datetime import timedelta

import jwt

from modlink.core.clock import Clock, utcnow

logger = logging.getLogger(__name__)

STATE_COOKIE = "clientState"
ERROR_COOKIE = "ErrorDetail"


class CookieSigner:
    """Sign cookie values so the client can hold them but not forge them.

    The ``purpose`` claim keeps a value signed for one cookie from being
    replayed in another.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", clock: Clock = utcnow):
        if not secret_key:
            raise ValueError("Cookie secret key cannot be empty")

        self.secret_key = secret_key
        self.algorithm = algorithm
        self.clock = clock

    def sign(self, value: str, purpose: str, max_age: int) -> str:
        now = self.clock()
        payload = {
            "val": value,
            "purpose": purpose,
            "iat": now,
            "exp": now + timedelta(seconds=max_age),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def unsign(self, token: str | None, purpose: str) -> str | None:
        """Return the signed value, or None if missing, tampered or expired."""
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid {purpose} cookie: {e}")
            return None

        if payload.get("purpose") != purpose:
            logger.warning(f"Cookie signed for {payload.get('purpose')!r}, expected {purpose!r}")
            return None
        if int(payload.get("exp", 0)) <= int(self.clock().timestamp()):
            logger.warning(f"Expired {purpose} cookie")
            return None
        value = payload.get("val")
        return str(value) if value is not None else None
