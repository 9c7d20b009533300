"""Bearer-token authentication gate for generated routes."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional, Sequence

import jwt

from .errors import AuthFailure

logger = logging.getLogger(__name__)

SECRET_ENV = "CODELESS_JWT_SECRET"
DEFAULT_SECRET = "changeme-secret"


class AuthGate:
    """Verify ``Authorization: Bearer <jwt>`` headers with PyJWT.

    Token issuance lives outside codeless; the gate only checks signature
    and expiry and hands the decoded claims to the request context.
    """

    def __init__(self, secret: str, *, algorithms: Sequence[str] = ("HS256",)):
        self.secret = secret
        self.algorithms = list(algorithms)

    @classmethod
    def from_env(cls) -> "AuthGate":
        secret = os.getenv(SECRET_ENV)
        if not secret:
            logger.warning("%s is not set; using the development default secret", SECRET_ENV)
            secret = DEFAULT_SECRET
        return cls(secret)

    def authenticate(self, authorization: Optional[str]) -> Dict[str, Any]:
        """Return the token claims or raise :class:`AuthFailure`."""
        scheme, _, token = (authorization or "").partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthFailure("Missing or invalid Authorization header")
        try:
            return jwt.decode(token.strip(), self.secret, algorithms=self.algorithms)
        except jwt.ExpiredSignatureError:
            raise AuthFailure("Token expired") from None
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected bearer token: %s", exc)
            raise AuthFailure("Invalid token") from None


__all__ = ["AuthGate", "SECRET_ENV", "DEFAULT_SECRET"]
