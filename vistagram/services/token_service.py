"""
Vistagram Backend — Token Issuer/Verifier
===========================================

What:  Issues and verifies the two bearer token classes:
       - access tokens: short-lived, sent as `Authorization: Bearer <token>`
       - refresh tokens: long-lived, sent only in the HttpOnly cookie
How:   PyJWT, HS256, one signing key per token class.
Who:   AuthService (login/refresh), auth dependencies (every guarded request).

Claims:
    sub   user id (string UUID)
    iat   issued-at (seconds)
    exp   expiry (seconds)
    type  "access" | "refresh"
    jti   random id; two tokens minted in the same second for the same user
          still differ, so a later login always supersedes an earlier one

Failure contract:
    verify() raises InvalidTokenError for every failure mode (bad signature,
    malformed token, missing claims, wrong type, expired). Callers cannot
    tell them apart, and neither can clients.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from vistagram.config import Settings, settings as default_settings
from vistagram.exceptions import InvalidTokenError

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


class TokenService:
    """Stateless signer/verifier. Validity = signature + expiry (+ type)."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    # ── Issuing ───────────────────────────────────────────────────────────

    def _encode(self, subject_id: Any, token_type: str, secret: str, lifetime: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "sub": str(subject_id),
            "iat": int(now.timestamp()),
            "exp": int((now + lifetime).timestamp()),
            "type": token_type,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, secret, algorithm=self.config.jwt_algorithm)

    def issue_access_token(self, subject_id: Any) -> str:
        return self._encode(
            subject_id,
            ACCESS,
            self.config.jwt_access_secret,
            self.config.access_token_lifetime,
        )

    def issue_refresh_token(self, subject_id: Any) -> str:
        return self._encode(
            subject_id,
            REFRESH,
            self.config.jwt_refresh_secret,
            self.config.refresh_token_lifetime,
        )

    # ── Verifying ─────────────────────────────────────────────────────────

    def verify(self, token: str, secret: str, expected_type: str) -> str:
        """
        Verify a token against `secret` and return its subject id.

        Raises:
            InvalidTokenError: for any failure; the underlying reason is only
            logged at DEBUG level.
        """
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[self.config.jwt_algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.PyJWTError as e:
            logger.debug("Token rejected (%s): %s", expected_type, type(e).__name__)
            raise InvalidTokenError()

        if claims.get("type") != expected_type:
            logger.debug("Token rejected: type %r, expected %r", claims.get("type"), expected_type)
            raise InvalidTokenError()

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidTokenError()
        return subject

    def verify_access_token(self, token: str) -> str:
        return self.verify(token, self.config.jwt_access_secret, ACCESS)

    def verify_refresh_token(self, token: str) -> str:
        return self.verify(token, self.config.jwt_refresh_secret, REFRESH)


# Stateless: one shared instance bound to the process settings
token_service = TokenService()
