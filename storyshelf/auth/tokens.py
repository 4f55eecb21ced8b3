"""
Signed session tokens.

Tokens are HS256 JWTs (header.payload.signature) carrying the subject id,
the subject email, the issue time and the expiry. There is no
server-side record of issued tokens: a token is valid exactly when its
signature checks out under the configured secret and its expiry is in
the future. verify() never raises; every failure comes back as None.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from ..utils.exceptions import TokenInvalidError
from ..utils.logger import get_logger
from .models import TokenClaims, now_utc

logger = get_logger(__name__)

ALGORITHM = "HS256"
TOKEN_VALIDITY = timedelta(days=7)


class TokenService:
    """Issues and verifies self-contained session tokens."""

    def __init__(
        self,
        secret: str,
        validity: timedelta = TOKEN_VALIDITY,
        algorithm: str = ALGORITHM,
        clock: Callable[[], datetime] = now_utc,
    ):
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret
        self.validity = validity
        self.algorithm = algorithm
        self._clock = clock

    def issue(self, subject_id: str, subject_email: str) -> str:
        now = self._clock()
        payload = {
            "sub": subject_id,
            "email": subject_email,
            "iat": int(now.timestamp()),
            "exp": int((now + self.validity).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: Optional[str]) -> Optional[TokenClaims]:
        """Return the verified identity, or None for any invalid token."""
        try:
            return self._verify(token)
        except TokenInvalidError as e:
            logger.debug("Session token rejected", reason=str(e))
            return None

    def _verify(self, token: Optional[str]) -> TokenClaims:
        if not isinstance(token, str) or not token:
            raise TokenInvalidError("empty token")

        parts = token.split(".")
        if len(parts) != 3 or not all(parts):
            raise TokenInvalidError("token must have three non-empty segments")

        # base64 decoding ignores stray characters and trailing bits, so an
        # altered signature segment can decode to the original bytes.
        signature = parts[2]
        try:
            canonical = base64url_encode(base64url_decode(signature.encode("ascii")))
        except ValueError:
            raise TokenInvalidError("signature segment is not base64url")
        if canonical.decode("ascii") != signature:
            raise TokenInvalidError("signature segment is not canonical")

        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_aud": False},
            )
        except (JWTError, ValueError, TypeError, KeyError) as e:
            raise TokenInvalidError(str(e) or e.__class__.__name__)

        return self._claims_from_payload(claims)

    def _claims_from_payload(self, claims: Dict[str, Any]) -> TokenClaims:
        subject_id = claims.get("sub")
        subject_email = claims.get("email")
        issued_at = claims.get("iat")
        expires_at = claims.get("exp")

        if not isinstance(subject_id, str) or not subject_id:
            raise TokenInvalidError("missing subject id")
        if not isinstance(subject_email, str) or not subject_email:
            raise TokenInvalidError("missing subject email")
        for value in (issued_at, expires_at):
            if isinstance(value, bool) or not isinstance(value, int):
                raise TokenInvalidError("timestamps must be integers")

        try:
            issued = datetime.fromtimestamp(issued_at, tz=timezone.utc)
            expires = datetime.fromtimestamp(expires_at, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise TokenInvalidError("timestamps out of range")

        if self._clock() >= expires:
            raise TokenInvalidError("token expired")

        return TokenClaims(
            subject_id=subject_id,
            subject_email=subject_email,
            issued_at=issued,
            expires_at=expires,
        )
