"""Signed, self-contained tokens.

Access tokens are JWTs carrying the user id (``sub``) and absolute expiry
(``exp``). Verification needs only the signing key, so protected requests
never touch the store. The flip side: an access token cannot be revoked
before it expires, which is why its lifetime is minutes.

Pending tokens use the same format with a different ``typ``. Login hands one
out after the password check passes on a 2FA account; it proves that step
happened and is only accepted by the second-factor step.
"""

from datetime import timedelta
from uuid import UUID

from jose import jwt, JWTError

from auth.exceptions import InvalidSignatureError, TokenExpiredError
from utils.timezone import Clock, now_utc

ACCESS_TOKEN_TYPE = "access"
PENDING_TOKEN_TYPE = "2fa_pending"


class TokenSigner:
    """Issues and verifies HMAC-signed tokens. Stateless."""

    def __init__(self, secret_key: str, algorithm: str = "HS512", clock: Clock = now_utc):
        if not secret_key:
            raise ValueError("secret_key is required")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._clock = clock

    def _issue(self, user_id: UUID, ttl: timedelta, token_type: str) -> str:
        now = self._clock()
        claims = {
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
            "typ": token_type,
        }
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def _verify(self, value: str, token_type: str, label: str) -> UUID:
        """Check signature, typ and expiry; return the ``sub`` user id.

        Expiry is compared against the injected clock rather than jose's
        wall-clock check, so ``now >= exp`` is expired.
        """
        try:
            claims = jwt.decode(
                value,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as e:
            raise InvalidSignatureError(f"Invalid {label}") from e

        if claims.get("typ") != token_type:
            raise InvalidSignatureError(f"Invalid {label}")

        exp = claims.get("exp")
        if not isinstance(exp, int):
            raise InvalidSignatureError(f"Invalid {label}")
        if self._clock().timestamp() >= exp:
            raise TokenExpiredError(f"{label.capitalize()} has expired")

        try:
            return UUID(claims["sub"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidSignatureError(f"Invalid {label}") from e

    def issue_access(self, user_id: UUID, ttl: timedelta) -> str:
        """Sign an access token for user_id that expires ttl from now."""
        return self._issue(user_id, ttl, ACCESS_TOKEN_TYPE)

    def verify_access(self, value: str) -> UUID:
        """Return the user id embedded in a valid access token.

        Raises:
            InvalidSignatureError: Malformed, tampered, wrong key or wrong type.
            TokenExpiredError: Signature valid but the token has expired.
        """
        return self._verify(value, ACCESS_TOKEN_TYPE, "access token")

    def issue_pending(self, user_id: UUID, ttl: timedelta) -> str:
        """Sign a pending-login token for a user whose password just checked out."""
        return self._issue(user_id, ttl, PENDING_TOKEN_TYPE)

    def verify_pending(self, value: str) -> UUID:
        """Return the user id of a valid pending-login token.

        Raises:
            InvalidSignatureError: Malformed, tampered, wrong key or not a pending token.
            TokenExpiredError: The password step was too long ago.
        """
        return self._verify(value, PENDING_TOKEN_TYPE, "pending token")
