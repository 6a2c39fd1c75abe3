"""Opaque, revocable tokens: refresh, account activation, password reset.

Token format is cryptographically random (secrets.token_urlsafe, 256 bits).
Only the SHA-256 digest is persisted, so a leaked table cannot be replayed.
Expiry is checked lazily at consumption time; ``purge_expired`` exists for
an optional reaper but correctness never depends on it.
"""

import hashlib
import secrets
from datetime import timedelta
from uuid import UUID, uuid4

from auth.database import AuthDatabase
from auth.exceptions import TokenExpiredError, TokenNotFoundError, TokenWrongTypeError
from auth.types import IssuedToken, Token, TokenType
from utils.timezone import Clock, now_utc

TOKEN_BYTES = 32


def hash_token(value: str) -> str:
    """Digest under which a raw token value is stored and looked up."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


class TokenStore:
    """Issue, consume and revoke stored tokens."""

    def __init__(self, auth_db: AuthDatabase, clock: Clock = now_utc):
        self._auth_db = auth_db
        self._clock = clock

    def issue(self, user_id: UUID, token_type: TokenType, ttl: timedelta) -> IssuedToken:
        """Generate and persist a new token.

        Activation and reset tokens replace any live token of the same type
        for the user; refresh tokens accumulate (one per device).
        """
        value = secrets.token_urlsafe(TOKEN_BYTES)
        now = self._clock()
        token = Token(
            id=uuid4(),
            user_id=user_id,
            token_hash=hash_token(value),
            token_type=token_type,
            issued_at=now,
            expires_at=now + ttl,
        )

        if token_type.single_active:
            self._auth_db.replace_token(token)
        else:
            self._auth_db.insert_token(token)

        return IssuedToken(value=value, token=token)

    def consume(
        self,
        value: str,
        expected_type: TokenType,
        user_id: UUID | None = None,
    ) -> Token:
        """Use a token exactly once.

        The delete is the lookup, so a value can succeed at most once even
        under concurrent attempts. A token of another type, or belonging to
        someone other than user_id when given, is left in place.

        Raises:
            TokenNotFoundError: No token with this value (or already consumed).
            TokenWrongTypeError: Token exists but was issued for another purpose.
            TokenExpiredError: Token was found but had expired; it is deleted.
        """
        token_hash = hash_token(value)
        token = self._auth_db.take_token(token_hash, expected_type, user_id)

        if token is None:
            other = self._auth_db.get_token(token_hash)
            if other is not None and (user_id is None or other.user_id == user_id):
                raise TokenWrongTypeError(
                    f"Token is not a {expected_type.value} token"
                )
            raise TokenNotFoundError("Token not found")

        if token.is_expired(self._clock()):
            raise TokenExpiredError("Token has expired")

        return token

    def find_refresh(self, value: str) -> Token | None:
        """Look up a refresh token without consuming it."""
        token = self._auth_db.get_token(hash_token(value))
        if token is None or token.token_type is not TokenType.REFRESH:
            return None
        return token

    def revoke_refresh(self, value: str, user_id: UUID) -> None:
        """Delete a refresh token if it belongs to user_id.

        Someone else's token, or an unknown value, is silently ignored.
        """
        self._auth_db.delete_user_token(hash_token(value), user_id, TokenType.REFRESH)

    def rotate_refresh(
        self,
        value: str,
        ttl: timedelta | None = None,
    ) -> tuple[Token, IssuedToken]:
        """Consume a refresh token and issue its replacement for the same user.

        Without ttl the replacement gets the same lifetime as the original,
        so a "remember me" session stays long-lived across rotations.

        Returns:
            Tuple of (consumed token, replacement)
        """
        old = self.consume(value, TokenType.REFRESH)
        lifetime = ttl if ttl is not None else old.expires_at - old.issued_at
        return old, self.issue(old.user_id, TokenType.REFRESH, lifetime)

    def revoke_all(self, user_id: UUID, token_type: TokenType) -> int:
        """Delete every token of one type for a user. Returns count deleted."""
        return self._auth_db.delete_user_tokens(user_id, token_type)

    def purge_expired(self) -> int:
        """Delete expired tokens. Returns count deleted."""
        return self._auth_db.delete_expired_tokens(self._clock())
