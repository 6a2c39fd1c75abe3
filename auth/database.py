"""Database operations for authentication.

Tables: users, auth_tokens, recovery_codes (see db/schema.sql).
Token and recovery-code values arrive here already hashed; this layer never
sees a raw credential.

Atomicity:
- Consuming a token or recovery code is a single ``DELETE ... RETURNING``, so
  two concurrent attempts with the same value get exactly one row between them.
- Issuing an activation/reset token is a single upsert against the partial
  unique index on (user_id, token_type).
- Replacing a recovery-code batch locks the user row for the transaction.
"""

import functools
import logging
from datetime import datetime
from uuid import UUID

import psycopg2
import psycopg2.errors

from clients.postgres_client import PostgresClient
from auth.exceptions import StoreUnavailableError, UserAlreadyExistsError
from auth.types import Token, TokenType, User
from utils.timezone import to_utc

logger = logging.getLogger(__name__)

_USER_COLUMNS = (
    "id, email, password_hash, email_verified, two_factor_enabled, "
    "two_factor_secret, created_at"
)
_TOKEN_COLUMNS = "id, user_id, token_hash, token_type, issued_at, expires_at"


def _translate_store_errors(method):
    """Re-raise driver failures as StoreUnavailableError."""

    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except psycopg2.Error as e:
            logger.error(f"Auth store failure in {method.__name__}: {e}")
            raise StoreUnavailableError("Authentication store unavailable") from e

    return wrapper


def _as_uuid(value) -> UUID:
    return UUID(value) if isinstance(value, str) else value


def _row_to_user(row: dict) -> User:
    return User(
        id=_as_uuid(row["id"]),
        email=row["email"],
        password_hash=row["password_hash"],
        email_verified=row["email_verified"],
        two_factor_enabled=row["two_factor_enabled"],
        two_factor_secret=row["two_factor_secret"],
        created_at=to_utc(row["created_at"]),
    )


def _row_to_token(row: dict) -> Token:
    return Token(
        id=_as_uuid(row["id"]),
        user_id=_as_uuid(row["user_id"]),
        token_hash=row["token_hash"],
        token_type=TokenType(row["token_type"]),
        issued_at=to_utc(row["issued_at"]),
        expires_at=to_utc(row["expires_at"]),
    )


class AuthDatabase:
    """Database operations for authentication."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    # Users

    @_translate_store_errors
    def get_user_by_email(self, email: str) -> User | None:
        """Find user by email (case-insensitive)."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = lower(%s)",
            (email.strip(),),
        )
        return _row_to_user(row) if row else None

    @_translate_store_errors
    def get_user_by_id(self, user_id: UUID) -> User | None:
        """Find user by ID."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (str(user_id),),
        )
        return _row_to_user(row) if row else None

    def create_user(self, email: str, password_hash: str) -> User:
        """Create an unverified user with email (lowercased).

        Raises:
            UserAlreadyExistsError: If the email is already registered.
        """
        try:
            rows = self._db.execute_returning(
                f"""INSERT INTO users (email, password_hash)
                    VALUES (lower(%s), %s)
                    RETURNING {_USER_COLUMNS}""",
                (email.strip(), password_hash),
            )
        except psycopg2.errors.UniqueViolation as e:
            raise UserAlreadyExistsError("Email is already registered") from e
        except psycopg2.Error as e:
            logger.error(f"Auth store failure in create_user: {e}")
            raise StoreUnavailableError("Authentication store unavailable") from e
        return _row_to_user(rows[0])

    @_translate_store_errors
    def set_email_verified(self, user_id: UUID) -> bool:
        """Mark the user's email as verified. False if user not found."""
        rows = self._db.execute_returning(
            "UPDATE users SET email_verified = true WHERE id = %s RETURNING id",
            (str(user_id),),
        )
        return len(rows) > 0

    @_translate_store_errors
    def update_password_hash(self, user_id: UUID, password_hash: str) -> bool:
        """Replace the stored password hash. False if user not found."""
        rows = self._db.execute_returning(
            "UPDATE users SET password_hash = %s WHERE id = %s RETURNING id",
            (password_hash, str(user_id)),
        )
        return len(rows) > 0

    @_translate_store_errors
    def set_two_factor_secret(self, user_id: UUID, secret: str) -> bool:
        """Store a freshly generated TOTP secret (2FA stays disabled)."""
        rows = self._db.execute_returning(
            """UPDATE users SET two_factor_secret = %s
               WHERE id = %s AND two_factor_enabled = false
               RETURNING id""",
            (secret, str(user_id)),
        )
        return len(rows) > 0

    @_translate_store_errors
    def enable_two_factor(self, user_id: UUID, secret: str) -> bool:
        """Enable 2FA, but only if the stored secret is still the verified one.

        Returns False when the secret was replaced concurrently or 2FA was
        already on.
        """
        rows = self._db.execute_returning(
            """UPDATE users SET two_factor_enabled = true
               WHERE id = %s AND two_factor_secret = %s AND two_factor_enabled = false
               RETURNING id""",
            (str(user_id), secret),
        )
        return len(rows) > 0

    @_translate_store_errors
    def disable_two_factor(self, user_id: UUID) -> bool:
        """Disable 2FA, clear the secret and delete every recovery code."""
        with self._db.transaction() as cur:
            cur.execute(
                """UPDATE users SET two_factor_enabled = false, two_factor_secret = NULL
                   WHERE id = %s
                   RETURNING id""",
                (str(user_id),),
            )
            updated = cur.fetchall()
            cur.execute("DELETE FROM recovery_codes WHERE user_id = %s", (str(user_id),))
        return len(updated) > 0

    # Tokens

    @_translate_store_errors
    def insert_token(self, token: Token) -> None:
        """Store a token that may coexist with others of its type (refresh)."""
        self._db.execute_returning(
            f"""INSERT INTO auth_tokens ({_TOKEN_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING id""",
            (
                str(token.id),
                str(token.user_id),
                token.token_hash,
                token.token_type.value,
                token.issued_at,
                token.expires_at,
            ),
        )

    @_translate_store_errors
    def replace_token(self, token: Token) -> None:
        """Store a single-active token, replacing the user's prior one of that type.

        One statement, so two concurrent issuances leave exactly one live row.
        """
        self._db.execute_returning(
            f"""INSERT INTO auth_tokens ({_TOKEN_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (user_id, token_type) WHERE token_type <> 'REFRESH'
                DO UPDATE SET id = EXCLUDED.id,
                              token_hash = EXCLUDED.token_hash,
                              issued_at = EXCLUDED.issued_at,
                              expires_at = EXCLUDED.expires_at
                RETURNING id""",
            (
                str(token.id),
                str(token.user_id),
                token.token_hash,
                token.token_type.value,
                token.issued_at,
                token.expires_at,
            ),
        )

    @_translate_store_errors
    def take_token(
        self,
        token_hash: str,
        token_type: TokenType,
        user_id: UUID | None = None,
    ) -> Token | None:
        """Atomically delete and return the token with this digest and type.

        With user_id, only a token owned by that user is taken.
        """
        if user_id is None:
            rows = self._db.execute_returning(
                f"""DELETE FROM auth_tokens
                    WHERE token_hash = %s AND token_type = %s
                    RETURNING {_TOKEN_COLUMNS}""",
                (token_hash, token_type.value),
            )
        else:
            rows = self._db.execute_returning(
                f"""DELETE FROM auth_tokens
                    WHERE token_hash = %s AND token_type = %s AND user_id = %s
                    RETURNING {_TOKEN_COLUMNS}""",
                (token_hash, token_type.value, str(user_id)),
            )
        return _row_to_token(rows[0]) if rows else None

    @_translate_store_errors
    def get_token(self, token_hash: str) -> Token | None:
        """Read-only lookup by digest."""
        row = self._db.execute_single(
            f"SELECT {_TOKEN_COLUMNS} FROM auth_tokens WHERE token_hash = %s",
            (token_hash,),
        )
        return _row_to_token(row) if row else None

    @_translate_store_errors
    def delete_user_token(self, token_hash: str, user_id: UUID, token_type: TokenType) -> bool:
        """Delete one token if it belongs to user_id. False otherwise."""
        rows = self._db.execute_returning(
            """DELETE FROM auth_tokens
               WHERE token_hash = %s AND user_id = %s AND token_type = %s
               RETURNING id""",
            (token_hash, str(user_id), token_type.value),
        )
        return len(rows) > 0

    @_translate_store_errors
    def delete_user_tokens(self, user_id: UUID, token_type: TokenType) -> int:
        """Delete all of a user's tokens of one type. Returns count deleted."""
        rows = self._db.execute_returning(
            """DELETE FROM auth_tokens
               WHERE user_id = %s AND token_type = %s
               RETURNING id""",
            (str(user_id), token_type.value),
        )
        return len(rows)

    @_translate_store_errors
    def delete_expired_tokens(self, now: datetime) -> int:
        """Delete tokens past expiry. Returns count deleted."""
        rows = self._db.execute_returning(
            "DELETE FROM auth_tokens WHERE expires_at <= %s RETURNING id",
            (now,),
        )
        return len(rows)

    # Recovery codes

    @_translate_store_errors
    def replace_recovery_codes(self, user_id: UUID, code_hashes: list[str]) -> None:
        """Discard the user's current batch and store a new one, atomically."""
        with self._db.transaction() as cur:
            # Serialise concurrent regenerations for the same user
            cur.execute("SELECT id FROM users WHERE id = %s FOR UPDATE", (str(user_id),))
            cur.execute("DELETE FROM recovery_codes WHERE user_id = %s", (str(user_id),))
            for code_hash in code_hashes:
                cur.execute(
                    "INSERT INTO recovery_codes (user_id, code_hash) VALUES (%s, %s)",
                    (str(user_id), code_hash),
                )

    @_translate_store_errors
    def take_recovery_code(self, user_id: UUID, code_hash: str) -> bool:
        """Atomically delete a matching recovery code. True if one was deleted."""
        rows = self._db.execute_returning(
            """DELETE FROM recovery_codes
               WHERE user_id = %s AND code_hash = %s
               RETURNING id""",
            (str(user_id), code_hash),
        )
        return len(rows) > 0
