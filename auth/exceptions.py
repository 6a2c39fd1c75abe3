"""Typed exceptions for auth failures.

Every failure the core can produce is one of these classes. The HTTP layer
maps them to status codes in ``api.errors``; nothing here is swallowed.
"""

GENERIC_CREDENTIALS_MESSAGE = "Bad credentials"
GENERIC_CODE_MESSAGE = "Invalid verification code"


class AuthError(Exception):
    """Base class for authentication/authorization errors."""

    retryable = False


class BadCredentialsError(AuthError):
    """
    Email unknown or password wrong.

    Always carries the same message so callers cannot tell the two apart.
    """

    def __init__(self):
        super().__init__(GENERIC_CREDENTIALS_MESSAGE)


class AccountNotActivatedError(AuthError):
    """Password was correct but the email address has not been verified yet."""


class TokenNotFoundError(AuthError):
    """No stored token matches the submitted value (never issued, or already used)."""


class TokenExpiredError(AuthError):
    """Token reached its expiry instant. Expired tokens are never reusable."""


class TokenWrongTypeError(AuthError):
    """Token exists but was issued for a different purpose."""


class InvalidSignatureError(AuthError):
    """Access token is malformed, tampered with, or signed with another key."""


class InvalidTwoFactorCodeError(AuthError):
    """
    Submitted TOTP or recovery code did not match.

    Same message for "wrong code" and "no recovery codes left".
    """

    def __init__(self):
        super().__init__(GENERIC_CODE_MESSAGE)


class TwoFactorAlreadyEnabledError(AuthError):
    """2FA is already active for this user."""


class TwoFactorNotEnabledError(AuthError):
    """Operation requires 2FA to be active."""


class TwoFactorSetupRequiredError(AuthError):
    """No TOTP secret has been generated yet; setup must run before enabling."""


class InvalidSessionError(AuthError):
    """Refresh token missing, unknown, expired, or owned by someone else."""


class UserAlreadyExistsError(AuthError):
    """Signup with an email that is already registered."""


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")


class StoreUnavailableError(AuthError):
    """
    Underlying persistence (PostgreSQL or Valkey) failed.

    The only auth error a caller may retry; the original driver exception is
    chained as ``__cause__``.
    """

    retryable = True
