"""Authentication service - orchestrates password, token and 2FA flows."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable
from uuid import UUID

from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.passwords import PasswordHasher
from auth.rate_limiter import RateLimiter, LOGIN_SCOPE, TWO_FACTOR_SCOPE
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.signer import TokenSigner
from auth.token_store import TokenStore
from auth.two_factor import TwoFactorEngine
from auth.types import TokenType, TotpProvisioning, User
from auth.exceptions import (
    AccountNotActivatedError,
    BadCredentialsError,
    InvalidSessionError,
    InvalidSignatureError,
    InvalidTwoFactorCodeError,
    RateLimitedError,
    TokenExpiredError,
    TokenNotFoundError,
    TokenWrongTypeError,
    TwoFactorAlreadyEnabledError,
    TwoFactorNotEnabledError,
    TwoFactorSetupRequiredError,
)
from clients.email_client import EmailGatewayClient, EmailGatewayError
from clients.qr_renderer import QrRenderer

logger = logging.getLogger(__name__)

_TOKEN_ERRORS = (TokenNotFoundError, TokenExpiredError, TokenWrongTypeError)


class AuthOutcome(Enum):
    """What a successful operation produced."""

    AUTHENTICATED = "authenticated"
    SECOND_FACTOR_REQUIRED = "second_factor_required"
    SIGNED_UP = "signed_up"
    ACTIVATED = "activated"
    PASSWORD_RESET_DONE = "password_reset_done"
    PASSWORD_CHANGED = "password_changed"
    RECOVERY_CODES_ISSUED = "recovery_codes_issued"
    TWO_FACTOR_DISABLED = "two_factor_disabled"
    LOGGED_OUT = "logged_out"


@dataclass
class LoginResult:
    """Result of a login step.

    AUTHENTICATED (and PASSWORD_CHANGED) carry both tokens.
    SECOND_FACTOR_REQUIRED carries only pending_token, a short-lived signed
    proof that the password step passed. It is accepted by nothing except
    complete_two_factor, so no credential is handed out before the second
    factor is checked.
    """

    outcome: AuthOutcome
    user_id: UUID
    access_token: str | None = None
    refresh_token: str | None = None
    refresh_issued_at: datetime | None = None
    refresh_expires_at: datetime | None = None
    pending_token: str | None = None
    recovery_codes: list[str] = field(default_factory=list)

    @property
    def refresh_max_age(self) -> int:
        """Refresh token lifetime in seconds, measured on the clock that issued it."""
        if self.refresh_issued_at is None or self.refresh_expires_at is None:
            return 0
        return max(int((self.refresh_expires_at - self.refresh_issued_at).total_seconds()), 0)


@dataclass
class RecoveryCodesResult:
    """A freshly issued recovery-code batch, shown to the user once."""

    codes: list[str]
    outcome: AuthOutcome = AuthOutcome.RECOVERY_CODES_ISSUED


@dataclass
class TwoFactorSetup:
    """Enrollment data for an authenticator app."""

    provisioning: TotpProvisioning
    image: bytes | None = None
    mime_type: str | None = None


class AuthService:
    """Orchestrates authentication.

    Handles:
    - Signup and account activation
    - Password login with optional TOTP / recovery-code second factor
    - Refresh token rotation and logout
    - Password reset and change
    - 2FA setup, enable, disable and recovery-code regeneration

    Caller identity is always an explicit user_id argument, taken by the HTTP
    layer from a verified access token.
    """

    def __init__(
        self,
        config: AuthConfig,
        auth_db: AuthDatabase,
        signer: TokenSigner,
        token_store: TokenStore,
        two_factor: TwoFactorEngine,
        passwords: PasswordHasher,
        rate_limiter: RateLimiter,
        email_client: EmailGatewayClient,
        security_logger: SecurityLogger,
        qr_renderer: QrRenderer | None = None,
    ):
        self._config = config
        self._auth_db = auth_db
        self._signer = signer
        self._token_store = token_store
        self._two_factor = two_factor
        self._passwords = passwords
        self._rate_limiter = rate_limiter
        self._email_client = email_client
        self._security_logger = security_logger
        self._qr_renderer = qr_renderer

    # Helpers

    @staticmethod
    def _normalize_email(email: str) -> str:
        return email.strip().lower()

    def _require_user(self, user_id: UUID) -> User:
        """Load the user behind an authenticated call.

        A verified access token for a user that no longer exists is a dead
        session, not a "user not found" condition.
        """
        user = self._auth_db.get_user_by_id(user_id)
        if user is None:
            raise InvalidSessionError("Session is no longer valid")
        return user

    def _check_rate_limit(
        self,
        scope: str,
        subject: str,
        email: str | None,
        user_id: UUID | None,
        ip_address: str | None,
    ) -> None:
        try:
            self._rate_limiter.check_rate_limit(scope, subject)
        except RateLimitedError as e:
            self._security_logger.log(
                SecurityEvent.RATE_LIMITED,
                email=email,
                user_id=user_id,
                ip_address=ip_address,
                details={"scope": scope, "retry_after": e.retry_after_seconds},
            )
            raise

    def _send_mail(self, user: User, send: Callable[[], None], purpose: str) -> None:
        """Deliver mail without rolling back whatever token was just issued.

        The token stays valid if delivery fails; the user can ask again.
        """
        try:
            send()
        except EmailGatewayError as e:
            logger.warning(f"{purpose} email to {user.email} failed: {e}")
            self._security_logger.log(
                SecurityEvent.EMAIL_DELIVERY_FAILED,
                email=user.email,
                user_id=user.id,
                details={"purpose": purpose},
            )

    def _issue_session(self, user: User, remember_me: bool) -> LoginResult:
        """Mint an access token plus a stored refresh token."""
        access_token = self._signer.issue_access(user.id, self._config.access_token_ttl)
        refresh = self._token_store.issue(
            user.id,
            TokenType.REFRESH,
            self._config.refresh_token_ttl(remember_me),
        )
        return LoginResult(
            outcome=AuthOutcome.AUTHENTICATED,
            user_id=user.id,
            access_token=access_token,
            refresh_token=refresh.value,
            refresh_issued_at=refresh.token.issued_at,
            refresh_expires_at=refresh.token.expires_at,
        )

    # Signup & activation

    def signup(
        self,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuthOutcome:
        """Register an unverified user and mail the activation link.

        Raises:
            UserAlreadyExistsError: If the email is already registered.
        """
        email = self._normalize_email(email)
        user = self._auth_db.create_user(email, self._passwords.hash(password))

        issued = self._token_store.issue(
            user.id,
            TokenType.ACCOUNT_ACTIVATION,
            self._config.activation_token_ttl,
        )

        self._security_logger.log(
            SecurityEvent.SIGNUP,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        self._send_mail(
            user,
            lambda: self._email_client.send_activation_link(
                email=user.email,
                token=issued.value,
                app_url=self._config.app_base_url,
                app_name=self._config.app_name,
            ),
            purpose="activation",
        )

        return AuthOutcome.SIGNED_UP

    def request_activation(self, email: str, ip_address: str | None = None) -> None:
        """Re-send the activation link.

        Silent for unknown or already verified emails. The new token
        replaces any earlier one.
        """
        user = self._auth_db.get_user_by_email(self._normalize_email(email))
        if user is None or user.email_verified:
            return

        issued = self._token_store.issue(
            user.id,
            TokenType.ACCOUNT_ACTIVATION,
            self._config.activation_token_ttl,
        )
        self._send_mail(
            user,
            lambda: self._email_client.send_activation_link(
                email=user.email,
                token=issued.value,
                app_url=self._config.app_base_url,
                app_name=self._config.app_name,
            ),
            purpose="activation",
        )

    def activate_account(
        self,
        email: str,
        token: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuthOutcome:
        """Consume an activation token and mark the email verified.

        Raises:
            TokenNotFoundError: Unknown token, unknown email, or token issued
                to a different user.
            TokenExpiredError: Token expired (and is now deleted).
            TokenWrongTypeError: Token is not an activation token.
        """
        email = self._normalize_email(email)
        user = self._auth_db.get_user_by_email(email)

        try:
            if user is None:
                raise TokenNotFoundError("Token not found")
            self._token_store.consume(token, TokenType.ACCOUNT_ACTIVATION, user_id=user.id)
        except _TOKEN_ERRORS as e:
            self._security_logger.log(
                SecurityEvent.ACTIVATION_FAILED,
                email=email,
                user_id=user.id if user else None,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": type(e).__name__},
            )
            raise

        self._auth_db.set_email_verified(user.id)

        self._security_logger.log(
            SecurityEvent.ACCOUNT_ACTIVATED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return AuthOutcome.ACTIVATED

    # Login

    def login(
        self,
        email: str,
        password: str,
        remember_me: bool = False,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        """Check email and password.

        Flow:
        1. Per-email rate limit
        2. Look up user, verify password (one generic error for both failures)
        3. Require verified email
        4. 2FA disabled: issue access + refresh tokens
           2FA enabled: report SECOND_FACTOR_REQUIRED with a pending token only

        Raises:
            RateLimitedError: Too many attempts for this email.
            BadCredentialsError: Unknown email or wrong password.
            AccountNotActivatedError: Email not verified yet.
        """
        email = self._normalize_email(email)
        self._check_rate_limit(LOGIN_SCOPE, email, email, None, ip_address)

        user = self._auth_db.get_user_by_email(email)

        if user is None or not self._passwords.matches(password, user.password_hash):
            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                email=email,
                user_id=user.id if user else None,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "user_not_found" if user is None else "wrong_password"},
            )
            raise BadCredentialsError()

        if not user.email_verified:
            self._security_logger.log(
                SecurityEvent.LOGIN_UNVERIFIED,
                email=user.email,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise AccountNotActivatedError("Account has not been activated")

        self._rate_limiter.reset_rate_limit(LOGIN_SCOPE, email)

        if self._passwords.needs_rehash(user.password_hash):
            self._auth_db.update_password_hash(user.id, self._passwords.hash(password))

        if user.two_factor_enabled:
            self._security_logger.log(
                SecurityEvent.SECOND_FACTOR_REQUIRED,
                email=user.email,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return LoginResult(
                outcome=AuthOutcome.SECOND_FACTOR_REQUIRED,
                user_id=user.id,
                pending_token=self._signer.issue_pending(user.id, self._config.two_factor_pending_ttl),
            )

        result = self._issue_session(user, remember_me)

        self._security_logger.log(
            SecurityEvent.LOGIN_SUCCEEDED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"remember_me": remember_me},
        )

        return result

    def complete_two_factor(
        self,
        pending_token: str,
        code: str,
        remember_me: bool = False,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        """Finish a login that stopped at SECOND_FACTOR_REQUIRED.

        pending_token must be the one login returned; a bare user id or any
        other token is refused. Tries the TOTP code first, then falls back to
        spending a recovery code. Success issues tokens and a fresh
        recovery-code batch.

        Raises:
            RateLimitedError: Too many attempts for this user.
            InvalidTwoFactorCodeError: Pending token invalid or expired, or
                neither check passed. The caller may retry while the pending
                token is still valid.
        """
        try:
            pending_user_id = self._signer.verify_pending(pending_token)
        except (InvalidSignatureError, TokenExpiredError) as e:
            self._security_logger.log(
                SecurityEvent.SECOND_FACTOR_FAILED,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "expired_pending" if isinstance(e, TokenExpiredError) else "invalid_pending"},
            )
            raise InvalidTwoFactorCodeError() from e

        self._check_rate_limit(TWO_FACTOR_SCOPE, str(pending_user_id), None, pending_user_id, ip_address)

        user = self._auth_db.get_user_by_id(pending_user_id)

        if (
            user is None
            or not user.email_verified
            or not user.two_factor_enabled
            or not user.two_factor_secret
        ):
            self._security_logger.log(
                SecurityEvent.SECOND_FACTOR_FAILED,
                user_id=pending_user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "not_pending"},
            )
            raise InvalidTwoFactorCodeError()

        if self._two_factor.verify_code(user.two_factor_secret, code):
            method = "totp"
        elif self._two_factor.consume_recovery_code(user.id, code):
            method = "recovery_code"
            self._security_logger.log(
                SecurityEvent.RECOVERY_CODE_USED,
                email=user.email,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        else:
            self._security_logger.log(
                SecurityEvent.SECOND_FACTOR_FAILED,
                email=user.email,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "invalid_code"},
            )
            raise InvalidTwoFactorCodeError()

        self._rate_limiter.reset_rate_limit(TWO_FACTOR_SCOPE, str(user.id))

        result = self._issue_session(user, remember_me)
        result.recovery_codes = self._two_factor.issue_recovery_codes(user.id)

        self._security_logger.log(
            SecurityEvent.SECOND_FACTOR_VERIFIED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"method": method, "remember_me": remember_me},
        )

        return result

    # Session

    def refresh(self, refresh_token: str, ip_address: str | None = None) -> LoginResult:
        """Rotate a refresh token and mint a new access token.

        The presented refresh token is consumed; the replacement keeps the
        original lifetime.

        Raises:
            InvalidSessionError: Refresh token unknown, expired or already used.
        """
        try:
            old, replacement = self._token_store.rotate_refresh(refresh_token)
        except _TOKEN_ERRORS as e:
            self._security_logger.log(
                SecurityEvent.REFRESH_FAILED,
                ip_address=ip_address,
                details={"reason": type(e).__name__},
            )
            raise InvalidSessionError("Invalid or expired session") from e

        user = self._auth_db.get_user_by_id(old.user_id)
        if user is None:
            self._token_store.revoke_refresh(replacement.value, old.user_id)
            raise InvalidSessionError("Session is no longer valid")

        self._security_logger.log(
            SecurityEvent.REFRESH_ROTATED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
        )

        return LoginResult(
            outcome=AuthOutcome.AUTHENTICATED,
            user_id=user.id,
            access_token=self._signer.issue_access(user.id, self._config.access_token_ttl),
            refresh_token=replacement.value,
            refresh_issued_at=replacement.token.issued_at,
            refresh_expires_at=replacement.token.expires_at,
        )

    def logout(
        self,
        refresh_token: str | None,
        caller_user_id: UUID,
        ip_address: str | None = None,
    ) -> AuthOutcome:
        """Revoke the caller's refresh token.

        On LOGGED_OUT the transport clears the refresh cookie.

        Raises:
            InvalidSessionError: Token missing, unknown, or owned by another user.
        """
        token = self._token_store.find_refresh(refresh_token) if refresh_token else None

        if token is None or token.user_id != caller_user_id:
            self._security_logger.log(
                SecurityEvent.LOGOUT_FAILED,
                user_id=caller_user_id,
                ip_address=ip_address,
            )
            raise InvalidSessionError("Invalid session")

        self._token_store.revoke_refresh(refresh_token, caller_user_id)

        self._security_logger.log(
            SecurityEvent.LOGOUT,
            user_id=caller_user_id,
            ip_address=ip_address,
        )

        return AuthOutcome.LOGGED_OUT

    def verify_access(self, access_token: str) -> UUID:
        """Resolve an access token to its user id. No store lookup.

        Raises:
            InvalidSignatureError: Token malformed or tampered with.
            TokenExpiredError: Token expired.
        """
        return self._signer.verify_access(access_token)

    def get_user(self, user_id: UUID) -> User:
        return self._require_user(user_id)

    # Passwords

    def request_password_reset(
        self,
        email: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        """Issue a reset token and mail it.

        Returns the same way whether or not the email is registered.
        """
        email = self._normalize_email(email)
        user = self._auth_db.get_user_by_email(email)

        self._security_logger.log(
            SecurityEvent.PASSWORD_RESET_REQUESTED,
            email=email,
            user_id=user.id if user else None,
            ip_address=ip_address,
            user_agent=user_agent,
            details=None if user else {"reason": "user_not_found"},
        )

        if user is None:
            return

        issued = self._token_store.issue(
            user.id,
            TokenType.PASSWORD_RESET,
            self._config.password_reset_ttl,
        )
        self._send_mail(
            user,
            lambda: self._email_client.send_password_reset_link(
                email=user.email,
                token=issued.value,
                app_url=self._config.app_base_url,
                app_name=self._config.app_name,
            ),
            purpose="password_reset",
        )

    def reset_password(
        self,
        token: str,
        new_password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuthOutcome:
        """Consume a reset token and replace the password.

        Every refresh token of the user is revoked, ending all sessions.

        Raises:
            TokenNotFoundError, TokenExpiredError, TokenWrongTypeError
        """
        try:
            reset = self._token_store.consume(token, TokenType.PASSWORD_RESET)
        except _TOKEN_ERRORS as e:
            self._security_logger.log(
                SecurityEvent.PASSWORD_RESET_FAILED,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": type(e).__name__},
            )
            raise

        if not self._auth_db.update_password_hash(reset.user_id, self._passwords.hash(new_password)):
            raise TokenNotFoundError("Token not found")

        self._token_store.revoke_all(reset.user_id, TokenType.REFRESH)

        self._security_logger.log(
            SecurityEvent.PASSWORD_RESET,
            user_id=reset.user_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return AuthOutcome.PASSWORD_RESET_DONE

    def change_password(
        self,
        user_id: UUID,
        current_password: str,
        new_password: str,
        ip_address: str | None = None,
    ) -> LoginResult:
        """Change password for a logged-in user.

        Other sessions are revoked; the caller gets a fresh token pair.

        Raises:
            BadCredentialsError: current_password is wrong.
        """
        user = self._require_user(user_id)

        if not self._passwords.matches(current_password, user.password_hash):
            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                email=user.email,
                user_id=user.id,
                ip_address=ip_address,
                details={"reason": "wrong_password", "operation": "change_password"},
            )
            raise BadCredentialsError()

        self._auth_db.update_password_hash(user.id, self._passwords.hash(new_password))
        self._token_store.revoke_all(user.id, TokenType.REFRESH)

        result = self._issue_session(user, remember_me=False)
        result.outcome = AuthOutcome.PASSWORD_CHANGED

        self._security_logger.log(
            SecurityEvent.PASSWORD_CHANGED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
        )

        return result

    # Two-factor management

    def _start_setup(self, user_id: UUID) -> tuple[User, str]:
        user = self._require_user(user_id)
        if user.two_factor_enabled:
            raise TwoFactorAlreadyEnabledError("Two-factor authentication is already enabled")

        secret = self._two_factor.generate_secret()
        if not self._auth_db.set_two_factor_secret(user.id, secret):
            raise TwoFactorAlreadyEnabledError("Two-factor authentication is already enabled")

        self._security_logger.log(
            SecurityEvent.TWO_FACTOR_SETUP_STARTED,
            email=user.email,
            user_id=user.id,
        )
        return user, secret

    def begin_two_factor_setup(self, user_id: UUID) -> TwoFactorSetup:
        """Generate a new TOTP secret and the QR enrollment data for it.

        2FA stays disabled until enable_two_factor proves the user's app
        produces matching codes.

        Raises:
            TwoFactorAlreadyEnabledError: 2FA is already on.
        """
        user, secret = self._start_setup(user_id)
        provisioning = self._two_factor.build_provisioning_data(
            user.email, secret, self._config.app_name
        )

        if self._qr_renderer is None:
            return TwoFactorSetup(provisioning=provisioning)

        image, mime_type = self._qr_renderer.render(provisioning)
        return TwoFactorSetup(provisioning=provisioning, image=image, mime_type=mime_type)

    def send_two_factor_secret(self, user_id: UUID) -> None:
        """Generate a new TOTP secret and mail it for manual entry.

        Raises:
            TwoFactorAlreadyEnabledError: 2FA is already on.
        """
        user, secret = self._start_setup(user_id)
        self._send_mail(
            user,
            lambda: self._email_client.send_two_factor_secret(
                email=user.email,
                secret=secret,
                app_name=self._config.app_name,
            ),
            purpose="two_factor_setup",
        )

    def enable_two_factor(
        self,
        user_id: UUID,
        code: str,
        ip_address: str | None = None,
    ) -> RecoveryCodesResult:
        """Turn on 2FA after the user proves possession of the new secret.

        Raises:
            TwoFactorAlreadyEnabledError: 2FA is already on.
            TwoFactorSetupRequiredError: No secret generated yet.
            InvalidTwoFactorCodeError: Code does not match the pending secret.
        """
        user = self._require_user(user_id)

        if user.two_factor_enabled:
            raise TwoFactorAlreadyEnabledError("Two-factor authentication is already enabled")
        if not user.two_factor_secret:
            raise TwoFactorSetupRequiredError("Two-factor setup has not been started")

        self._check_rate_limit(TWO_FACTOR_SCOPE, str(user.id), user.email, user.id, ip_address)

        if not self._two_factor.verify_code(user.two_factor_secret, code):
            self._security_logger.log(
                SecurityEvent.SECOND_FACTOR_FAILED,
                email=user.email,
                user_id=user.id,
                ip_address=ip_address,
                details={"reason": "invalid_code", "operation": "enable"},
            )
            raise InvalidTwoFactorCodeError()

        # Secret may have been regenerated since the code was checked
        if not self._auth_db.enable_two_factor(user.id, user.two_factor_secret):
            raise InvalidTwoFactorCodeError()

        self._rate_limiter.reset_rate_limit(TWO_FACTOR_SCOPE, str(user.id))
        codes = self._two_factor.issue_recovery_codes(user.id)

        self._security_logger.log(
            SecurityEvent.TWO_FACTOR_ENABLED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
        )

        return RecoveryCodesResult(codes=codes)

    def disable_two_factor(self, user_id: UUID, ip_address: str | None = None) -> AuthOutcome:
        """Turn off 2FA, clearing the secret and every recovery code.

        Raises:
            TwoFactorNotEnabledError: 2FA is not on.
        """
        user = self._require_user(user_id)
        if not user.two_factor_enabled:
            raise TwoFactorNotEnabledError("Two-factor authentication is not enabled")

        self._auth_db.disable_two_factor(user.id)

        self._security_logger.log(
            SecurityEvent.TWO_FACTOR_DISABLED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
        )

        return AuthOutcome.TWO_FACTOR_DISABLED

    def regenerate_recovery_codes(self, user_id: UUID) -> RecoveryCodesResult:
        """Replace the recovery-code batch; the old codes stop working.

        Raises:
            TwoFactorNotEnabledError: 2FA is not on.
        """
        user = self._require_user(user_id)
        if not user.two_factor_enabled:
            raise TwoFactorNotEnabledError("Two-factor authentication is not enabled")

        codes = self._two_factor.issue_recovery_codes(user.id)

        self._security_logger.log(
            SecurityEvent.RECOVERY_CODES_ISSUED,
            email=user.email,
            user_id=user.id,
        )

        return RecoveryCodesResult(codes=codes)
