"""Authentication configuration."""

from datetime import timedelta

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    All durations are in their natural units (minutes for short-lived
    credentials, hours or days for longer ones) to make configuration
    intuitive. Secrets are not part of this model; they come from Vault.
    """

    # Access tokens (stateless, signed)
    access_token_expiry_minutes: int = Field(
        default=15,
        description="Lifetime of signed access tokens",
        ge=1,
        le=60,
    )
    jwt_algorithm: str = Field(
        default="HS512",
        description="HMAC algorithm used to sign access tokens",
    )

    # Refresh tokens (stored, revocable)
    refresh_token_expiry_hours: int = Field(
        default=24,
        description="Refresh token lifetime for a regular login",
        ge=1,
        le=168,
    )
    refresh_token_remember_me_days: int = Field(
        default=30,
        description="Refresh token lifetime when the user asked to be remembered",
        ge=1,
        le=90,
    )
    refresh_cookie_name: str = Field(
        default="refresh_token",
        description="Cookie carrying the refresh token",
    )
    refresh_cookie_path: str = Field(
        default="/auth",
        description="Cookie path; the refresh token is only sent to auth endpoints",
    )

    # Single-use purpose tokens
    activation_token_expiry_hours: int = Field(
        default=24,
        description="How long account activation links remain valid",
        ge=1,
        le=168,
    )
    password_reset_expiry_minutes: int = Field(
        default=30,
        description="How long password reset links remain valid",
        ge=5,
        le=1440,
    )

    # Two-factor
    two_factor_pending_expiry_minutes: int = Field(
        default=5,
        description="How long the signed pending-login token from a password check stays usable",
        ge=1,
        le=15,
    )
    totp_valid_window: int = Field(
        default=1,
        description="Adjacent 30-second steps accepted on each side of now",
        ge=0,
        le=2,
    )
    recovery_code_count: int = Field(
        default=16,
        description="Recovery codes per generated batch",
        ge=4,
        le=32,
    )

    # Rate limiting
    login_rate_limit_attempts: int = Field(
        default=5,
        description="Max failed password attempts per email per window",
        ge=1,
        le=20,
    )
    two_factor_rate_limit_attempts: int = Field(
        default=5,
        description="Max second-factor attempts per user per window",
        ge=1,
        le=20,
    )
    rate_limit_window_minutes: int = Field(
        default=15,
        description="Rate limit window duration",
        ge=5,
        le=60,
    )

    # Application
    app_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL for activation and reset links",
    )
    app_name: str = Field(
        default="Authcore",
        description="Issuer name for authenticator apps and email subjects",
    )

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.access_token_expiry_minutes)

    def refresh_token_ttl(self, remember_me: bool) -> timedelta:
        """Refresh lifetime, longer when the user ticked "remember me"."""
        if remember_me:
            return timedelta(days=self.refresh_token_remember_me_days)
        return timedelta(hours=self.refresh_token_expiry_hours)

    @property
    def two_factor_pending_ttl(self) -> timedelta:
        return timedelta(minutes=self.two_factor_pending_expiry_minutes)

    @property
    def activation_token_ttl(self) -> timedelta:
        return timedelta(hours=self.activation_token_expiry_hours)

    @property
    def password_reset_ttl(self) -> timedelta:
        return timedelta(minutes=self.password_reset_expiry_minutes)
