"""Pydantic models for auth domain."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class TokenType(str, Enum):
    """Purpose of a stored opaque token. Access tokens are never stored."""

    REFRESH = "REFRESH"
    ACCOUNT_ACTIVATION = "ACCOUNT_ACTIVATION"
    PASSWORD_RESET = "PASSWORD_RESET"

    @property
    def single_active(self) -> bool:
        """At most one live token of this type may exist per user."""
        return self is not TokenType.REFRESH


class User(BaseModel):
    """A registered user of the system."""

    id: UUID
    email: EmailStr
    password_hash: str = Field(..., repr=False)
    email_verified: bool = False
    two_factor_enabled: bool = False
    two_factor_secret: str | None = Field(default=None, repr=False)
    created_at: datetime

    model_config = {"from_attributes": True}


class Token(BaseModel):
    """A stored token record. Holds the digest, never the raw value."""

    id: UUID
    user_id: UUID
    token_hash: str
    token_type: TokenType
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class IssuedToken(BaseModel):
    """A freshly issued token. The only place the raw value ever appears."""

    value: str = Field(..., description="Opaque URL-safe token value")
    token: Token


class TotpProvisioning(BaseModel):
    """Data an authenticator app needs to enroll a TOTP secret."""

    label: str
    secret: str
    issuer: str
    algorithm: str = "SHA512"
    digits: int = 6
    period: int = 30
    uri: str = Field(..., description="otpauth:// URI, the QR code payload")


# Request bodies


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=256)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=256)
    remember_me: bool = False


class TwoFactorLoginRequest(BaseModel):
    pending_token: str = Field(..., min_length=1, max_length=2048, description="Signed token returned by login")
    code: str = Field(..., min_length=1, max_length=64)
    remember_me: bool = False


class ActivateAccountRequest(BaseModel):
    email: EmailStr
    token: str = Field(..., min_length=1)


class EmailRequest(BaseModel):
    """Body for endpoints that only take an email (reset, resend activation)."""

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=256)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=256)
    new_password: str = Field(..., min_length=8, max_length=256)


class TwoFactorCodeRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
