"""Authentication: tokens, passwords and two-factor."""

from auth.exceptions import (
    AuthError,
    AccountNotActivatedError,
    BadCredentialsError,
    InvalidSessionError,
    InvalidSignatureError,
    InvalidTwoFactorCodeError,
    RateLimitedError,
    StoreUnavailableError,
    TokenExpiredError,
    TokenNotFoundError,
    TokenWrongTypeError,
    TwoFactorAlreadyEnabledError,
    TwoFactorNotEnabledError,
    TwoFactorSetupRequiredError,
    UserAlreadyExistsError,
)
from auth.types import (
    User,
    Token,
    TokenType,
    IssuedToken,
    TotpProvisioning,
)
from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.passwords import PasswordHasher
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.signer import TokenSigner
from auth.token_store import TokenStore
from auth.two_factor import TwoFactorEngine
from auth.service import AuthService, AuthOutcome, LoginResult, RecoveryCodesResult, TwoFactorSetup
from auth.security_middleware import AuthMiddleware
from auth.api import create_auth_router
