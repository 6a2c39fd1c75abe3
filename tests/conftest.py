"""Shared test fixtures for the auth test suite.

Infrastructure is replaced by in-process stand-ins: fakeredis behind
ValkeyClient, and InMemoryAuthDatabase behind the AuthDatabase interface.
Everything above the store (TokenStore, TwoFactorEngine, AuthService) is real.
"""

import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import Mock
from uuid import UUID, uuid4

import fakeredis
import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from auth.config import AuthConfig
from auth.exceptions import UserAlreadyExistsError
from auth.passwords import PasswordHasher
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.signer import TokenSigner
from auth.token_store import TokenStore
from auth.two_factor import TwoFactorEngine
from auth.types import Token, TokenType, User
from clients.email_client import EmailGatewayClient
from clients.qr_renderer import QrRenderer
from clients.valkey_client import ValkeyClient
from utils.timezone import now_utc


# =============================================================================
# TEST USER CONSTANTS
# =============================================================================

TEST_USER_EMAIL = "testuser@example.com"
TEST_USER_B_EMAIL = "testuser-b@example.com"
TEST_PASSWORD = "correct-horse-battery"
TEST_JWT_SECRET = "test-signing-key-that-is-long-enough-for-hs512"


# =============================================================================
# CLOCK
# =============================================================================


class FakeClock:
    """Controllable Clock. Starts near real time, alongside fakeredis TTLs."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, when: datetime) -> None:
        self.now = when


@pytest.fixture
def clock() -> FakeClock:
    """Clock aligned 5 seconds into a 30-second TOTP step."""
    real = int(now_utc().timestamp())
    aligned = real - (real % 30) + 5
    return FakeClock(datetime.fromtimestamp(aligned, tz=timezone.utc))


# =============================================================================
# IN-MEMORY STORE
# =============================================================================


class InMemoryAuthDatabase:
    """Drop-in for AuthDatabase with the same atomicity guarantees.

    One lock stands in for the row-level atomicity of the SQL statements.
    """

    def __init__(self, clock=now_utc):
        self._lock = threading.Lock()
        self._clock = clock
        self.users: dict[UUID, User] = {}
        self.tokens: dict[str, Token] = {}
        self.recovery_codes: dict[UUID, set[str]] = {}

    # Users

    def get_user_by_email(self, email: str) -> User | None:
        email = email.strip().lower()
        with self._lock:
            for user in self.users.values():
                if user.email == email:
                    return user
        return None

    def get_user_by_id(self, user_id: UUID) -> User | None:
        with self._lock:
            return self.users.get(user_id)

    def create_user(self, email: str, password_hash: str) -> User:
        email = email.strip().lower()
        with self._lock:
            if any(u.email == email for u in self.users.values()):
                raise UserAlreadyExistsError("Email is already registered")
            user = User(id=uuid4(), email=email, password_hash=password_hash, created_at=self._clock())
            self.users[user.id] = user
            return user

    def _update_user(self, user_id: UUID, **changes) -> bool:
        user = self.users.get(user_id)
        if user is None:
            return False
        self.users[user_id] = user.model_copy(update=changes)
        return True

    def set_email_verified(self, user_id: UUID) -> bool:
        with self._lock:
            return self._update_user(user_id, email_verified=True)

    def update_password_hash(self, user_id: UUID, password_hash: str) -> bool:
        with self._lock:
            return self._update_user(user_id, password_hash=password_hash)

    def set_two_factor_secret(self, user_id: UUID, secret: str) -> bool:
        with self._lock:
            user = self.users.get(user_id)
            if user is None or user.two_factor_enabled:
                return False
            return self._update_user(user_id, two_factor_secret=secret)

    def enable_two_factor(self, user_id: UUID, secret: str) -> bool:
        with self._lock:
            user = self.users.get(user_id)
            if user is None or user.two_factor_enabled or user.two_factor_secret != secret:
                return False
            return self._update_user(user_id, two_factor_enabled=True)

    def disable_two_factor(self, user_id: UUID) -> bool:
        with self._lock:
            self.recovery_codes.pop(user_id, None)
            return self._update_user(user_id, two_factor_enabled=False, two_factor_secret=None)

    # Tokens

    def insert_token(self, token: Token) -> None:
        with self._lock:
            self.tokens[token.token_hash] = token

    def replace_token(self, token: Token) -> None:
        with self._lock:
            for token_hash, existing in list(self.tokens.items()):
                if existing.user_id == token.user_id and existing.token_type is token.token_type:
                    del self.tokens[token_hash]
            self.tokens[token.token_hash] = token

    def take_token(self, token_hash: str, token_type: TokenType, user_id: UUID | None = None) -> Token | None:
        with self._lock:
            token = self.tokens.get(token_hash)
            if token is None or token.token_type is not token_type:
                return None
            if user_id is not None and token.user_id != user_id:
                return None
            return self.tokens.pop(token_hash)

    def get_token(self, token_hash: str) -> Token | None:
        with self._lock:
            return self.tokens.get(token_hash)

    def delete_user_token(self, token_hash: str, user_id: UUID, token_type: TokenType) -> bool:
        with self._lock:
            token = self.tokens.get(token_hash)
            if token is None or token.user_id != user_id or token.token_type is not token_type:
                return False
            del self.tokens[token_hash]
            return True

    def delete_user_tokens(self, user_id: UUID, token_type: TokenType) -> int:
        with self._lock:
            doomed = [
                h for h, t in self.tokens.items()
                if t.user_id == user_id and t.token_type is token_type
            ]
            for token_hash in doomed:
                del self.tokens[token_hash]
            return len(doomed)

    def delete_expired_tokens(self, now: datetime) -> int:
        with self._lock:
            doomed = [h for h, t in self.tokens.items() if t.expires_at <= now]
            for token_hash in doomed:
                del self.tokens[token_hash]
            return len(doomed)

    # Recovery codes

    def replace_recovery_codes(self, user_id: UUID, code_hashes: list[str]) -> None:
        with self._lock:
            self.recovery_codes[user_id] = set(code_hashes)

    def take_recovery_code(self, user_id: UUID, code_hash: str) -> bool:
        with self._lock:
            codes = self.recovery_codes.get(user_id, set())
            if code_hash not in codes:
                return False
            codes.remove(code_hash)
            return True

    # Test helpers

    def tokens_for(self, user_id: UUID, token_type: TokenType) -> list[Token]:
        with self._lock:
            return [t for t in self.tokens.values() if t.user_id == user_id and t.token_type is token_type]


# =============================================================================
# CORE FIXTURES
# =============================================================================


@pytest.fixture
def config() -> AuthConfig:
    """Test auth config with low limits for faster tests."""
    return AuthConfig(
        login_rate_limit_attempts=3,
        two_factor_rate_limit_attempts=3,
        rate_limit_window_minutes=5,
        recovery_code_count=8,
        app_base_url="https://test.example.com",
        app_name="Authcore Test",
    )


@pytest.fixture
def auth_db(clock) -> InMemoryAuthDatabase:
    return InMemoryAuthDatabase(clock)


@pytest.fixture
def valkey() -> ValkeyClient:
    """ValkeyClient over an isolated fakeredis server."""
    server = fakeredis.FakeServer()
    return ValkeyClient("redis://fake", client=fakeredis.FakeRedis(server=server, decode_responses=True))


@pytest.fixture
def passwords() -> PasswordHasher:
    """Cheap argon2 parameters; production defaults are deliberately slow."""
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def signer(clock) -> TokenSigner:
    return TokenSigner(TEST_JWT_SECRET, clock=clock)


@pytest.fixture
def token_store(auth_db, clock) -> TokenStore:
    return TokenStore(auth_db, clock=clock)


@pytest.fixture
def two_factor(auth_db, config, clock) -> TwoFactorEngine:
    return TwoFactorEngine(auth_db, config, clock=clock)


@pytest.fixture
def rate_limiter(valkey, config) -> RateLimiter:
    return RateLimiter(valkey, config)


@pytest.fixture
def mock_email_client():
    """Mock email client - mail is never really sent."""
    return Mock(spec=EmailGatewayClient)


@pytest.fixture
def mock_security_logger():
    return Mock(spec=SecurityLogger)


@pytest.fixture
def auth_service(
    config,
    auth_db,
    signer,
    token_store,
    two_factor,
    passwords,
    rate_limiter,
    mock_email_client,
    mock_security_logger,
) -> AuthService:
    """Real AuthService over in-memory store, fakeredis and mocked mail."""
    return AuthService(
        config=config,
        auth_db=auth_db,
        signer=signer,
        token_store=token_store,
        two_factor=two_factor,
        passwords=passwords,
        rate_limiter=rate_limiter,
        email_client=mock_email_client,
        security_logger=mock_security_logger,
        qr_renderer=QrRenderer(),
    )


@pytest.fixture
def create_user(auth_db, passwords):
    """Factory for users in a given state, bypassing signup."""

    def _create(
        email: str = TEST_USER_EMAIL,
        password: str = TEST_PASSWORD,
        verified: bool = True,
        two_factor_secret: str | None = None,
    ) -> User:
        user = auth_db.create_user(email, passwords.hash(password))
        if verified:
            auth_db.set_email_verified(user.id)
        if two_factor_secret:
            auth_db.set_two_factor_secret(user.id, two_factor_secret)
            auth_db.enable_two_factor(user.id, two_factor_secret)
        return auth_db.get_user_by_id(user.id)

    return _create
