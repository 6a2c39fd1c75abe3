"""Rate limiting for password and second-factor attempts.

Uses Valkey with sliding window TTL - each attempt resets the expiry.
Attackers hammering an account hit an ever-extending lockout.
"""

import redis

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.exceptions import RateLimitedError, StoreUnavailableError

LOGIN_SCOPE = "login"
TWO_FACTOR_SCOPE = "two_factor"


class RateLimiter:
    """Per-subject attempt counters in Valkey, one namespace per scope."""

    KEY_PREFIX = "ratelimit:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._window_seconds = config.rate_limit_window_minutes * 60
        self._limits = {
            LOGIN_SCOPE: config.login_rate_limit_attempts,
            TWO_FACTOR_SCOPE: config.two_factor_rate_limit_attempts,
        }

    def _key(self, scope: str, subject: str) -> str:
        """Generate rate limit key (subject normalized to lowercase)."""
        if scope not in self._limits:
            raise ValueError(f"Unknown rate limit scope: {scope}")
        return f"{self.KEY_PREFIX}{scope}:{subject.lower()}"

    def check_rate_limit(self, scope: str, subject: str) -> None:
        """Check rate limit and increment counter.

        Sliding window: TTL resets on every attempt. Hammering extends lockout.

        Raises:
            RateLimitedError: If rate limit exceeded.
            StoreUnavailableError: If Valkey is unreachable.
        """
        key = self._key(scope, subject)

        try:
            count = self._valkey.incr(key)
            # Reset TTL on every attempt (sliding window)
            self._valkey.expire(key, self._window_seconds)

            if count > self._limits[scope]:
                ttl = self._valkey.ttl(key)
                raise RateLimitedError(retry_after_seconds=max(ttl, 1))
        except redis.RedisError as e:
            raise StoreUnavailableError("Rate limit store unavailable") from e

    def reset_rate_limit(self, scope: str, subject: str) -> None:
        """Reset counter after a successful attempt."""
        try:
            self._valkey.delete(self._key(scope, subject))
        except redis.RedisError as e:
            raise StoreUnavailableError("Rate limit store unavailable") from e

    def get_remaining_attempts(self, scope: str, subject: str) -> int:
        """Get remaining attempts before rate limit."""
        try:
            current = self._valkey.get(self._key(scope, subject))
        except redis.RedisError as e:
            raise StoreUnavailableError("Rate limit store unavailable") from e

        if current is None:
            return self._limits[scope]

        return max(self._limits[scope] - int(current), 0)
