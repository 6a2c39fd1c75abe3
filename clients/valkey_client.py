"""
Valkey client for the login and second-factor rate limits.

Exposes only the counter operations RateLimiter needs. Errors from redis-py
propagate unchanged; RateLimiter turns them into StoreUnavailableError.
"""

import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Thin wrapper over a redis-py client.

    Usage:
        valkey = ValkeyClient(get_valkey_url())
        attempts = valkey.incr("ratelimit:login:a@example.com")
        valkey.expire("ratelimit:login:a@example.com", 900)
    """

    def __init__(self, url: str, client: redis.Redis | None = None):
        """
        Connect and ping once so a bad URL fails at startup.

        Args:
            url: redis:// URL, ignored when client is given
            client: Already-built redis client (tests pass fakeredis here)

        Raises:
            redis.ConnectionError: Server unreachable
        """
        self._client = client or redis.from_url(url, decode_responses=True)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def ping(self) -> bool:
        """True when the server answers; raises redis.ConnectionError otherwise."""
        self._client.ping()
        return True

    def get(self, key: str) -> str | None:
        return self._client.get(key)

    def delete(self, key: str) -> bool:
        """True if the key existed."""
        return self._client.delete(key) > 0

    def ttl(self, key: str) -> int:
        """Seconds left; -1 for no expiry, -2 for a missing key."""
        return self._client.ttl(key)

    def incr(self, key: str) -> int:
        """Increment, creating the key at 1. Returns the new count."""
        return self._client.incr(key)

    def expire(self, key: str, seconds: int) -> bool:
        """Set key TTL. Returns False if the key doesn't exist."""
        return bool(self._client.expire(key, seconds))

    def close(self) -> None:
        self._client.close()
        logger.info("ValkeyClient closed")
