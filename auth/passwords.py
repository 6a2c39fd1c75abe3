"""One-way password verifier (argon2id)."""

from argon2 import PasswordHasher as _Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError


class PasswordHasher:
    """Hash and check passwords. The algorithm is an implementation detail."""

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4):
        self._hasher = _Argon2Hasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )

    def hash(self, plain: str) -> str:
        if not plain:
            raise ValueError("Password must not be empty")
        return self._hasher.hash(plain)

    def matches(self, plain: str, password_hash: str) -> bool:
        """True if plain hashes to password_hash. Empty input never matches."""
        if not plain or not password_hash:
            return False
        try:
            return self._hasher.verify(password_hash, plain)
        except (VerificationError, InvalidHashError):
            return False

    def needs_rehash(self, password_hash: str) -> bool:
        return self._hasher.check_needs_rehash(password_hash)
