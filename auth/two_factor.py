"""TOTP second factor and one-time recovery codes.

TOTP follows RFC 6238 with SHA-512, 6 digits and a 30-second period, the
parameters advertised to authenticator apps in the provisioning URI.
Verification accepts the current step plus ``totp_valid_window`` steps on
each side to absorb clock drift, and nothing further.

Recovery codes are generated in batches, shown to the user once, and stored
only as SHA-256 digests of their normalised form.
"""

import hashlib
import secrets
import string
from uuid import UUID

import pyotp

from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.types import TotpProvisioning
from utils.timezone import Clock, now_utc

TOTP_DIGITS = 6
TOTP_PERIOD_SECONDS = 30
TOTP_ALGORITHM = "SHA512"
SECRET_LENGTH = 32

RECOVERY_CODE_ALPHABET = string.ascii_lowercase + string.digits
RECOVERY_CODE_GROUPS = 4
RECOVERY_CODE_GROUP_LENGTH = 4


def normalize_recovery_code(code: str) -> str:
    """Canonical form: lowercase, no spaces or dashes."""
    return code.strip().lower().replace("-", "").replace(" ", "")


def hash_recovery_code(code: str) -> str:
    return hashlib.sha256(normalize_recovery_code(code).encode("utf-8")).hexdigest()


def _generate_recovery_code() -> str:
    groups = [
        "".join(secrets.choice(RECOVERY_CODE_ALPHABET) for _ in range(RECOVERY_CODE_GROUP_LENGTH))
        for _ in range(RECOVERY_CODE_GROUPS)
    ]
    return "-".join(groups)


class TwoFactorEngine:
    """TOTP verification plus recovery-code lifecycle."""

    def __init__(self, auth_db: AuthDatabase, config: AuthConfig, clock: Clock = now_utc):
        self._auth_db = auth_db
        self._config = config
        self._clock = clock

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(
            secret,
            digits=TOTP_DIGITS,
            digest=hashlib.sha512,
            interval=TOTP_PERIOD_SECONDS,
        )

    def generate_secret(self) -> str:
        """Fresh random base32 secret, unrelated to any previous one."""
        return pyotp.random_base32(length=SECRET_LENGTH)

    def build_provisioning_data(self, email: str, secret: str, issuer: str) -> TotpProvisioning:
        """Assemble what a QR renderer needs. No image work happens here."""
        uri = self._totp(secret).provisioning_uri(name=email, issuer_name=issuer)
        return TotpProvisioning(
            label=email,
            secret=secret,
            issuer=issuer,
            algorithm=TOTP_ALGORITHM,
            digits=TOTP_DIGITS,
            period=TOTP_PERIOD_SECONDS,
            uri=uri,
        )

    def verify_code(self, secret: str | None, code: str) -> bool:
        """Check a submitted TOTP code against now and adjacent steps.

        Spaces are ignored; anything that is not exactly six digits fails.
        """
        if not secret or not code:
            return False

        code = code.replace(" ", "")
        if len(code) != TOTP_DIGITS or not code.isdigit():
            return False

        return self._totp(secret).verify(
            code,
            for_time=int(self._clock().timestamp()),
            valid_window=self._config.totp_valid_window,
        )

    def current_code(self, secret: str) -> str:
        """TOTP code for the current step."""
        return self._totp(secret).at(int(self._clock().timestamp()))

    def issue_recovery_codes(self, user_id: UUID, count: int | None = None) -> list[str]:
        """Replace the user's recovery codes with a new batch.

        The plaintext codes are returned here and nowhere else; afterwards
        they can only be spent, never listed.
        """
        if count is None:
            count = self._config.recovery_code_count
        if count < 1:
            raise ValueError("count must be at least 1")
        codes: list[str] = []
        seen: set[str] = set()
        while len(codes) < count:
            code = _generate_recovery_code()
            if code not in seen:
                seen.add(code)
                codes.append(code)

        self._auth_db.replace_recovery_codes(user_id, [hash_recovery_code(c) for c in codes])
        return codes

    def consume_recovery_code(self, user_id: UUID, code: str) -> bool:
        """Spend a recovery code. True if it matched an unused code.

        False says nothing about how many codes remain.
        """
        if not normalize_recovery_code(code):
            return False
        return self._auth_db.take_recovery_code(user_id, hash_recovery_code(code))
