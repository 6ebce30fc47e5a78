"""Password hashing (PBKDF2-HMAC-SHA256) and secure salt generation."""

import hashlib
import hmac
import secrets
from typing import Protocol

# PBKDF2 parameters. Fixed: changing any of them invalidates every stored hash.
PBKDF2_HASH_NAME = "sha256"
PBKDF2_ITERATIONS = 10_000
DERIVED_KEY_BYTES = 32  # 256-bit output, 64 hex chars

# 16 bytes = 128-bit salt, 32 hex chars
SALT_BYTES = 16


class EntropyFailure(Exception):
    """Raised when secure random bytes cannot be obtained. Fatal: never fall back."""

    code = "entropy_failure"

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


class EntropySource(Protocol):
    """Cryptographically secure random byte generator."""

    async def get_random_bytes(self, n: int) -> bytes: ...


class SystemEntropySource:
    """OS CSPRNG via the secrets module."""

    async def get_random_bytes(self, n: int) -> bytes:
        return secrets.token_bytes(n)


_default_entropy = SystemEntropySource()


async def generate_salt(entropy: EntropySource | None = None) -> str:
    """Return SALT_BYTES of secure random data as lowercase hex."""
    source = entropy or _default_entropy
    try:
        raw = await source.get_random_bytes(SALT_BYTES)
    except EntropyFailure:
        raise
    except Exception as e:
        raise EntropyFailure("Secure random bytes unavailable", cause=e) from e
    if not isinstance(raw, (bytes, bytearray)) or len(raw) != SALT_BYTES:
        raise EntropyFailure(
            f"Entropy source returned invalid data (expected {SALT_BYTES} bytes)"
        )
    return bytes(raw).hex()


def _salt_bytes(salt_hex: str) -> bytes:
    if not isinstance(salt_hex, str):
        raise TypeError("salt must be a hex string")
    if not salt_hex:
        raise ValueError("salt must not be empty")
    try:
        return bytes.fromhex(salt_hex)
    except ValueError:
        raise ValueError("salt is not valid hex") from None


def hash_password(password: str, salt_hex: str) -> str:
    """Derive the PBKDF2 hash of password with the hex-encoded salt; returns lowercase hex."""
    if not isinstance(password, str):
        raise TypeError("password must be a string")
    salt = _salt_bytes(salt_hex)
    derived = hashlib.pbkdf2_hmac(
        PBKDF2_HASH_NAME,
        password.encode("utf-8"),
        salt,
        PBKDF2_ITERATIONS,
        dklen=DERIVED_KEY_BYTES,
    )
    return derived.hex()


def verify_password(password: str, salt_hex: str, expected_hash_hex: str) -> bool:
    """
    Recompute the hash and compare in constant time.
    Malformed salt raises ValueError; a malformed expected hash never matches.
    """
    candidate = hash_password(password, salt_hex)
    if not isinstance(expected_hash_hex, str):
        return False
    return hmac.compare_digest(
        candidate.encode("ascii"),
        expected_hash_hex.lower().encode("utf-8"),
    )
