"""
Password hashing for the trivial credential check.

Hashes are stored as ``pbkdf2_sha256$<iterations>$<salt hex>$<digest hex>``.
"""

import hashlib
import hmac
import secrets

_ALGORITHM = "pbkdf2_sha256"
_ITERATIONS = 120_000
_SALT_BYTES = 16


def _derive(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def hash_password(password: str, *, iterations: int = _ITERATIONS) -> str:
    """
    Hash a password with a fresh random salt.

    Args:
        password: Plain-text password.
        iterations: PBKDF2 work factor.

    Returns:
        Encoded hash string safe to store.
    """
    salt = secrets.token_bytes(_SALT_BYTES)
    digest = _derive(password, salt, iterations)
    return f"{_ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """
    Check a password against an encoded hash.

    Returns False (never raises) for a malformed hash.
    """
    try:
        algorithm, iterations, salt_hex, digest_hex = encoded.split("$")
        if algorithm != _ALGORITHM:
            return False
        expected = bytes.fromhex(digest_hex)
        actual = _derive(password, bytes.fromhex(salt_hex), int(iterations))
    except ValueError:
        return False
    return hmac.compare_digest(expected, actual)
