"""
Password hashing with PBKDF2-HMAC-SHA256.

Hashes are stored as ``pbkdf2_sha256$<iterations>$<salt>$<hash>`` with the
salt and hash base64 encoded, so the iteration count can be raised later
without invalidating existing hashes.
"""
import base64
import binascii
import hmac
import os
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from email_backend import config


ALGORITHM = "pbkdf2_sha256"
SALT_BYTES = 16
HASH_BYTES = 32


def _derive(password: str, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=HASH_BYTES,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


def hash_password(password: str, iterations: Optional[int] = None) -> str:
    """
    Hash a password with a fresh random salt.

    Raises:
        ValueError: If the password is empty.
    """
    if not password:
        raise ValueError("Password must not be empty")
    iterations = iterations or config.PASSWORD_HASH_ITERATIONS
    salt = os.urandom(SALT_BYTES)
    digest = _derive(password, salt, iterations)
    return "$".join([
        ALGORITHM,
        str(iterations),
        base64.b64encode(salt).decode("ascii"),
        base64.b64encode(digest).decode("ascii"),
    ])


def verify_password(password: str, stored_hash: Optional[str]) -> bool:
    """Check a password against a stored hash. Malformed hashes never match."""
    if not password or not stored_hash:
        return False
    try:
        algorithm, iterations, salt_b64, digest_b64 = stored_hash.split("$")
        if algorithm != ALGORITHM:
            return False
        salt = base64.b64decode(salt_b64)
        expected = base64.b64decode(digest_b64)
        actual = _derive(password, salt, int(iterations))
    except (ValueError, binascii.Error):
        return False
    return hmac.compare_digest(actual, expected)
