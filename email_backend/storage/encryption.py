"""
Symmetric encryption helpers for secrets kept in the credential store.

Google access and refresh tokens are never written to SQLite in clear text.
They are encrypted with Fernet (AES-128 in CBC mode with HMAC) using a key
kept next to the database, and stored as base64 text.
"""
import base64
import binascii
import os

from cryptography.fernet import Fernet, InvalidToken

from email_backend import config
from email_backend.utils.errors import DecryptionError


def _get_or_create_key() -> bytes:
    """
    Get the encryption key from file, or generate a new one if missing.

    Returns:
        The encryption key as bytes.
    """
    key_file = config.SECRET_KEY_FILE
    key_file.parent.mkdir(parents=True, exist_ok=True)

    if key_file.exists():
        with open(key_file, 'rb') as f:
            key = f.read().strip()
        try:
            Fernet(key)
            return key
        except (ValueError, TypeError):
            # Corrupted key file; tokens encrypted with it are lost anyway
            pass

    key = Fernet.generate_key()
    with open(key_file, 'wb') as f:
        f.write(key)

    try:
        os.chmod(key_file, 0o600)
    except OSError:
        # Not supported on every filesystem
        pass

    return key


def _get_cipher() -> Fernet:
    return Fernet(_get_or_create_key())


def encrypt_text(text: str) -> str:
    """
    Encrypt a text string for storage in a TEXT column.

    Args:
        text: The text string to encrypt.

    Returns:
        Base64 text wrapping the Fernet token.

    Raises:
        ValueError: If text is empty.
    """
    if not text:
        raise ValueError("Cannot encrypt empty text")

    token = _get_cipher().encrypt(text.encode('utf-8'))
    return base64.b64encode(token).decode('utf-8')


def decrypt_text(stored: str) -> str:
    """
    Decrypt a value produced by encrypt_text.

    Args:
        stored: The base64 text read from the database.

    Returns:
        Decrypted text string.

    Raises:
        DecryptionError: If decryption fails (corrupted data, wrong key, etc.).
    """
    if not stored:
        raise DecryptionError("Cannot decrypt empty data")

    try:
        token = base64.b64decode(stored.encode('utf-8'))
        return _get_cipher().decrypt(token).decode('utf-8')
    except InvalidToken as e:
        raise DecryptionError("Decryption failed: invalid or corrupted data") from e
    except (binascii.Error, ValueError) as e:
        raise DecryptionError(f"Decryption failed: {str(e)}") from e
