"""AES-GCM encryption of message bodies.

Each conversation owns one 256-bit key, stored base64 encoded. Every message
is encrypted under a fresh 12 byte IV; ciphertext and IV are stored base64
encoded next to each other.
"""

import base64
import os
from typing import Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

KEY_BITS = 256
IV_BYTES = 12

class EncryptionError(Exception):
    """Raised when a key is malformed or a message cannot be decrypted."""
    pass

def generate_key() -> str:
    """Create a new conversation key, base64 encoded."""
    return base64.b64encode(AESGCM.generate_key(bit_length=KEY_BITS)).decode('ascii')

def _load_key(key: str) -> AESGCM:
    try:
        return AESGCM(base64.b64decode(key))
    except (TypeError, ValueError) as e:
        raise EncryptionError(f"Invalid conversation key: {e}")

def encrypt(message: str, key: str) -> Tuple[str, str]:
    """Encrypt a message.

    Returns:
        Tuple of (ciphertext, iv), both base64 encoded
    """
    iv = os.urandom(IV_BYTES)
    ciphertext = _load_key(key).encrypt(iv, message.encode('utf-8'), None)
    return (
        base64.b64encode(ciphertext).decode('ascii'),
        base64.b64encode(iv).decode('ascii'),
    )

def decrypt(encrypted: str, iv: str, key: str) -> str:
    """Decrypt a message produced by encrypt().

    Raises:
        EncryptionError: If the key, IV or ciphertext is invalid or tampered with
    """
    aesgcm = _load_key(key)
    try:
        plaintext = aesgcm.decrypt(base64.b64decode(iv), base64.b64decode(encrypted), None)
    except (InvalidTag, TypeError, ValueError) as e:
        raise EncryptionError(f"Failed to decrypt message: {e!r}")
    return plaintext.decode('utf-8')

__all__ = ['generate_key', 'encrypt', 'decrypt', 'EncryptionError', 'IV_BYTES']
