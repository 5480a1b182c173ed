"""
Encryption of the raw conversation before it is stored.

AES-256-GCM with a key derived by PBKDF2-HMAC-SHA256 from a server secret
and the user id. Output is base64(salt || iv || tag || ciphertext).
"""

from __future__ import annotations
import base64
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from sharplog.core.errors import EncryptionError

SALT_LENGTH = 16
IV_LENGTH = 12
TAG_LENGTH = 16
KEY_LENGTH = 32
ITERATIONS = 100_000


class ConversationEncryptor:
    """Encrypts plaintext for a single user."""

    def __init__(self, key_material: str, iterations: int = ITERATIONS):
        if not key_material:
            raise ValueError("key_material must not be empty")
        self._key_material = key_material.encode("utf-8")
        self.iterations = iterations

    @classmethod
    def for_user(cls, secret: str, user_id: str, iterations: int = ITERATIONS) -> ConversationEncryptor:
        return cls(f"{secret}:{user_id}", iterations=iterations)

    def _derive_key(self, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=self.iterations,
        )
        return kdf.derive(self._key_material)

    def encrypt(self, plaintext: str) -> str:
        try:
            salt = os.urandom(SALT_LENGTH)
            iv = os.urandom(IV_LENGTH)
            sealed = AESGCM(self._derive_key(salt)).encrypt(iv, plaintext.encode("utf-8"), None)
        except (TypeError, ValueError, AttributeError) as e:
            raise EncryptionError(f"Could not encrypt conversation: {e}") from e
        # AESGCM appends the tag; store it ahead of the ciphertext
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return base64.b64encode(salt + iv + tag + ciphertext).decode("ascii")

    def decrypt(self, token: str) -> str:
        """Reverse of encrypt. Only used to verify stored payloads."""
        try:
            combined = base64.b64decode(token)
            salt = combined[:SALT_LENGTH]
            iv = combined[SALT_LENGTH:SALT_LENGTH + IV_LENGTH]
            tag = combined[SALT_LENGTH + IV_LENGTH:SALT_LENGTH + IV_LENGTH + TAG_LENGTH]
            ciphertext = combined[SALT_LENGTH + IV_LENGTH + TAG_LENGTH:]
            plaintext = AESGCM(self._derive_key(salt)).decrypt(iv, ciphertext + tag, None)
        except (InvalidTag, ValueError) as e:
            raise EncryptionError("Could not decrypt payload") from e
        return plaintext.decode("utf-8")
