"""Fernet encryption for care log documents at rest.

Every caregiver-entered field lives inside one encrypted JSON document per
care log. Status, dates and share timestamps stay in plain columns so the
store can filter without decrypting.

Keys can be rotated: ``ENCRYPTION_KEY`` may hold several comma-separated
Fernet keys. The first encrypts; all of them are tried for decryption.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when a document cannot be encrypted or decrypted."""


def _parse_keys(key: str) -> list[str]:
    return [part.strip() for part in key.split(",") if part.strip()]


class DocumentEncryptor:
    """Encrypts care log documents (JSON objects) to Fernet tokens.

    Usage::

        encryptor = DocumentEncryptor(DocumentEncryptor.generate_key())
        token = encryptor.encrypt_document({"wakeTime": "07:00"})
        encryptor.decrypt_document(token)  # {"wakeTime": "07:00"}
    """

    def __init__(self, key: str) -> None:
        """Initialize with one or more Fernet keys.

        Args:
            key: A Fernet key, or several comma-separated keys (newest first).

        Raises:
            EncryptionError: If no key is given or any key is invalid.
        """
        keys = _parse_keys(key or "")
        if not keys:
            raise EncryptionError("Encryption key must not be empty")
        try:
            fernets = [Fernet(k.encode("utf-8")) for k in keys]
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc
        self._fernet = MultiFernet(fernets)
        self.key_count = len(fernets)

    def encrypt_document(self, document: dict[str, Any]) -> str:
        """Serialize and encrypt a care log document.

        Raises:
            EncryptionError: If the document is not a JSON-serializable object.
        """
        if not isinstance(document, dict):
            raise EncryptionError(f"Expected a document object, got {type(document).__name__}")
        try:
            plaintext = json.dumps(document, separators=(",", ":"), sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Document is not JSON-serializable: {exc}") from exc
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt_document(self, token: str) -> dict[str, Any]:
        """Decrypt a stored token back into a document.

        Raises:
            EncryptionError: If the token is empty, tampered with, or was
                encrypted under a key that is no longer configured.
        """
        if not token:
            raise EncryptionError("Cannot decrypt an empty token")
        try:
            plaintext = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        document = json.loads(plaintext)
        if not isinstance(document, dict):
            raise EncryptionError("Decrypted payload is not a document object")
        return document

    def rotate(self, token: str) -> str:
        """Re-encrypt ``token`` under the newest key."""
        try:
            return self._fernet.rotate(token.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Rotation failed: invalid token or wrong key") from exc

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64-encoded 32-byte Fernet key."""
        return Fernet.generate_key().decode("utf-8")
