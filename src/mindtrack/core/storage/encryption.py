"""Fernet field encryption for sensitive record content at rest.

Free-text notes and raw questionnaire answers are encrypted before they
reach SQLite. Scores, ratings, severity labels, and timestamps stay in
clear so window queries can use indexes without decrypting every row.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when a key is unusable or a token cannot be decrypted."""


class FieldEncryptor:
    """Round-trips JSON-serializable values through Fernet tokens.

    ``None`` is stored as SQL NULL rather than as an encrypted ``null`` so
    optional fields stay distinguishable without a key.

    Usage::

        encryptor = FieldEncryptor(FieldEncryptor.generate_key())
        token = encryptor.encrypt([1, 2, 0, 3])
        encryptor.decrypt(token)  # [1, 2, 0, 3]
    """

    def __init__(self, key: str) -> None:
        """
        Raises:
            EncryptionError: If the key is empty or not a valid Fernet key.
        """
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.strip().encode("utf-8"))
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def encrypt(self, value: Any) -> str | None:
        """Serialize ``value`` to compact JSON and encrypt it."""
        if value is None:
            return None
        try:
            payload = json.dumps(value, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Value is not JSON-serializable: {exc}") from exc
        return self._fernet.encrypt(payload).decode("utf-8")

    def decrypt(self, token: str | None) -> Any:
        """Decrypt a token produced by :meth:`encrypt`; ``None`` passes through."""
        if token is None:
            return None
        try:
            payload = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        return json.loads(payload)

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode("utf-8")
