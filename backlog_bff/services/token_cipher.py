"""Symmetric encryption for OAuth tokens kept in durable stores."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from backlog_bff.core.config import AppSettings


class TokenCipherService:
    """Encrypt and decrypt token strings using a Fernet key derived from a secret."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "TokenCipherService":
        """Use the dedicated secret when set, the OAuth client secret otherwise."""
        secret = settings.security.token_encryption_secret or settings.backlog.client_secret
        return cls(secret=secret)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError(
                "Failed to decrypt stored token; was the encryption secret rotated?"
            ) from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenCipherService"]
