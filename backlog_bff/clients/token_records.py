"""Serialization of tokens for durable stores, with secrets encrypted at rest."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from backlog_bff.clients.stores import TokenCipher
from backlog_bff.models.oauth import AuthToken


def token_to_record(token: AuthToken, cipher: TokenCipher) -> Dict[str, Any]:
    return {
        "userId": token.user_id,
        "tokenType": token.token_type,
        "accessTokenEncrypted": cipher.encrypt(token.access_token),
        "refreshTokenEncrypted": cipher.encrypt(token.refresh_token),
        "expiresAt": token.expires_at.isoformat(),
        "updatedAt": datetime.now(timezone.utc).isoformat(),
    }


def token_from_record(record: Dict[str, Any], cipher: TokenCipher) -> AuthToken:
    expires_at = datetime.fromisoformat(record["expiresAt"])
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return AuthToken(
        user_id=record["userId"],
        token_type=record.get("tokenType") or "Bearer",
        access_token=cipher.decrypt(record["accessTokenEncrypted"]),
        refresh_token=cipher.decrypt(record["refreshTokenEncrypted"]),
        expires_at=expires_at,
    )


__all__ = ["token_from_record", "token_to_record"]
