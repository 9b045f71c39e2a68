# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import base64
import binascii
import os

from cryptography.fernet import Fernet, InvalidToken

from walkdog_auth.domain.session import StorageError
from walkdog_auth.shared.errors import InfrastructureError
from walkdog_auth.shared.logging import logger

_DEV_KEY_RAW = b"walkdog-dev-key-local-only-32b!!"


class EncryptionKeyError(InfrastructureError):
    def __init__(self, message: str) -> None:
        super().__init__(message, code="encryption_key_invalid")


def _check_key(key_str: str) -> bytes:
    try:
        raw = base64.urlsafe_b64decode(key_str)
    except (binascii.Error, ValueError) as exc:
        raise EncryptionKeyError(
            f"Invalid ENCRYPTION_KEY format: {exc}. "
            "Key must be a valid Fernet key (32 url-safe base64-encoded bytes)."
        ) from exc
    if len(raw) != 32:
        raise EncryptionKeyError(
            f"Invalid ENCRYPTION_KEY length: {len(raw)} bytes. Decoded key must be exactly 32 bytes."
        )
    return key_str.encode("utf-8")


class EncryptionService:
    """Fernet wrapper used to keep secure-store values encrypted at rest."""

    def __init__(self, key: bytes | None = None, *, production: bool = False) -> None:
        if key is None:
            key = self._load_key_from_env(production=production)
        self._fernet = Fernet(key)
        logger.debug("encryption: service initialized")

    @staticmethod
    def _load_key_from_env(*, production: bool) -> bytes:
        key_str = os.getenv("ENCRYPTION_KEY", "")
        if not key_str:
            if production:
                logger.critical("encryption: ENCRYPTION_KEY not set in production")
                raise EncryptionKeyError(
                    "ENCRYPTION_KEY must be set in production. "
                    "Generate one with EncryptionService.generate_key()."
                )
            logger.warning(
                "encryption: ENCRYPTION_KEY not set, using fixed development key. "
                "DO NOT use this in production!"
            )
            return base64.urlsafe_b64encode(_DEV_KEY_RAW)
        return _check_key(key_str)

    def encrypt(self, plaintext: str) -> str:
        if not isinstance(plaintext, str):
            raise TypeError(f"Expected str, got {type(plaintext).__name__}")
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        if not isinstance(ciphertext, str):
            raise TypeError(f"Expected str, got {type(ciphertext).__name__}")
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise StorageError("Failed to decrypt: invalid token or corrupted data") from exc

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("utf-8")


__all__ = ["EncryptionKeyError", "EncryptionService"]
