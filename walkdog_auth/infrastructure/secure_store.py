# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Key-value stores backing the session and guest-walk buffers."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

from walkdog_auth.application.interfaces import SecureKeyValueStore
from walkdog_auth.domain.session import StorageError
from walkdog_auth.infrastructure.encryption import EncryptionService
from walkdog_auth.shared.logging import logger


class InMemorySecureStore(SecureKeyValueStore):
    """Process-local store, used in tests and for ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._values)


class EncryptedFileStore(SecureKeyValueStore):
    """One JSON document on disk, each value Fernet-encrypted.

    The whole document is rewritten atomically on every mutation, so a crash
    leaves either the previous or the next version, never a torn file. There
    is no atomicity across several keys. A delete on an unreadable document
    resets it to empty.
    """

    def __init__(self, path: Path, encryption: EncryptionService) -> None:
        self._path = Path(path)
        self._encryption = encryption
        self._lock = asyncio.Lock()

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, ValueError) as exc:
            raise StorageError(f"Secure store unreadable: {exc}") from exc
        if not isinstance(loaded, dict):
            raise StorageError("Secure store has unexpected layout")
        return {k: v for k, v in loaded.items() if isinstance(v, str)}

    def _write_all(self, values: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(values, f, ensure_ascii=False, indent=0)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self._path)

    async def get(self, key: str) -> str | None:
        async with self._lock:
            values = await asyncio.to_thread(self._read_all)
        ciphertext = values.get(key)
        if ciphertext is None:
            return None
        try:
            return self._encryption.decrypt(ciphertext)
        except StorageError as exc:
            raise StorageError(str(exc), key=key) from exc

    async def set(self, key: str, value: str) -> None:
        ciphertext = self._encryption.encrypt(value)
        async with self._lock:
            values = await asyncio.to_thread(self._read_all)
            values[key] = ciphertext
            await asyncio.to_thread(self._write_all, values)
        logger.debug(f"secure_store: set key={key}")

    async def delete(self, key: str) -> None:
        async with self._lock:
            try:
                values = await asyncio.to_thread(self._read_all)
            except StorageError as exc:
                # nothing in an unreadable document can be recovered
                logger.warning(f"secure_store: resetting unreadable store on delete error={exc}")
                await asyncio.to_thread(self._write_all, {})
                return
            if key not in values:
                return
            del values[key]
            await asyncio.to_thread(self._write_all, values)
        logger.debug(f"secure_store: delete key={key}")


__all__ = ["EncryptedFileStore", "InMemorySecureStore"]
