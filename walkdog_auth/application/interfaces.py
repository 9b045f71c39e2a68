# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from walkdog_auth.domain.session import (
    ProfileResult,
    RefreshResult,
    TokenPair,
    TrackPoint,
)


class SecureKeyValueStore(Protocol):
    """Platform key-value store, encrypted at rest."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class AuthBackend(Protocol):
    async def login(self, identifier: str, secret: str) -> TokenPair: ...

    async def register(self, username: str, email: str, secret: str) -> None: ...

    async def refresh(self, refresh_token: str) -> RefreshResult: ...

    async def fetch_profile(self, access_token: str) -> ProfileResult: ...


class WalkBackend(Protocol):
    async def create_walk(self, access_token: str, payload: dict[str, Any]) -> str: ...

    async def upload_track(
        self, access_token: str, walk_id: str, coordinates: Sequence[TrackPoint]
    ) -> None: ...

    async def stop_walk(
        self, access_token: str, walk_id: str, *, duration: float, distance: float
    ) -> None: ...


__all__ = ["AuthBackend", "SecureKeyValueStore", "WalkBackend"]
