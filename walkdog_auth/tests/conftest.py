from __future__ import annotations

import asyncio
import base64
import json
from collections import deque
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from walkdog_auth.domain.session import (
    ApiResponseError,
    ProfileResult,
    RefreshResult,
    TokenPair,
    TrackPoint,
    UserProfile,
)
from walkdog_auth.infrastructure.secure_store import InMemorySecureStore

NOW = 1_700_000_000.0


def _segment(obj: dict[str, Any]) -> str:
    return base64.urlsafe_b64encode(json.dumps(obj).encode()).rstrip(b"=").decode()


def make_token(exp: float | None = None, **claims: Any) -> str:
    payload: dict[str, Any] = {"sub": "42", **claims}
    if exp is not None:
        payload["exp"] = int(exp)
    return f"{_segment({'alg': 'HS256', 'typ': 'JWT'})}.{_segment(payload)}.signature"


ALICE = UserProfile(userId=1, username="alice", email="alice@example.com")


class ScriptedAuthBackend:
    """AuthBackend fake: results are queued per operation, calls are recorded."""

    def __init__(self) -> None:
        self.login_outcome: TokenPair | Exception = TokenPair(
            make_token(NOW + 3600), "refresh-1"
        )
        self.register_error: Exception | None = None
        self.refresh_results: deque[RefreshResult] = deque()
        self.profile_results: deque[ProfileResult] = deque()
        self.refresh_gate: asyncio.Event | None = None
        self.calls: list[tuple[str, str]] = []

    async def login(self, identifier: str, secret: str) -> TokenPair:
        self.calls.append(("login", identifier))
        if isinstance(self.login_outcome, Exception):
            raise self.login_outcome
        return self.login_outcome

    async def register(self, username: str, email: str, secret: str) -> None:
        self.calls.append(("register", email))
        if self.register_error is not None:
            raise self.register_error

    async def refresh(self, refresh_token: str) -> RefreshResult:
        self.calls.append(("refresh", refresh_token))
        if self.refresh_gate is not None:
            await self.refresh_gate.wait()
        if self.refresh_results:
            return self.refresh_results.popleft()
        return RefreshResult.token_invalid("HTTP 401")

    async def fetch_profile(self, access_token: str) -> ProfileResult:
        self.calls.append(("fetch_profile", access_token))
        if self.profile_results:
            return self.profile_results.popleft()
        return ProfileResult.success(ALICE)

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)


class RecordingWalkBackend:
    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.fail_on: dict[str, Exception] = {}
        self.walk_id = "walk-77"

    def _maybe_fail(self, operation: str) -> None:
        error = self.fail_on.get(operation)
        if error is not None:
            raise error

    async def create_walk(self, access_token: str, payload: dict[str, Any]) -> str:
        self.calls.append(("create_walk", payload))
        self._maybe_fail("create_walk")
        return self.walk_id

    async def upload_track(
        self, access_token: str, walk_id: str, coordinates: Sequence[TrackPoint]
    ) -> None:
        self.calls.append(("upload_track", (walk_id, len(coordinates))))
        self._maybe_fail("upload_track")

    async def stop_walk(
        self, access_token: str, walk_id: str, *, duration: float, distance: float
    ) -> None:
        self.calls.append(("stop_walk", (walk_id, duration, distance)))
        self._maybe_fail("stop_walk")

    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]


def server_error(operation: str, status: int = 500) -> ApiResponseError:
    return ApiResponseError(status, operation=operation)


@pytest.fixture()
def clock() -> Callable[[], float]:
    return lambda: NOW


@pytest.fixture()
def store() -> InMemorySecureStore:
    return InMemorySecureStore()


@pytest.fixture()
def backend() -> ScriptedAuthBackend:
    return ScriptedAuthBackend()


@pytest.fixture()
def walks() -> RecordingWalkBackend:
    return RecordingWalkBackend()
