# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Local buffer for walks recorded before the user has an account."""

from __future__ import annotations

import secrets
import string
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from walkdog_auth.application.interfaces import SecureKeyValueStore
from walkdog_auth.domain.session import Coordinate, GuestUserInfo, GuestWalkData, TrackPoint
from walkdog_auth.shared.errors import DomainError
from walkdog_auth.shared.logging import logger

PENDING_GUEST_WALK_KEY = "pending_guest_walk"
GUEST_USER_INFO_KEY = "guest_user_info"

_ID_ALPHABET = string.ascii_lowercase + string.digits


class NoActiveWalkError(DomainError):
    default_code = "no_active_walk"

    def __init__(self) -> None:
        super().__init__("No active walk to end")


def generate_walk_id(now: float | None = None) -> str:
    millis = int((time.time() if now is None else now) * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"guest_{millis}_{suffix}"


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=UTC).isoformat().replace("+00:00", "Z")


@dataclass(slots=True)
class ActiveGuestWalk:
    id: str
    started_at: str
    start_latitude: float
    start_longitude: float
    title: str | None = None
    notes: str | None = None
    guest_user_info: GuestUserInfo | None = None


class GuestWalkBuffer:
    def __init__(
        self,
        store: SecureKeyValueStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._clock = clock
        self._active: ActiveGuestWalk | None = None
        self._pending: GuestWalkData | None = None
        self._guest_user_info: GuestUserInfo | None = None

    @property
    def active_walk(self) -> ActiveGuestWalk | None:
        return self._active

    @property
    def pending_walk(self) -> GuestWalkData | None:
        return self._pending

    @property
    def has_pending_walk(self) -> bool:
        return self._pending is not None

    @property
    def guest_user_info(self) -> GuestUserInfo | None:
        return self._guest_user_info

    async def load(self) -> None:
        self._pending = GuestWalkData.from_storage(await self._store.get(PENDING_GUEST_WALK_KEY))
        self._guest_user_info = GuestUserInfo.from_storage(
            await self._store.get(GUEST_USER_INFO_KEY)
        )
        logger.debug(
            f"guest_buffer: loaded pending={self._pending is not None} "
            f"user_info={self._guest_user_info is not None}"
        )

    async def start_walk(
        self,
        start: Coordinate,
        *,
        title: str | None = None,
        notes: str | None = None,
        guest_user_info: GuestUserInfo | None = None,
    ) -> str:
        now = self._clock()
        walk = ActiveGuestWalk(
            id=generate_walk_id(now),
            started_at=_iso(now),
            start_latitude=start.latitude,
            start_longitude=start.longitude,
            title=title,
            notes=notes,
            guest_user_info=guest_user_info,
        )
        self._active = walk
        if guest_user_info is not None and not guest_user_info.is_empty():
            await self.set_guest_user_info(guest_user_info)
        logger.info(f"guest_buffer: walk started id={walk.id}")
        return walk.id

    async def end_walk(
        self, *, duration: float, distance: float, route_coordinates: Sequence[TrackPoint]
    ) -> GuestWalkData:
        active = self._active
        if active is None:
            raise NoActiveWalkError()

        completed = GuestWalkData(
            id=active.id,
            started_at=active.started_at,
            ended_at=_iso(self._clock()),
            duration=duration,
            distance=distance,
            route_coordinates=list(route_coordinates),
            title=active.title,
            notes=active.notes,
            start_latitude=active.start_latitude,
            start_longitude=active.start_longitude,
            guest_user_info=active.guest_user_info,
        )
        await self._store.set(PENDING_GUEST_WALK_KEY, completed.to_storage())
        self._pending = completed
        self._active = None
        logger.info(
            f"guest_buffer: walk completed id={completed.id} points={len(completed.route_coordinates)}"
        )
        return completed

    def cancel_walk(self) -> None:
        self._active = None

    async def update_pending_walk(
        self, *, title: str | None = None, notes: str | None = None
    ) -> None:
        if self._pending is None:
            return
        updates: dict[str, str] = {}
        if title is not None:
            updates["title"] = title
        if notes is not None:
            updates["notes"] = notes
        updated = self._pending.model_copy(update=updates)
        await self._store.set(PENDING_GUEST_WALK_KEY, updated.to_storage())
        self._pending = updated

    async def clear_pending_walk(self) -> None:
        self._pending = None
        await self._store.delete(PENDING_GUEST_WALK_KEY)

    async def get_pending_walk(self) -> GuestWalkData | None:
        return GuestWalkData.from_storage(await self._store.get(PENDING_GUEST_WALK_KEY))

    async def set_guest_user_info(self, info: GuestUserInfo) -> None:
        await self._store.set(GUEST_USER_INFO_KEY, info.to_storage())
        self._guest_user_info = info

    async def clear_guest_user_info(self) -> None:
        self._guest_user_info = None
        await self._store.delete(GUEST_USER_INFO_KEY)


__all__ = [
    "GUEST_USER_INFO_KEY",
    "PENDING_GUEST_WALK_KEY",
    "ActiveGuestWalk",
    "GuestWalkBuffer",
    "NoActiveWalkError",
    "generate_walk_id",
]
