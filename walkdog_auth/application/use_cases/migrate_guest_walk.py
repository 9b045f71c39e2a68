# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from walkdog_auth.application.authenticated_call import AuthenticatedCall
from walkdog_auth.application.interfaces import WalkBackend
from walkdog_auth.application.session_manager import SessionManager
from walkdog_auth.domain.session import GuestWalkData
from walkdog_auth.shared.logging import logger


class GuestMigrationWorkflow:
    """Attach a walk recorded in guest mode to the signed-in account.

    Step 1 (create) is the only one that must succeed. Track upload and
    finalization are best effort: their failures are logged and the walk is
    still reported as migrated. Never raises.
    """

    def __init__(
        self,
        *,
        session: SessionManager,
        walks: WalkBackend,
        call: AuthenticatedCall | None = None,
    ) -> None:
        self._session = session
        self._walks = walks
        self._call = call or AuthenticatedCall(session)

    async def execute(self, walk: GuestWalkData) -> bool:
        if not self._session.is_authenticated:
            logger.warning("migration: skipped, no authenticated session")
            return False

        payload = walk.create_payload()
        try:
            walk_id = await self._call(lambda token: self._walks.create_walk(token, payload))
        except Exception as exc:
            logger.error(f"migration: create walk failed error={exc!r}")
            return False

        logger.info(f"migration: created walk_id={walk_id} guest_id={walk.id}")

        points = list(walk.route_coordinates)
        if points:
            try:
                await self._call(
                    lambda token: self._walks.upload_track(token, walk_id, points)
                )
            except Exception as exc:
                logger.warning(
                    f"migration: track upload failed walk_id={walk_id} points={len(points)} "
                    f"error={exc!r}"
                )

        try:
            await self._call(
                lambda token: self._walks.stop_walk(
                    token, walk_id, duration=walk.duration, distance=walk.distance
                )
            )
        except Exception as exc:
            logger.warning(f"migration: finalize failed walk_id={walk_id} error={exc!r}")

        return True


__all__ = ["GuestMigrationWorkflow"]
