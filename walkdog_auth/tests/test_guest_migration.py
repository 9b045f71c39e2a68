from __future__ import annotations

import pytest
import pytest_asyncio

from conftest import NOW, RecordingWalkBackend, make_token, server_error
from walkdog_auth.application.session_manager import SessionManager
from walkdog_auth.application.use_cases.migrate_guest_walk import GuestMigrationWorkflow
from walkdog_auth.domain.session import (
    GuestWalkData,
    NetworkError,
    RefreshResult,
    TokenPair,
    TrackPoint,
)
from walkdog_auth.shared.config import SessionConfig


def _walk(points: int = 3, **overrides: object) -> GuestWalkData:
    data: dict[str, object] = {
        "id": "guest_1700000000000_abcdefghi",
        "duration": 1800,
        "distance": 2.4,
        "start_latitude": 52.52,
        "start_longitude": 13.40,
        "route_coordinates": [
            TrackPoint(latitude=52.52 + i / 1000, longitude=13.40, timestamp=NOW + i)
            for i in range(points)
        ],
    }
    data.update(overrides)
    return GuestWalkData(**data)


@pytest_asyncio.fixture()
async def session(store, backend, clock) -> SessionManager:
    manager = SessionManager(store, backend, SessionConfig(), clock=clock)
    await manager.login("alice@example.com", "password1")
    return manager


@pytest.mark.asyncio
async def test_all_steps_succeed(session, walks: RecordingWalkBackend) -> None:
    workflow = GuestMigrationWorkflow(session=session, walks=walks)

    assert await workflow.execute(_walk(title="Park loop", notes="muddy")) is True

    assert walks.operations() == ["create_walk", "upload_track", "stop_walk"]
    assert walks.calls[0][1] == {
        "title": "Park loop",
        "description": "muddy",
        "dogIds": [],
        "startLatitude": 52.52,
        "startLongitude": 13.40,
    }
    assert walks.calls[1][1] == ("walk-77", 3)
    assert walks.calls[2][1] == ("walk-77", 1800, 2.4)


@pytest.mark.asyncio
async def test_default_title_and_description(session, walks: RecordingWalkBackend) -> None:
    workflow = GuestMigrationWorkflow(session=session, walks=walks)

    await workflow.execute(_walk())

    payload = walks.calls[0][1]
    assert payload["title"] == "Guest Walk"
    assert payload["description"] == ""


@pytest.mark.asyncio
async def test_track_upload_failure_is_partial_success(
    session, walks: RecordingWalkBackend
) -> None:
    walks.fail_on["upload_track"] = server_error("upload_track")
    workflow = GuestMigrationWorkflow(session=session, walks=walks)

    assert await workflow.execute(_walk()) is True

    assert walks.operations() == ["create_walk", "upload_track", "stop_walk"]


@pytest.mark.asyncio
async def test_finalize_failure_is_partial_success(session, walks: RecordingWalkBackend) -> None:
    walks.fail_on["stop_walk"] = NetworkError(operation="stop_walk")
    workflow = GuestMigrationWorkflow(session=session, walks=walks)

    assert await workflow.execute(_walk()) is True


@pytest.mark.asyncio
async def test_create_failure_aborts_migration(session, walks: RecordingWalkBackend) -> None:
    walks.fail_on["create_walk"] = server_error("create_walk")
    workflow = GuestMigrationWorkflow(session=session, walks=walks)

    assert await workflow.execute(_walk()) is False

    assert walks.operations() == ["create_walk"]


@pytest.mark.asyncio
async def test_walk_without_route_skips_track_upload(
    session, walks: RecordingWalkBackend
) -> None:
    workflow = GuestMigrationWorkflow(session=session, walks=walks)

    assert await workflow.execute(_walk(points=0)) is True

    assert walks.operations() == ["create_walk", "stop_walk"]


@pytest.mark.asyncio
async def test_steps_recover_from_expired_token(
    session, backend, walks: RecordingWalkBackend
) -> None:
    backend.refresh_results.append(
        RefreshResult.success(TokenPair(make_token(NOW + 7200), "refresh-2"))
    )
    tokens_seen: list[str] = []

    async def rejects_first_token(access_token, payload):
        tokens_seen.append(access_token)
        if len(tokens_seen) == 1:
            raise server_error("create_walk", 401)
        return walks.walk_id

    walks.create_walk = rejects_first_token  # type: ignore[method-assign]
    workflow = GuestMigrationWorkflow(session=session, walks=walks)

    assert await workflow.execute(_walk(points=0)) is True

    assert backend.count("refresh") == 1
    assert tokens_seen[1] == session.access_token
    assert walks.operations() == ["stop_walk"]


@pytest.mark.asyncio
async def test_requires_authenticated_session(store, backend, clock, walks) -> None:
    manager = SessionManager(store, backend, SessionConfig(), clock=clock)
    workflow = GuestMigrationWorkflow(session=manager, walks=walks)

    assert await workflow.execute(_walk()) is False
    assert walks.calls == []
