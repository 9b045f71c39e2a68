from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from conftest import ALICE, NOW, ScriptedAuthBackend, make_token
from walkdog_auth.application.session_manager import SessionManager, SessionSnapshot
from walkdog_auth.domain.session import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    USER_KEY,
    CredentialError,
    FailureKind,
    FetchStatus,
    NetworkError,
    ProfileResult,
    RefreshResult,
    TokenPair,
    UserProfile,
)
from walkdog_auth.infrastructure.secure_store import InMemorySecureStore
from walkdog_auth.shared.config import SessionConfig

BOB = UserProfile(userId=2, username="bob", email="bob@example.com")


def _manager(
    store: InMemorySecureStore,
    backend: ScriptedAuthBackend,
    clock: Callable[[], float],
    **config: object,
) -> SessionManager:
    return SessionManager(store, backend, SessionConfig(**config), clock=clock)


async def _seed(
    store: InMemorySecureStore,
    access_token: str,
    refresh_token: str | None = None,
    user: UserProfile | None = ALICE,
) -> None:
    await store.set(ACCESS_TOKEN_KEY, access_token)
    if refresh_token:
        await store.set(REFRESH_TOKEN_KEY, refresh_token)
    if user is not None:
        await store.set(USER_KEY, user.to_storage())


# --- restore ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_restore_without_token_leaves_session_empty(store, backend, clock) -> None:
    manager = _manager(store, backend, clock)

    await manager.restore()

    assert not manager.is_authenticated
    assert not manager.is_loading
    assert backend.calls == []


@pytest.mark.asyncio
async def test_restore_fresh_token_adopts_then_revalidates_in_background(
    store, backend, clock
) -> None:
    token = make_token(NOW + 3600)
    await _seed(store, token, "refresh-1")
    backend.profile_results.append(ProfileResult.success(BOB))
    manager = _manager(store, backend, clock)

    await manager.restore()

    assert manager.is_authenticated
    assert manager.access_token == token

    await manager.aclose()

    assert backend.count("refresh") == 0
    assert manager.user == BOB
    assert UserProfile.from_storage(await store.get(USER_KEY)) == BOB


@pytest.mark.asyncio
async def test_background_validation_failure_keeps_session(store, backend, clock) -> None:
    await _seed(store, make_token(NOW + 3600))
    backend.profile_results.append(ProfileResult.token_invalid("HTTP 401"))
    manager = _manager(store, backend, clock)

    await manager.restore()
    await manager.aclose()

    assert manager.is_authenticated
    assert manager.user == ALICE


@pytest.mark.asyncio
async def test_restore_token_without_stored_profile_fetches_it(store, backend, clock) -> None:
    await _seed(store, make_token(NOW + 3600), user=None)
    manager = _manager(store, backend, clock)

    await manager.restore()

    assert manager.is_authenticated
    assert manager.user == ALICE
    assert await store.get(USER_KEY) is not None


@pytest.mark.asyncio
async def test_restore_token_without_profile_offline_stays_signed_out_but_keeps_keys(
    store, backend, clock
) -> None:
    token = make_token(NOW + 3600)
    await _seed(store, token, user=None)
    backend.profile_results.append(ProfileResult.network_error())
    manager = _manager(store, backend, clock)

    await manager.restore()

    assert not manager.is_authenticated
    assert await store.get(ACCESS_TOKEN_KEY) == token


@pytest.mark.asyncio
async def test_restore_expiring_token_refreshes(store, backend, clock) -> None:
    await _seed(store, make_token(NOW + 60), "refresh-1")
    new_token = make_token(NOW + 3600)
    backend.refresh_results.append(RefreshResult.success(TokenPair(new_token, "refresh-2")))
    manager = _manager(store, backend, clock)

    await manager.restore()

    assert manager.is_authenticated
    assert manager.access_token == new_token
    assert manager.refresh_token == "refresh-2"
    assert await store.get(ACCESS_TOKEN_KEY) == new_token
    assert await store.get(REFRESH_TOKEN_KEY) == "refresh-2"
    assert ("fetch_profile", new_token) in backend.calls


@pytest.mark.asyncio
async def test_restore_keeps_refresh_token_when_server_does_not_rotate(
    store, backend, clock
) -> None:
    await _seed(store, make_token(NOW + 60), "refresh-1")
    backend.refresh_results.append(RefreshResult.success(TokenPair(make_token(NOW + 3600))))
    manager = _manager(store, backend, clock)

    await manager.restore()

    assert manager.refresh_token == "refresh-1"
    assert await store.get(REFRESH_TOKEN_KEY) == "refresh-1"


@pytest.mark.asyncio
async def test_restore_offline_with_unexpired_token_adopts_stale_session(
    store, backend, clock
) -> None:
    stale = make_token(NOW + 60)
    await _seed(store, stale, "refresh-1")
    backend.refresh_results.append(RefreshResult.network_error("ConnectError"))
    manager = _manager(store, backend, clock)

    await manager.restore()

    assert manager.is_authenticated
    assert manager.access_token == stale
    assert manager.user == ALICE


@pytest.mark.asyncio
async def test_restore_rejected_refresh_destroys_session(store, backend, clock) -> None:
    await _seed(store, make_token(NOW + 60), "refresh-1")
    backend.refresh_results.append(RefreshResult.token_invalid("HTTP 401"))
    manager = _manager(store, backend, clock)

    await manager.restore()

    assert not manager.is_authenticated
    assert store.snapshot() == {}


@pytest.mark.asyncio
async def test_restore_offline_with_expired_token_destroys_session(
    store, backend, clock
) -> None:
    await _seed(store, make_token(NOW - 10), "refresh-1")
    backend.refresh_results.append(RefreshResult.network_error())
    manager = _manager(store, backend, clock)

    await manager.restore()

    assert not manager.is_authenticated
    assert store.snapshot() == {}


@pytest.mark.asyncio
async def test_restore_without_refresh_token_validates_profile_directly(
    store, backend, clock
) -> None:
    await _seed(store, make_token(NOW + 60))
    manager = _manager(store, backend, clock)

    await manager.restore()

    assert manager.is_authenticated
    assert backend.count("refresh") == 0
    assert backend.count("fetch_profile") == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "result, authenticated",
    [
        (ProfileResult.network_error(), True),
        (ProfileResult.token_invalid("HTTP 401"), False),
        (ProfileResult.token_invalid("HTTP 403"), False),
    ],
)
async def test_restore_without_refresh_token_offline_tolerance(
    store, backend, clock, result: ProfileResult, authenticated: bool
) -> None:
    await _seed(store, make_token(NOW + 60))
    backend.profile_results.append(result)
    manager = _manager(store, backend, clock)

    await manager.restore()

    assert manager.is_authenticated is authenticated


@pytest.mark.asyncio
async def test_restore_malformed_token_without_refresh_is_validated_and_destroyed(
    store, backend, clock
) -> None:
    await _seed(store, "garbage")
    backend.profile_results.append(ProfileResult.network_error())
    manager = _manager(store, backend, clock)

    await manager.restore()

    assert not manager.is_authenticated
    assert store.snapshot() == {}


@pytest.mark.asyncio
async def test_restore_unexpected_error_destroys_session(store, clock) -> None:
    class ExplodingBackend(ScriptedAuthBackend):
        async def fetch_profile(self, access_token: str) -> ProfileResult:
            raise RuntimeError("boom")

    await _seed(store, make_token(NOW + 60))
    manager = _manager(store, ExplodingBackend(), clock)

    await manager.restore()

    assert not manager.is_authenticated
    assert not manager.is_loading
    assert store.snapshot() == {}


# --- login / register / logout --------------------------------------------


@pytest.mark.asyncio
async def test_login_persists_tokens_and_profile(store, backend, clock) -> None:
    manager = _manager(store, backend, clock)

    assert await manager.login("alice@example.com", "password1") is True

    assert manager.is_authenticated
    assert manager.user == ALICE
    assert manager.last_error is None
    assert await store.get(REFRESH_TOKEN_KEY) == "refresh-1"
    assert UserProfile.from_storage(await store.get(USER_KEY)) == ALICE


@pytest.mark.asyncio
async def test_login_without_refresh_token_drops_previous_account_keys(
    store, backend, clock
) -> None:
    await _seed(store, make_token(NOW + 60), "old-account-refresh", user=BOB)
    token = make_token(NOW + 3600)
    backend.login_outcome = TokenPair(token, None)
    manager = _manager(store, backend, clock)

    assert await manager.login("alice@example.com", "password1") is True

    assert manager.refresh_token is None
    assert await store.get(REFRESH_TOKEN_KEY) is None
    assert await store.get(ACCESS_TOKEN_KEY) == token
    assert UserProfile.from_storage(await store.get(USER_KEY)) == ALICE


@pytest.mark.asyncio
async def test_login_with_bad_credentials_reports_server_message(
    store, backend, clock
) -> None:
    backend.login_outcome = CredentialError("Wrong email or password", status_code=401)
    manager = _manager(store, backend, clock)

    assert await manager.login("alice@example.com", "password1") is False

    assert not manager.is_authenticated
    assert manager.last_error is not None
    assert manager.last_error.kind is FailureKind.CREDENTIALS
    assert manager.last_error.title == "Login Failed"
    assert manager.last_error.message == "Wrong email or password"
    assert store.snapshot() == {}


@pytest.mark.asyncio
async def test_login_without_connectivity_reports_connection_error(
    store, backend, clock
) -> None:
    backend.login_outcome = NetworkError(operation="login")
    manager = _manager(store, backend, clock)

    assert await manager.login("alice@example.com", "password1") is False

    assert manager.last_error is not None
    assert manager.last_error.kind is FailureKind.NETWORK
    assert manager.last_error.title == "Connection Error"


@pytest.mark.asyncio
async def test_login_unexpected_error_does_not_raise(store, backend, clock) -> None:
    backend.login_outcome = RuntimeError("kaput")
    manager = _manager(store, backend, clock)

    assert await manager.login("alice@example.com", "password1") is False

    assert manager.last_error is not None
    assert manager.last_error.kind is FailureKind.UNEXPECTED
    assert manager.last_error.message == "An unexpected error occurred"


@pytest.mark.asyncio
async def test_login_rolls_back_when_profile_fetch_fails(store, backend, clock) -> None:
    backend.profile_results.append(ProfileResult.failed("HTTP 500"))
    manager = _manager(store, backend, clock)

    assert await manager.login("alice@example.com", "password1") is False

    assert not manager.is_authenticated
    assert store.snapshot() == {}


@pytest.mark.asyncio
async def test_register_then_signs_in(store, backend, clock) -> None:
    manager = _manager(store, backend, clock)

    assert await manager.register("alice", "alice@example.com", "password1") is True

    assert [name for name, _ in backend.calls[:2]] == ["register", "login"]
    assert manager.is_authenticated


@pytest.mark.asyncio
async def test_register_rejected(store, backend, clock) -> None:
    backend.register_error = CredentialError("Registration failed", status_code=409)
    manager = _manager(store, backend, clock)

    assert await manager.register("alice", "alice@example.com", "password1") is False

    assert manager.last_error is not None
    assert manager.last_error.title == "Registration Failed"
    assert backend.count("login") == 0


@pytest.mark.asyncio
async def test_register_success_with_login_failure_is_failure(store, backend, clock) -> None:
    backend.login_outcome = CredentialError("Invalid credentials", status_code=401)
    manager = _manager(store, backend, clock)

    assert await manager.register("alice", "alice@example.com", "password1") is False
    assert not manager.is_authenticated


@pytest.mark.asyncio
async def test_logout_is_idempotent_and_swallows_store_errors(backend, clock) -> None:
    class FlakyStore(InMemorySecureStore):
        async def delete(self, key: str) -> None:
            raise OSError("keychain unavailable")

    store = FlakyStore()
    manager = _manager(store, backend, clock)
    await manager.login("alice@example.com", "password1")

    await manager.logout()
    await manager.logout()

    assert not manager.is_authenticated
    assert manager.access_token is None


# --- renewal ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_refresh_tokens_rotates_session(store, backend, clock) -> None:
    manager = _manager(store, backend, clock)
    await manager.login("alice@example.com", "password1")
    new_token = make_token(NOW + 7200)
    backend.refresh_results.append(RefreshResult.success(TokenPair(new_token, None)))

    result = await manager.refresh_tokens()

    assert result.ok
    assert manager.access_token == new_token
    assert manager.refresh_token == "refresh-1"
    assert await store.get(ACCESS_TOKEN_KEY) == new_token


@pytest.mark.asyncio
async def test_refresh_without_refresh_token_is_invalid(store, backend, clock) -> None:
    backend.login_outcome = TokenPair(make_token(NOW + 3600), None)
    manager = _manager(store, backend, clock)
    await manager.login("alice@example.com", "password1")

    result = await manager.refresh_tokens()

    assert result.status is FetchStatus.TOKEN_INVALID
    assert backend.count("refresh") == 0


@pytest.mark.asyncio
async def test_concurrent_refreshes_share_one_request(store, backend, clock) -> None:
    manager = _manager(store, backend, clock)
    await manager.login("alice@example.com", "password1")
    backend.refresh_gate = asyncio.Event()
    backend.refresh_results.append(
        RefreshResult.success(TokenPair(make_token(NOW + 7200), "refresh-2"))
    )

    first = asyncio.create_task(manager.refresh_tokens())
    second = asyncio.create_task(manager.refresh_tokens())
    await asyncio.sleep(0)
    backend.refresh_gate.set()
    results = await asyncio.gather(first, second)

    assert backend.count("refresh") == 1
    assert all(result.ok for result in results)


@pytest.mark.asyncio
async def test_concurrent_refreshes_without_deduplication(store, backend, clock) -> None:
    manager = _manager(store, backend, clock, DEDUPLICATE_REFRESH=False)
    await manager.login("alice@example.com", "password1")
    for version in (2, 3):
        backend.refresh_results.append(
            RefreshResult.success(TokenPair(make_token(NOW + 7200), f"refresh-{version}"))
        )

    await asyncio.gather(manager.refresh_tokens(), manager.refresh_tokens())

    assert backend.count("refresh") == 2


@pytest.mark.asyncio
async def test_refresh_result_after_logout_is_dropped(store, backend, clock) -> None:
    manager = _manager(store, backend, clock)
    await manager.login("alice@example.com", "password1")
    backend.refresh_gate = asyncio.Event()
    backend.refresh_results.append(
        RefreshResult.success(TokenPair(make_token(NOW + 7200), "refresh-2"))
    )

    pending = asyncio.create_task(manager.refresh_tokens())
    await asyncio.sleep(0)
    await manager.logout()
    backend.refresh_gate.set()
    result = await pending

    assert not result.ok
    assert store.snapshot() == {}


# --- observable state --------------------------------------------------------


@pytest.mark.asyncio
async def test_subscribers_observe_state_changes(store, backend, clock) -> None:
    manager = _manager(store, backend, clock)
    seen: list[SessionSnapshot] = []
    unsubscribe = manager.subscribe(seen.append)

    await manager.login("alice@example.com", "password1")
    await manager.logout()
    unsubscribe()
    await manager.login("alice@example.com", "password1")

    assert [snapshot.is_authenticated for snapshot in seen] == [True, False]
    assert seen[0].user == ALICE
