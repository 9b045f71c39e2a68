# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Owner of the authenticated session: tokens, profile and their lifecycle."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from walkdog_auth.application.interfaces import AuthBackend, SecureKeyValueStore
from walkdog_auth.application.services import token_clock
from walkdog_auth.domain.session import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    SESSION_KEYS,
    USER_KEY,
    AuthFailure,
    CredentialError,
    FailureKind,
    FetchStatus,
    NetworkError,
    ProfileResult,
    RefreshResult,
    Session,
    TokenPair,
    UserProfile,
)
from walkdog_auth.shared.config import SessionConfig
from walkdog_auth.shared.logging import logger

CONNECTION_ERROR_TITLE = "Connection Error"
CONNECTION_ERROR_MESSAGE = "Unable to connect to server. Please check your internet connection."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    is_loading: bool
    is_authenticated: bool
    user: UserProfile | None
    access_token: str | None


SessionListener = Callable[[SessionSnapshot], None]


class SessionManager:
    """Single owner of the :class:`Session`.

    ``restore`` is called once at start-up, ``logout`` tears everything down.
    Other components read state through the properties and observe changes
    with :meth:`subscribe`; nothing outside this class mutates the session.
    """

    def __init__(
        self,
        store: SecureKeyValueStore,
        backend: AuthBackend,
        config: SessionConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._backend = backend
        self._config = config or SessionConfig()  # type: ignore[call-arg]
        self._clock = clock

        self._session = Session()
        self._is_loading = True
        self._listeners: list[SessionListener] = []
        self._refresh_task: asyncio.Task[RefreshResult] | None = None
        self._background: set[asyncio.Task[None]] = set()
        # bumped whenever the session is destroyed, so late refresh results are dropped
        self._generation = 0

        self.last_error: AuthFailure | None = None

    # --- observable state ---------------------------------------------------

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def user(self) -> UserProfile | None:
        return self._session.user

    @property
    def access_token(self) -> str | None:
        return self._session.access_token

    @property
    def refresh_token(self) -> str | None:
        return self._session.refresh_token

    @property
    def buffer_seconds(self) -> int:
        return self._config.refresh_buffer_seconds

    def now(self) -> float:
        return self._clock()

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            is_loading=self._is_loading,
            is_authenticated=self._session.is_authenticated,
            user=self._session.user,
            access_token=self._session.access_token,
        )

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("session: listener raised")

    # --- lifecycle ----------------------------------------------------------

    async def restore(self) -> None:
        self._is_loading = True
        self._notify()
        try:
            await self._restore()
        except Exception:
            logger.exception("session: restore failed, destroying stored session")
            await self._destroy("restore error")
        finally:
            self._is_loading = False
            self._notify()

    async def _restore(self) -> None:
        access_token = await self._store.get(ACCESS_TOKEN_KEY)
        if not access_token:
            logger.info("session: no stored session")
            return

        refresh_token = await self._store.get(REFRESH_TOKEN_KEY)
        cached_user = UserProfile.from_storage(await self._store.get(USER_KEY))
        stored = TokenPair(access_token=access_token, refresh_token=refresh_token or None)
        remaining = token_clock.time_remaining(access_token, now=self._clock())
        in_grace = remaining is not None and remaining > 0

        logger.debug(
            f"session: restoring remaining={remaining} "
            f"has_refresh={bool(refresh_token)} has_user={cached_user is not None}"
        )

        if remaining is not None and remaining > self.buffer_seconds:
            if cached_user is None:
                result = await self._backend.fetch_profile(access_token)
                await self._settle_profile(stored, result, cached_user=None, in_grace=True)
                return
            self._adopt(stored, cached_user)
            self._spawn(self._revalidate_profile(access_token))
            return

        if stored.refresh_token:
            refreshed = await self._renew(stored.refresh_token)
            if refreshed.ok and refreshed.tokens is not None:
                result = await self._backend.fetch_profile(refreshed.tokens.access_token)
                # the refreshed token is fresh, so a connectivity gap keeps it alive
                await self._settle_profile(
                    refreshed.tokens, result, cached_user=cached_user, in_grace=True
                )
                return
            if refreshed.status is FetchStatus.NETWORK_ERROR and in_grace:
                self._adopt_offline(stored, cached_user)
                return
            logger.info(f"session: refresh at restore failed status={refreshed.status.value}")
            await self._destroy("refresh failed")
            return

        result = await self._backend.fetch_profile(access_token)
        await self._settle_profile(stored, result, cached_user=cached_user, in_grace=in_grace)

    async def _settle_profile(
        self,
        tokens: TokenPair,
        result: ProfileResult,
        *,
        cached_user: UserProfile | None,
        in_grace: bool,
    ) -> None:
        if result.ok and result.profile is not None:
            await self._store.set(USER_KEY, result.profile.to_storage())
            self._adopt(tokens, result.profile)
            return
        if result.status is FetchStatus.NETWORK_ERROR and in_grace:
            self._adopt_offline(tokens, cached_user)
            return
        logger.info(f"session: profile validation failed status={result.status.value}")
        await self._destroy("profile rejected")

    def _adopt_offline(self, tokens: TokenPair, cached_user: UserProfile | None) -> None:
        if cached_user is None:
            logger.warning(
                "session: offline with no cached profile, staying signed out and keeping stored keys"
            )
            return
        logger.warning("session: offline, adopting stored session without validation")
        self._adopt(tokens, cached_user)

    async def _revalidate_profile(self, access_token: str) -> None:
        try:
            result = await self._backend.fetch_profile(access_token)
        except Exception as exc:
            logger.debug(f"session: background validation error ignored error={exc!r}")
            return
        if not result.ok or result.profile is None:
            logger.debug(f"session: background validation ignored status={result.status.value}")
            return
        if self._session.access_token != access_token:
            return
        self._session.user = result.profile
        await self._store.set(USER_KEY, result.profile.to_storage())
        logger.debug("session: background validation refreshed profile")
        self._notify()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def aclose(self) -> None:
        pending: list[asyncio.Task[Any]] = list(self._background)
        if self._refresh_task is not None and not self._refresh_task.done():
            pending.append(self._refresh_task)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # --- login / register / logout -----------------------------------------

    async def login(self, identifier: str, secret: str) -> bool:
        return await self._sign_in(identifier, secret, failure_title="Login Failed")

    async def _sign_in(self, identifier: str, secret: str, *, failure_title: str) -> bool:
        self.last_error = None
        try:
            tokens = await self._backend.login(identifier, secret)
            # keys left by an earlier account must not mix with the new grant
            await self._delete_keys()
            await self._persist_tokens(tokens)

            result = await self._backend.fetch_profile(tokens.access_token)
            if not result.ok or result.profile is None:
                logger.warning(
                    f"session: profile unavailable after login status={result.status.value}"
                )
                await self._delete_keys()
                if result.status is FetchStatus.NETWORK_ERROR:
                    self._fail(
                        FailureKind.NETWORK, CONNECTION_ERROR_TITLE, CONNECTION_ERROR_MESSAGE
                    )
                else:
                    self._fail(FailureKind.UNEXPECTED, failure_title, UNEXPECTED_ERROR_MESSAGE)
                return False

            await self._store.set(USER_KEY, result.profile.to_storage())
        except CredentialError as exc:
            self._fail(FailureKind.CREDENTIALS, failure_title, exc.message)
            return False
        except NetworkError:
            self._fail(FailureKind.NETWORK, CONNECTION_ERROR_TITLE, CONNECTION_ERROR_MESSAGE)
            return False
        except Exception:
            logger.exception("session: login failed unexpectedly")
            self._fail(FailureKind.UNEXPECTED, failure_title, UNEXPECTED_ERROR_MESSAGE)
            return False

        self._adopt(tokens, result.profile)
        return True

    async def register(self, name: str, email: str, secret: str) -> bool:
        self.last_error = None
        try:
            await self._backend.register(name, email, secret)
        except CredentialError as exc:
            self._fail(FailureKind.CREDENTIALS, "Registration Failed", exc.message)
            return False
        except NetworkError:
            self._fail(FailureKind.NETWORK, CONNECTION_ERROR_TITLE, CONNECTION_ERROR_MESSAGE)
            return False
        except Exception:
            logger.exception("session: registration failed unexpectedly")
            self._fail(FailureKind.UNEXPECTED, "Registration Failed", UNEXPECTED_ERROR_MESSAGE)
            return False

        logger.info("session: account created, signing in")
        return await self._sign_in(email, secret, failure_title="Login Failed")

    def _fail(self, kind: FailureKind, title: str, message: str) -> None:
        self.last_error = AuthFailure(kind=kind, title=title, message=message)
        logger.info(f"session: auth attempt failed kind={kind.value} message={message}")

    async def logout(self) -> None:
        await self._destroy("logout")

    async def _destroy(self, reason: str) -> None:
        self._generation += 1
        had_session = self._session.access_token is not None
        await self._delete_keys()
        self._session.clear()
        if had_session:
            logger.info(f"session: destroyed reason={reason}")
        self._notify()

    async def _delete_keys(self) -> None:
        for key in SESSION_KEYS:
            try:
                await self._store.delete(key)
            except Exception as exc:
                logger.warning(f"session: could not delete key={key} error={exc!r}")

    async def _persist_tokens(self, tokens: TokenPair) -> None:
        await self._store.set(ACCESS_TOKEN_KEY, tokens.access_token)
        if tokens.refresh_token:
            await self._store.set(REFRESH_TOKEN_KEY, tokens.refresh_token)

    def _adopt(self, tokens: TokenPair, user: UserProfile) -> None:
        self._session.adopt(tokens, user)
        logger.info(f"session: authenticated user={user.username}")
        self._notify()

    # --- renewal ------------------------------------------------------------

    async def refresh_tokens(self) -> RefreshResult:
        """Renew the access token using the current refresh token.

        Never destroys the session itself: a ``TOKEN_INVALID`` result tells the
        caller to log out, ``NETWORK_ERROR`` means no response was received.
        """
        refresh_token = self._session.refresh_token
        if not refresh_token:
            return RefreshResult.token_invalid("no refresh token")
        return await self._renew(refresh_token)

    async def _renew(self, refresh_token: str) -> RefreshResult:
        generation = self._generation
        if not self._config.deduplicate_refresh:
            return await self._run_refresh(refresh_token, generation)

        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.ensure_future(self._run_refresh(refresh_token, generation))
            self._refresh_task = task
        else:
            logger.debug("session: joining in-flight refresh")
        return await asyncio.shield(task)

    async def _run_refresh(self, refresh_token: str, generation: int) -> RefreshResult:
        try:
            result = await self._backend.refresh(refresh_token)
        except Exception as exc:
            logger.exception("session: refresh raised")
            return RefreshResult.failed(repr(exc))

        if not result.ok or result.tokens is None:
            logger.info(f"session: refresh failed status={result.status.value}")
            return result

        if generation != self._generation:
            logger.debug("session: dropping refresh result for a destroyed session")
            return RefreshResult.token_invalid("session ended during refresh")

        tokens = result.tokens
        if not tokens.refresh_token:
            tokens = TokenPair(access_token=tokens.access_token, refresh_token=refresh_token)

        await self._persist_tokens(tokens)
        if self._session.access_token is not None:
            self._session.rotate(tokens)
            self._notify()
        logger.info("session: tokens refreshed")
        return RefreshResult.success(tokens)


__all__ = ["SessionListener", "SessionManager", "SessionSnapshot"]
