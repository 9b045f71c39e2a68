# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from walkdog_auth.application.services import token_clock
from walkdog_auth.application.session_manager import SessionManager
from walkdog_auth.domain.session import (
    ApiResponseError,
    FetchStatus,
    NotAuthenticatedError,
)
from walkdog_auth.shared.logging import logger

T = TypeVar("T")

AuthorizedRequest = Callable[[str], Awaitable[T]]


def response_status(exc: BaseException) -> int | None:
    if isinstance(exc, ApiResponseError):
        return exc.status_code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


class AuthenticatedCall:
    """Runs one bearer-authenticated request with token upkeep around it.

    Before the request an expiring token is refreshed (best effort). A 401
    answer triggers exactly one refresh and one retry; if that refresh is
    definitively rejected the session is logged out and the original error
    propagates.
    """

    def __init__(self, session: SessionManager) -> None:
        self._session = session

    async def __call__(self, request: AuthorizedRequest[T]) -> T:  # noqa: UP047
        token = await self._preflight()

        try:
            return await request(token)
        except Exception as exc:
            if response_status(exc) != 401 or not self._session.refresh_token:
                raise
            logger.info("authenticated_call: got 401, refreshing once")
            result = await self._session.refresh_tokens()
            if not result.ok or result.tokens is None:
                if result.status is not FetchStatus.NETWORK_ERROR:
                    await self._session.logout()
                raise
            retry_token = result.tokens.access_token

        return await request(retry_token)

    async def _preflight(self) -> str:
        if not self._session.is_authenticated or self._session.access_token is None:
            raise NotAuthenticatedError()

        token = self._session.access_token
        expiring = token_clock.is_expired_or_expiring(
            token, self._session.buffer_seconds, now=self._session.now()
        )
        if expiring and self._session.refresh_token:
            result = await self._session.refresh_tokens()
            if result.ok and result.tokens is not None:
                return result.tokens.access_token
            logger.debug(
                f"authenticated_call: pre-flight refresh failed status={result.status.value}, "
                "using current token"
            )
        return token


__all__ = ["AuthenticatedCall", "AuthorizedRequest", "response_status"]
