# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Transport-level retries for idempotent backend reads."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from walkdog_auth.shared.config import ResilienceConfig
from walkdog_auth.shared.logging import logger

T = TypeVar("T")


async def retry_transport_errors(  # noqa: UP047
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: ResilienceConfig,
    **kwargs: Any,
) -> T:
    """Retry ``func`` when no HTTP response arrived at all.

    HTTP error statuses are answers from the server and are returned to the
    caller untouched. Only use for requests that are safe to repeat.
    """

    retry = AsyncRetrying(
        stop=stop_after_attempt(config.max_retries + 1),
        wait=wait_exponential(multiplier=config.backoff_base, max=config.backoff_cap),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )

    try:
        async for attempt in retry:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.debug(
                        f"resilience: retry attempt={attempt.retry_state.attempt_number} "
                        f"func={getattr(func, '__name__', func)}"
                    )
                return await func(*args, **kwargs)
    except RetryError as exc:
        last_exc = exc.last_attempt.exception()
        if last_exc is None:
            raise RuntimeError("resilience: retry failed without exception") from exc
        raise last_exc from exc
    raise RuntimeError("resilience: reached unexpected branch")


__all__ = ["retry_transport_errors"]
