# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import ClassVar

from walkdog_auth.domain.session import RateLimitedError
from walkdog_auth.shared.config import RateLimitConfig
from walkdog_auth.shared.logging import logger


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class RateLimitState:
    failed_attempts: int = 0
    last_attempt_time: float = 0
    locked_until: float | None = None


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    wait_ms: int = 0
    message: str = ""


@dataclass(frozen=True, slots=True)
class RateLimitInfo:
    failed_attempts: int
    is_locked_out: bool
    remaining_lockout_ms: int


def format_wait_time(wait_ms: float) -> str:
    seconds = math.ceil(wait_ms / 1000)
    if seconds < 60:
        return f"{seconds} second{'' if seconds == 1 else 's'}"
    minutes = math.ceil(seconds / 60)
    return f"{minutes} minute{'' if minutes == 1 else 's'}"


class RateLimiter:
    """Per-action throttle for login/register attempts.

    Failures back off exponentially, and reaching ``max_failed_attempts``
    locks the action for ``lockout_duration_ms``. State lives in memory only
    and is lost on restart.
    """

    LOGIN: ClassVar[str] = "login"
    REGISTER: ClassVar[str] = "register"
    FORGOT_PASSWORD: ClassVar[str] = "forgot_password"

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        self._config = config or RateLimitConfig()  # type: ignore[call-arg]
        self._clock = clock
        self._states: dict[str, RateLimitState] = {}
        self._lock = Lock()

    def _state(self, action: str) -> RateLimitState:
        state = self._states.get(action)
        if state is None:
            state = RateLimitState()
            self._states[action] = state
        return state

    def _cooldown_ms(self, failed_attempts: int) -> float:
        if failed_attempts <= 0:
            return 0
        cooldown = self._config.base_cooldown_ms * 2 ** (failed_attempts - 1)
        return min(cooldown, self._config.max_cooldown_ms)

    def check(self, action: str) -> RateLimitDecision:
        with self._lock:
            state = self._state(action)
            now = self._clock()

            if state.last_attempt_time > 0 and now - state.last_attempt_time >= self._config.reset_after_ms:
                self._states[action] = RateLimitState()
                logger.debug(f"rate_limiter: idle reset action={action}")
                return RateLimitDecision(allowed=True)

            if state.locked_until is not None and now < state.locked_until:
                wait_ms = math.ceil(state.locked_until - now)
                return RateLimitDecision(
                    allowed=False,
                    wait_ms=wait_ms,
                    message=(
                        "Too many failed attempts. "
                        f"Please wait {format_wait_time(wait_ms)} before trying again."
                    ),
                )

            if state.failed_attempts > 0:
                elapsed = now - state.last_attempt_time
                cooldown = self._cooldown_ms(state.failed_attempts)
                if elapsed < cooldown:
                    wait_ms = math.ceil(cooldown - elapsed)
                    return RateLimitDecision(
                        allowed=False,
                        wait_ms=wait_ms,
                        message=f"Please wait {format_wait_time(wait_ms)} before trying again.",
                    )

            return RateLimitDecision(allowed=True)

    def ensure_allowed(self, action: str) -> None:
        decision = self.check(action)
        if not decision.allowed:
            raise RateLimitedError(decision.message, wait_ms=decision.wait_ms)

    def record_failed_attempt(self, action: str) -> None:
        with self._lock:
            state = self._state(action)
            now = self._clock()

            if state.last_attempt_time > 0 and now - state.last_attempt_time >= self._config.reset_after_ms:
                state = RateLimitState()
                self._states[action] = state

            state.failed_attempts += 1
            state.last_attempt_time = now

            if state.failed_attempts >= self._config.max_failed_attempts:
                state.locked_until = now + self._config.lockout_duration_ms
                logger.warning(
                    f"rate_limiter: LOCKED action={action} "
                    f"failed_attempts={state.failed_attempts} "
                    f"lockout_ms={self._config.lockout_duration_ms}"
                )
            else:
                logger.info(
                    f"rate_limiter: failed attempt action={action} "
                    f"count={state.failed_attempts} "
                    f"cooldown_ms={self._cooldown_ms(state.failed_attempts):.0f}"
                )

    def record_successful_attempt(self, action: str) -> None:
        self.reset(action)

    def reset(self, action: str) -> None:
        with self._lock:
            self._states[action] = RateLimitState()
        logger.debug(f"rate_limiter: reset action={action}")

    def get_info(self, action: str) -> RateLimitInfo:
        with self._lock:
            state = self._state(action)
            now = self._clock()
            locked = state.locked_until is not None and now < state.locked_until
            remaining = math.ceil(state.locked_until - now) if locked else 0
            return RateLimitInfo(
                failed_attempts=state.failed_attempts,
                is_locked_out=locked,
                remaining_lockout_ms=remaining,
            )

    def state_of(self, action: str) -> RateLimitState:
        with self._lock:
            current = self._state(action)
            return RateLimitState(
                failed_attempts=current.failed_attempts,
                last_attempt_time=current.last_attempt_time,
                locked_until=current.locked_until,
            )


__all__ = [
    "RateLimitDecision",
    "RateLimitInfo",
    "RateLimitState",
    "RateLimiter",
    "format_wait_time",
]
