# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from walkdog_auth.application.services.validation import (
    FormValidation,
    sanitize_input,
    validate_login_form,
    validate_register_form,
)
from walkdog_auth.application.session_manager import SessionManager
from walkdog_auth.application.use_cases.guest_walk_buffer import GuestWalkBuffer
from walkdog_auth.application.use_cases.migrate_guest_walk import GuestMigrationWorkflow
from walkdog_auth.domain.session import RateLimitedError, StorageError
from walkdog_auth.infrastructure.auth.rate_limiter import RateLimiter
from walkdog_auth.shared.logging import (
    clear_correlation_id,
    logger,
    new_correlation_id,
)


@dataclass(frozen=True, slots=True)
class AuthAttemptResult:
    success: bool
    error_code: str | None = None
    title: str | None = None
    message: str | None = None
    field_errors: Mapping[str, str] = field(default_factory=dict)
    wait_ms: int = 0
    migrated: bool | None = None

    @classmethod
    def ok(cls, *, migrated: bool | None = None) -> AuthAttemptResult:
        return cls(success=True, migrated=migrated)

    @classmethod
    def fail(
        cls,
        error_code: str,
        *,
        title: str | None = None,
        message: str | None = None,
        field_errors: Mapping[str, str] | None = None,
        wait_ms: int = 0,
    ) -> AuthAttemptResult:
        return cls(
            success=False,
            error_code=error_code,
            title=title,
            message=message,
            field_errors=dict(field_errors or {}),
            wait_ms=wait_ms,
        )


class AuthFlow:
    """Sign-in and sign-up as the auth screens drive them.

    Validation runs first and never touches the network or the rate limiter.
    After a successful sign-in any pending guest walk is migrated, and the
    local buffer is cleared only when the migration reports success.
    """

    def __init__(
        self,
        *,
        session: SessionManager,
        rate_limiter: RateLimiter,
        migration: GuestMigrationWorkflow | None = None,
        guest_buffer: GuestWalkBuffer | None = None,
    ) -> None:
        self._session = session
        self._rate_limiter = rate_limiter
        self._migration = migration
        self._guest_buffer = guest_buffer

    async def sign_in(self, email: str, password: str) -> AuthAttemptResult:
        new_correlation_id()
        try:
            validation = validate_login_form(email, password)
            if not validation.is_valid:
                return self._invalid(validation)

            gate = self._gate(RateLimiter.LOGIN)
            if gate is not None:
                return gate

            success = await self._session.login(sanitize_input(email), password)
            return await self._complete(RateLimiter.LOGIN, success)
        finally:
            clear_correlation_id()

    async def sign_up(
        self, name: str, email: str, password: str, confirm_password: str
    ) -> AuthAttemptResult:
        new_correlation_id()
        try:
            validation = validate_register_form(name, email, password, confirm_password)
            if not validation.is_valid:
                return self._invalid(validation)

            gate = self._gate(RateLimiter.REGISTER)
            if gate is not None:
                return gate

            success = await self._session.register(
                sanitize_input(name), sanitize_input(email), password
            )
            return await self._complete(RateLimiter.REGISTER, success)
        finally:
            clear_correlation_id()

    def _invalid(self, validation: FormValidation) -> AuthAttemptResult:
        logger.debug(f"auth_flow: form rejected fields={sorted(validation.errors)}")
        return AuthAttemptResult.fail(
            "validation_error",
            title="Validation Error",
            message=next(iter(validation.errors.values()), None),
            field_errors=validation.errors,
        )

    def _gate(self, action: str) -> AuthAttemptResult | None:
        try:
            self._rate_limiter.ensure_allowed(action)
        except RateLimitedError as exc:
            logger.info(f"auth_flow: throttled action={action} wait_ms={exc.wait_ms}")
            return AuthAttemptResult.fail(
                exc.code,
                title="Too Many Attempts",
                message=exc.message,
                wait_ms=exc.wait_ms,
            )
        return None

    async def _complete(self, action: str, success: bool) -> AuthAttemptResult:
        if not success:
            self._rate_limiter.record_failed_attempt(action)
            failure = self._session.last_error
            return AuthAttemptResult.fail(
                failure.kind.value if failure else "unexpected",
                title=failure.title if failure else None,
                message=failure.message if failure else None,
            )

        self._rate_limiter.record_successful_attempt(action)
        return AuthAttemptResult.ok(migrated=await self._migrate_pending_walk())

    async def _migrate_pending_walk(self) -> bool | None:
        if self._migration is None or self._guest_buffer is None:
            return None
        pending = self._guest_buffer.pending_walk
        if pending is None:
            return None

        logger.info(f"auth_flow: migrating pending guest walk id={pending.id}")
        migrated = await self._migration.execute(pending)
        if migrated:
            try:
                await self._guest_buffer.clear_pending_walk()
                await self._guest_buffer.clear_guest_user_info()
            except StorageError as exc:
                logger.error(f"auth_flow: migrated walk could not be cleared locally error={exc!r}")
        else:
            logger.warning("auth_flow: migration failed, guest walk kept locally")
        return migrated


__all__ = ["AuthAttemptResult", "AuthFlow"]
