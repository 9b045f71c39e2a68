# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from functools import cached_property

import httpx

from walkdog_auth.application.authenticated_call import AuthenticatedCall
from walkdog_auth.application.interfaces import SecureKeyValueStore
from walkdog_auth.application.session_manager import SessionManager
from walkdog_auth.application.use_cases.auth_flow import AuthFlow
from walkdog_auth.application.use_cases.guest_walk_buffer import GuestWalkBuffer
from walkdog_auth.application.use_cases.migrate_guest_walk import GuestMigrationWorkflow
from walkdog_auth.infrastructure.api_client import WalkDogApiClient
from walkdog_auth.infrastructure.auth.rate_limiter import RateLimiter
from walkdog_auth.infrastructure.encryption import EncryptionService
from walkdog_auth.infrastructure.secure_store import EncryptedFileStore
from walkdog_auth.shared.config import AppConfig, load_config
from walkdog_auth.shared.logging import setup_logging


class Container:
    """Wires one app instance; every service is built lazily and shared."""

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        store: SecureKeyValueStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_config()
        self._store_override = store
        self._transport = transport

    @cached_property
    def encryption(self) -> EncryptionService:
        return EncryptionService(production=self.config.is_production())

    @cached_property
    def secure_store(self) -> SecureKeyValueStore:
        if self._store_override is not None:
            return self._store_override
        return EncryptedFileStore(self.config.storage.path, self.encryption)

    @cached_property
    def api_client(self) -> WalkDogApiClient:
        return WalkDogApiClient(
            self.config.api,
            resilience=self.config.resilience,
            production=self.config.is_production(),
            transport=self._transport,
        )

    @cached_property
    def rate_limiter(self) -> RateLimiter:
        return RateLimiter(self.config.rate_limit)

    @cached_property
    def session_manager(self) -> SessionManager:
        return SessionManager(self.secure_store, self.api_client, self.config.session)

    @cached_property
    def authenticated_call(self) -> AuthenticatedCall:
        return AuthenticatedCall(self.session_manager)

    @cached_property
    def guest_walk_buffer(self) -> GuestWalkBuffer:
        return GuestWalkBuffer(self.secure_store)

    @cached_property
    def guest_migration(self) -> GuestMigrationWorkflow:
        return GuestMigrationWorkflow(
            session=self.session_manager,
            walks=self.api_client,
            call=self.authenticated_call,
        )

    @cached_property
    def auth_flow(self) -> AuthFlow:
        return AuthFlow(
            session=self.session_manager,
            rate_limiter=self.rate_limiter,
            migration=self.guest_migration,
            guest_buffer=self.guest_walk_buffer,
        )

    async def start(self) -> None:
        setup_logging(self.config.effective_log_level)
        await self.guest_walk_buffer.load()
        await self.session_manager.restore()

    async def aclose(self) -> None:
        await self.session_manager.aclose()
        await self.api_client.aclose()


__all__ = ["Container"]
