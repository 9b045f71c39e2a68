# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from typing import Any

from walkdog_auth.shared.errors.base import DomainError, InfrastructureError


class CredentialError(DomainError):
    default_code = "invalid_credentials"

    def __init__(self, message: str = "Invalid credentials", *, status_code: int | None = None) -> None:
        super().__init__(message, context={"status_code": status_code} if status_code else None)
        self.status_code = status_code


class NotAuthenticatedError(DomainError):
    default_code = "not_authenticated"

    def __init__(self) -> None:
        super().__init__("Not authenticated")


class RateLimitedError(DomainError):
    default_code = "rate_limited"

    def __init__(self, message: str, *, wait_ms: int) -> None:
        super().__init__(message, context={"wait_ms": wait_ms})
        self.wait_ms = wait_ms


class NetworkError(InfrastructureError):
    """No HTTP response was received (offline, DNS failure, timeout)."""

    def __init__(self, message: str = "Unable to reach server", *, operation: str | None = None) -> None:
        super().__init__(
            message,
            code="network_error",
            context={"operation": operation} if operation else None,
        )
        self.operation = operation


class ApiResponseError(InfrastructureError):
    """The backend answered with an unexpected HTTP status."""

    def __init__(self, status_code: int, *, operation: str, body: Any = None) -> None:
        super().__init__(
            f"{operation} failed with HTTP {status_code}",
            code="api_error",
            context={"status_code": status_code, "operation": operation},
        )
        self.status_code = status_code
        self.operation = operation
        self.body = body


class StorageError(InfrastructureError):
    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(
            message,
            code="storage_error",
            context={"key": key} if key else None,
        )


__all__ = [
    "ApiResponseError",
    "CredentialError",
    "NetworkError",
    "NotAuthenticatedError",
    "RateLimitedError",
    "StorageError",
]
