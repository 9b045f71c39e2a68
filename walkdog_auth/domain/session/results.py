# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Tagged outcomes for token renewal and profile validation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .entities import TokenPair, UserProfile


class FetchStatus(str, Enum):
    OK = "ok"
    TOKEN_INVALID = "token_invalid"
    NETWORK_ERROR = "network_error"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ProfileResult:
    status: FetchStatus
    profile: UserProfile | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.OK

    @classmethod
    def success(cls, profile: UserProfile) -> ProfileResult:
        return cls(FetchStatus.OK, profile=profile)

    @classmethod
    def token_invalid(cls, detail: str | None = None) -> ProfileResult:
        return cls(FetchStatus.TOKEN_INVALID, detail=detail)

    @classmethod
    def network_error(cls, detail: str | None = None) -> ProfileResult:
        return cls(FetchStatus.NETWORK_ERROR, detail=detail)

    @classmethod
    def failed(cls, detail: str | None = None) -> ProfileResult:
        return cls(FetchStatus.FAILED, detail=detail)


@dataclass(frozen=True, slots=True)
class RefreshResult:
    status: FetchStatus
    tokens: TokenPair | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.OK

    @classmethod
    def success(cls, tokens: TokenPair) -> RefreshResult:
        return cls(FetchStatus.OK, tokens=tokens)

    @classmethod
    def token_invalid(cls, detail: str | None = None) -> RefreshResult:
        return cls(FetchStatus.TOKEN_INVALID, detail=detail)

    @classmethod
    def network_error(cls, detail: str | None = None) -> RefreshResult:
        return cls(FetchStatus.NETWORK_ERROR, detail=detail)

    @classmethod
    def failed(cls, detail: str | None = None) -> RefreshResult:
        return cls(FetchStatus.FAILED, detail=detail)


class FailureKind(str, Enum):
    CREDENTIALS = "credentials"
    NETWORK = "network"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True, slots=True)
class AuthFailure:
    """User-facing explanation of a failed login or registration."""

    kind: FailureKind
    title: str
    message: str


__all__ = [
    "AuthFailure",
    "FailureKind",
    "FetchStatus",
    "ProfileResult",
    "RefreshResult",
]
