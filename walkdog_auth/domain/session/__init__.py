# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from .entities import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    SESSION_KEYS,
    USER_KEY,
    Coordinate,
    GuestUserInfo,
    GuestWalkData,
    Session,
    TokenClaims,
    TokenPair,
    TrackPoint,
    UserProfile,
)
from .exceptions import (
    ApiResponseError,
    CredentialError,
    NetworkError,
    NotAuthenticatedError,
    RateLimitedError,
    StorageError,
)
from .results import AuthFailure, FailureKind, FetchStatus, ProfileResult, RefreshResult

__all__ = [
    "ACCESS_TOKEN_KEY",
    "REFRESH_TOKEN_KEY",
    "SESSION_KEYS",
    "USER_KEY",
    "ApiResponseError",
    "AuthFailure",
    "Coordinate",
    "CredentialError",
    "FailureKind",
    "FetchStatus",
    "GuestUserInfo",
    "GuestWalkData",
    "NetworkError",
    "NotAuthenticatedError",
    "ProfileResult",
    "RateLimitedError",
    "RefreshResult",
    "Session",
    "StorageError",
    "TokenClaims",
    "TokenPair",
    "TrackPoint",
    "UserProfile",
]
