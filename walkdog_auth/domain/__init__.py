# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from .session import (
    AuthFailure,
    FetchStatus,
    GuestWalkData,
    ProfileResult,
    RefreshResult,
    Session,
    TokenPair,
    UserProfile,
)

__all__ = [
    "AuthFailure",
    "FetchStatus",
    "GuestWalkData",
    "ProfileResult",
    "RefreshResult",
    "Session",
    "TokenPair",
    "UserProfile",
]
