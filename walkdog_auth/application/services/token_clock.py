# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Expiry questions answered from an access token's unverified claims.

Signatures are never checked here. The backend verifies every token; these
helpers only avoid network calls for tokens that are obviously stale.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
import time

from pydantic import ValidationError as PydanticValidationError

from walkdog_auth.domain.session import TokenClaims

DEFAULT_REFRESH_BUFFER_SECONDS = 5 * 60


def _now() -> int:
    return int(time.time())


def decode(token: str | None) -> TokenClaims | None:
    if not token or not isinstance(token, str):
        return None

    parts = token.split(".")
    if len(parts) != 3:
        return None

    payload = parts[1].replace("-", "+").replace("_", "/")
    payload += "=" * (-len(payload) % 4)

    try:
        raw = base64.b64decode(payload, validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, ValueError):
        return None

    if not isinstance(data, dict):
        return None

    try:
        return TokenClaims.model_validate(data)
    except PydanticValidationError:
        return None


def is_expired_or_expiring(
    token: str | None,
    buffer_seconds: int = DEFAULT_REFRESH_BUFFER_SECONDS,
    *,
    now: float | None = None,
) -> bool:
    claims = decode(token)
    if claims is None or claims.exp is None:
        return True

    current = int(now) if now is not None else _now()
    return current >= claims.exp - buffer_seconds


def time_remaining(token: str | None, *, now: float | None = None) -> int | None:
    claims = decode(token)
    if claims is None or claims.exp is None:
        return None

    current = int(now) if now is not None else _now()
    return math.floor(claims.exp - current)


__all__ = [
    "DEFAULT_REFRESH_BUFFER_SECONDS",
    "decode",
    "is_expired_or_expiring",
    "time_remaining",
]
