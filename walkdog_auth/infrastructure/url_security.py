# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""HTTPS enforcement for backend URLs."""

from __future__ import annotations

import re

from walkdog_auth.shared.errors import InfrastructureError
from walkdog_auth.shared.logging import logger

_LOCAL_MARKERS = ("localhost", "127.0.0.1", "10.0.2.2", "10.0.3.2")
_PRIVATE_RANGES = (
    re.compile(r"192\.168\.\d+\.\d+"),
    re.compile(r"10\.\d+\.\d+\.\d+"),
    re.compile(r"172\.(1[6-9]|2\d|3[01])\.\d+\.\d+"),
)


class InsecureUrlError(InfrastructureError):
    def __init__(self, url: str) -> None:
        super().__init__(
            f"API URL must use HTTPS in production. Got: {url}",
            code="insecure_url",
            context={"url": url},
        )


def is_local_or_private_network(url: str) -> bool:
    if any(marker in url for marker in _LOCAL_MARKERS):
        return True
    return any(pattern.search(url) for pattern in _PRIVATE_RANGES)


def validate_secure_url(url: str, *, production: bool) -> None:
    if is_local_or_private_network(url):
        if production:
            logger.warning(f"url_security: plain HTTP allowed for local/private url={url}")
        return

    if production and not url.startswith("https://"):
        raise InsecureUrlError(url)


def enforce_https(url: str, *, production: bool) -> str:
    if not production:
        return url

    if is_local_or_private_network(url):
        logger.warning(f"url_security: keeping local/private url={url} in production")
        return url

    if url.startswith("http://"):
        return "https://" + url[len("http://"):]
    return url


__all__ = [
    "InsecureUrlError",
    "enforce_https",
    "is_local_or_private_network",
    "validate_secure_url",
]
