# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""httpx adapter for the WalkDog backend contract."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from walkdog_auth.application.interfaces import AuthBackend, WalkBackend
from walkdog_auth.domain.session import (
    ApiResponseError,
    CredentialError,
    NetworkError,
    ProfileResult,
    RefreshResult,
    TokenPair,
    TrackPoint,
    UserProfile,
)
from walkdog_auth.infrastructure.resilience import retry_transport_errors
from walkdog_auth.infrastructure.url_security import enforce_https, validate_secure_url
from walkdog_auth.shared.config import ApiConfig, ResilienceConfig
from walkdog_auth.shared.errors import InfrastructureError
from walkdog_auth.shared.logging import get_correlation_id, logger

_INVALID_TOKEN_STATUSES = (401, 403)


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(response: httpx.Response, default: str) -> str:
    body = _json_body(response)
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, str) and message:
            return message
    return default


def _access_token_from(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    token = body.get("access_token") or body.get("token")
    return token if isinstance(token, str) and token else None


class WalkDogApiClient(AuthBackend, WalkBackend):
    def __init__(
        self,
        config: ApiConfig | None = None,
        *,
        resilience: ResilienceConfig | None = None,
        production: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or ApiConfig()  # type: ignore[call-arg]
        self._resilience = resilience or ResilienceConfig()  # type: ignore[call-arg]

        self._base_url = enforce_https(self._config.base_url, production=production)
        self._auth_url = enforce_https(self._config.auth_service_url, production=production)
        validate_secure_url(self._base_url, production=production)
        validate_secure_url(self._auth_url, production=production)

        self._http = httpx.AsyncClient(
            transport=transport,
            timeout=self._config.request_timeout,
            headers={"Accept": "application/json"},
        )
        logger.debug(
            f"api_client: initialized base_url={self._base_url} "
            f"login_mode={self._config.login_mode}"
        )

    async def __aenter__(self) -> WalkDogApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _url(self, path: str) -> str:
        return f"{self._base_url}{self._config.api_prefix}{path}"

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        correlation_id = get_correlation_id()
        if correlation_id != "-":
            headers["X-Request-ID"] = correlation_id
        return headers

    async def login(self, identifier: str, secret: str) -> TokenPair:
        try:
            if self._config.login_mode == "oauth2_password":
                response = await self._http.post(
                    f"{self._auth_url}/oauth2/token",
                    data={
                        "grant_type": "password",
                        "username": identifier,
                        "password": secret,
                        "scope": self._config.oauth_scope,
                    },
                    auth=httpx.BasicAuth(self._config.client_id, self._config.client_secret),
                    headers=self._headers(),
                    timeout=self._config.auth_timeout,
                )
            else:
                response = await self._http.post(
                    self._url("/auth/login"),
                    json={"email": identifier, "password": secret},
                    headers=self._headers(),
                    timeout=self._config.auth_timeout,
                )
        except httpx.TransportError as exc:
            raise NetworkError(operation="login") from exc

        if response.is_error:
            logger.info(f"api_client: login rejected status={response.status_code}")
            raise CredentialError(
                _error_message(response, "Invalid credentials"),
                status_code=response.status_code,
            )

        body = _json_body(response)
        access_token = _access_token_from(body)
        if not access_token:
            raise InfrastructureError(
                "No access token in response", code="missing_access_token"
            )
        refresh_token = body.get("refresh_token") if isinstance(body, dict) else None
        return TokenPair(access_token=access_token, refresh_token=refresh_token or None)

    async def register(self, username: str, email: str, secret: str) -> None:
        try:
            response = await self._http.post(
                self._url("/users/register"),
                json={"username": username, "email": email, "password": secret},
                headers=self._headers(),
                timeout=self._config.auth_timeout,
            )
        except httpx.TransportError as exc:
            raise NetworkError(operation="register") from exc

        if response.is_error:
            logger.info(f"api_client: register rejected status={response.status_code}")
            raise CredentialError(
                _error_message(response, "Registration failed"),
                status_code=response.status_code,
            )

    async def refresh(self, refresh_token: str) -> RefreshResult:
        try:
            response = await self._http.post(
                self._url("/auth/refresh"),
                json={"refresh_token": refresh_token},
                headers=self._headers(),
                timeout=self._config.token_timeout,
            )
        except httpx.TransportError as exc:
            logger.info(f"api_client: refresh got no response error={type(exc).__name__}")
            return RefreshResult.network_error(type(exc).__name__)

        if response.status_code in _INVALID_TOKEN_STATUSES:
            return RefreshResult.token_invalid(f"HTTP {response.status_code}")
        if response.is_error:
            return RefreshResult.failed(f"HTTP {response.status_code}")

        body = _json_body(response)
        access_token = _access_token_from(body)
        if not access_token:
            return RefreshResult.failed("no access token in refresh response")

        rotated = body.get("refresh_token") if isinstance(body, dict) else None
        return RefreshResult.success(
            TokenPair(access_token=access_token, refresh_token=rotated or refresh_token)
        )

    async def fetch_profile(self, access_token: str) -> ProfileResult:
        try:
            response = await retry_transport_errors(
                self._http.get,
                self._url("/users/me"),
                headers=self._headers(access_token),
                timeout=self._config.token_timeout,
                config=self._resilience,
            )
        except httpx.TransportError as exc:
            logger.info(f"api_client: profile fetch got no response error={type(exc).__name__}")
            return ProfileResult.network_error(type(exc).__name__)

        if response.status_code in _INVALID_TOKEN_STATUSES:
            return ProfileResult.token_invalid(f"HTTP {response.status_code}")
        if response.status_code != 200:
            return ProfileResult.failed(f"HTTP {response.status_code}")

        body = _json_body(response)
        if not body:
            return ProfileResult.failed("empty profile body")
        try:
            return ProfileResult.success(UserProfile.model_validate(body))
        except PydanticValidationError:
            return ProfileResult.failed("malformed profile body")

    async def _send(
        self, path: str, access_token: str, *, payload: dict[str, Any], operation: str
    ) -> httpx.Response:
        try:
            response = await self._http.post(
                self._url(path),
                json=payload,
                headers=self._headers(access_token),
            )
        except httpx.TransportError as exc:
            raise NetworkError(operation=operation) from exc

        if response.is_error:
            raise ApiResponseError(
                response.status_code, operation=operation, body=_json_body(response)
            )
        return response

    async def create_walk(self, access_token: str, payload: dict[str, Any]) -> str:
        response = await self._send(
            "/walks", access_token, payload=payload, operation="create_walk"
        )
        body = _json_body(response)
        walk_id = body.get("walkId") if isinstance(body, dict) else None
        if walk_id is None:
            raise InfrastructureError(
                "No walk id in create response", code="missing_walk_id"
            )
        return str(walk_id)

    async def upload_track(
        self, access_token: str, walk_id: str, coordinates: Sequence[TrackPoint]
    ) -> None:
        await self._send(
            f"/walks/{walk_id}/track",
            access_token,
            payload={"coordinates": [point.to_payload() for point in coordinates]},
            operation="upload_track",
        )

    async def stop_walk(
        self, access_token: str, walk_id: str, *, duration: float, distance: float
    ) -> None:
        await self._send(
            f"/walks/{walk_id}/stop",
            access_token,
            payload={"dogIds": [], "duration": duration, "distance": distance},
            operation="stop_walk",
        )


__all__ = ["WalkDogApiClient"]
