# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_NESTED_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
    validate_by_name=True,
)


class ApiConfig(BaseSettings):
    base_url: str = Field("http://localhost:9010", alias="API_SERVICE_URL")
    auth_service_url: str = Field("http://localhost:9011", alias="AUTH_SERVICE_URL")
    api_prefix: str = Field("/api/v1", alias="API_PREFIX")
    login_mode: Literal["json", "oauth2_password"] = Field("json", alias="LOGIN_MODE")
    client_id: str = Field("dev", alias="OAUTH_CLIENT_ID")
    client_secret: str = Field("secret", alias="OAUTH_CLIENT_SECRET")
    oauth_scope: str = Field("user", alias="OAUTH_SCOPE")
    request_timeout: float = Field(30.0, ge=0.1, alias="API_TIMEOUT")
    auth_timeout: float = Field(15.0, ge=0.1, alias="AUTH_TIMEOUT")
    token_timeout: float = Field(10.0, ge=0.1, alias="TOKEN_TIMEOUT")

    model_config = _NESTED_CONFIG

    @field_validator("base_url", "auth_service_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class SessionConfig(BaseSettings):
    refresh_buffer_seconds: int = Field(300, ge=0, alias="TOKEN_REFRESH_BUFFER")
    deduplicate_refresh: bool = Field(True, alias="DEDUPLICATE_REFRESH")

    model_config = _NESTED_CONFIG


class RateLimitConfig(BaseSettings):
    max_failed_attempts: int = Field(5, ge=1, alias="RL_MAX_FAILED_ATTEMPTS")
    base_cooldown_ms: int = Field(1000, ge=0, alias="RL_BASE_COOLDOWN_MS")
    max_cooldown_ms: int = Field(60_000, ge=0, alias="RL_MAX_COOLDOWN_MS")
    lockout_duration_ms: int = Field(5 * 60_000, ge=0, alias="RL_LOCKOUT_MS")
    reset_after_ms: int = Field(15 * 60_000, ge=0, alias="RL_RESET_AFTER_MS")

    model_config = _NESTED_CONFIG


class ResilienceConfig(BaseSettings):
    max_retries: int = Field(1, ge=0, alias="RESILIENCE_RETRIES")
    backoff_base: float = Field(0.5, ge=0.0, alias="RESILIENCE_BACKOFF_BASE")
    backoff_cap: float = Field(4.0, ge=0.0, alias="RESILIENCE_BACKOFF_CAP")

    model_config = _NESTED_CONFIG


class StorageConfig(BaseSettings):
    path: Path = Field(Path("instance/secure_store.json"), alias="SECURE_STORE_PATH")

    model_config = _NESTED_CONFIG


def _api_config_factory() -> ApiConfig:
    return ApiConfig()  # type: ignore[call-arg]


def _session_config_factory() -> SessionConfig:
    return SessionConfig()  # type: ignore[call-arg]


def _rate_limit_config_factory() -> RateLimitConfig:
    return RateLimitConfig()  # type: ignore[call-arg]


def _resilience_config_factory() -> ResilienceConfig:
    return ResilienceConfig()  # type: ignore[call-arg]


def _storage_config_factory() -> StorageConfig:
    return StorageConfig()  # type: ignore[call-arg]


class AppConfig(BaseSettings):
    app_env: str = Field("development", alias="APP_ENV")
    debug_logging: bool = Field(False, alias="DEBUG_LOGGING")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    api: ApiConfig = Field(default_factory=_api_config_factory)
    session: SessionConfig = Field(default_factory=_session_config_factory)
    rate_limit: RateLimitConfig = Field(default_factory=_rate_limit_config_factory)
    resilience: ResilienceConfig = Field(default_factory=_resilience_config_factory)
    storage: StorageConfig = Field(default_factory=_storage_config_factory)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
        validate_by_name=True,
    )

    @field_validator("debug_logging", mode="before")
    @classmethod
    def _parse_debug_logging(cls, value: str | bool) -> bool:
        if isinstance(value, str):
            return value.lower() in ("1", "true", "yes")
        return bool(value)

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "AppConfig":
        if not self.is_production():
            return self

        from walkdog_auth.infrastructure.url_security import enforce_https, validate_secure_url

        for url in (self.api.base_url, self.api.auth_service_url):
            validate_secure_url(enforce_https(url, production=True), production=True)

        if self.api.login_mode == "oauth2_password" and self.api.client_secret == "secret":
            print(
                "\n⚠️  PRODUCTION WARNING: OAUTH_CLIENT_SECRET is still the development default.\n",
                file=sys.stderr,
            )
        return self

    def is_production(self) -> bool:
        return self.app_env.lower() in ("production", "prod")

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug_logging else self.log_level.upper()


@lru_cache(maxsize=1)
def load_config() -> AppConfig:
    return AppConfig()


__all__ = [
    "ApiConfig",
    "AppConfig",
    "RateLimitConfig",
    "ResilienceConfig",
    "SessionConfig",
    "StorageConfig",
    "load_config",
]
