# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Session state and the payloads that flow through the auth core."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

ACCESS_TOKEN_KEY = "auth_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_KEY = "user_data"

SESSION_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY)


class UserProfile(BaseModel):
    """Profile returned by ``GET /users/me`` and cached under ``user_data``."""

    user_id: int | None = Field(None, alias="userId")
    username: str
    email: str
    phone: str | None = None
    created_at: str | None = Field(None, alias="createdAt")

    model_config = ConfigDict(validate_by_name=True, extra="ignore", frozen=True)

    def to_storage(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_storage(cls, raw: str | None) -> UserProfile | None:
        if not raw:
            return None
        try:
            return cls.model_validate_json(raw)
        except PydanticValidationError:
            return None


class TokenClaims(BaseModel):
    """Unverified claims read from the middle segment of an access token."""

    # NumericDate may be fractional; subject ids may be numeric
    exp: int | float | None = None
    iat: int | float | None = None
    sub: str | int | None = None

    model_config = ConfigDict(extra="allow")


@dataclass(slots=True, frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str | None = None


@dataclass(slots=True)
class Session:
    access_token: str | None = None
    refresh_token: str | None = None
    user: UserProfile | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None and self.user is not None

    def adopt(self, tokens: TokenPair, user: UserProfile) -> None:
        self.access_token = tokens.access_token
        self.refresh_token = tokens.refresh_token
        self.user = user

    def rotate(self, tokens: TokenPair) -> None:
        self.access_token = tokens.access_token
        if tokens.refresh_token:
            self.refresh_token = tokens.refresh_token

    def clear(self) -> None:
        self.access_token = None
        self.refresh_token = None
        self.user = None


class Coordinate(BaseModel):
    latitude: float
    longitude: float

    model_config = ConfigDict(validate_by_name=True)


class TrackPoint(Coordinate):
    timestamp: float
    accuracy: float | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class GuestUserInfo(BaseModel):
    name: str | None = None
    dog_name: str | None = Field(None, alias="dogName")

    model_config = ConfigDict(validate_by_name=True)

    def is_empty(self) -> bool:
        return not (self.name or self.dog_name)

    def to_storage(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_storage(cls, raw: str | None) -> GuestUserInfo | None:
        if not raw:
            return None
        try:
            return cls.model_validate_json(raw)
        except PydanticValidationError:
            return None


class GuestWalkData(BaseModel):
    """A walk recorded in guest mode, waiting to be attached to an account."""

    id: str | None = None
    started_at: str | None = Field(None, alias="startedAt")
    ended_at: str | None = Field(None, alias="endedAt")
    duration: float
    distance: float
    route_coordinates: list[TrackPoint] = Field(default_factory=list, alias="routeCoordinates")
    title: str | None = None
    notes: str | None = None
    start_latitude: float = Field(alias="startLatitude")
    start_longitude: float = Field(alias="startLongitude")
    guest_user_info: GuestUserInfo | None = Field(None, alias="guestUserInfo")

    model_config = ConfigDict(validate_by_name=True)

    def to_storage(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_storage(cls, raw: str | None) -> GuestWalkData | None:
        if not raw:
            return None
        try:
            return cls.model_validate_json(raw)
        except PydanticValidationError:
            return None

    def create_payload(self) -> dict[str, Any]:
        return {
            "title": self.title or "Guest Walk",
            "description": self.notes or "",
            "dogIds": [],
            "startLatitude": self.start_latitude,
            "startLongitude": self.start_longitude,
        }


__all__ = [
    "ACCESS_TOKEN_KEY",
    "REFRESH_TOKEN_KEY",
    "USER_KEY",
    "SESSION_KEYS",
    "Coordinate",
    "GuestUserInfo",
    "GuestWalkData",
    "Session",
    "TokenClaims",
    "TokenPair",
    "TrackPoint",
    "UserProfile",
]
