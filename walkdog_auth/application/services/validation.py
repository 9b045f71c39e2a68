# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import re
from dataclasses import dataclass, field

from pydantic import BaseModel, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from walkdog_auth.shared.errors import ValidationError, format_pydantic_errors

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
EMAIL_MAX_LENGTH = 254
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50


def sanitize_input(value: str) -> str:
    return re.sub(r"[<>]", "", value.strip())


def _check_email(value: str) -> str:
    trimmed = (value or "").strip()
    if not trimmed:
        raise PydanticCustomError("email_missing", "Email is required", {})
    if not EMAIL_REGEX.match(trimmed):
        raise PydanticCustomError("email_invalid", "Please enter a valid email address", {})
    if len(trimmed) > EMAIL_MAX_LENGTH:
        raise PydanticCustomError(
            "email_too_long", "Email is too long", {"max_length": EMAIL_MAX_LENGTH}
        )
    return trimmed


def _check_password(value: str) -> str:
    if not value:
        raise PydanticCustomError("password_missing", "Password is required", {})
    if len(value) < PASSWORD_MIN_LENGTH:
        raise PydanticCustomError(
            "password_too_short",
            "Password must be at least {min_length} characters",
            {"min_length": PASSWORD_MIN_LENGTH},
        )
    if len(value) > PASSWORD_MAX_LENGTH:
        raise PydanticCustomError(
            "password_too_long", "Password is too long", {"max_length": PASSWORD_MAX_LENGTH}
        )
    return value


class LoginRequestDTO(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return _check_password(value)


class RegisterRequestDTO(BaseModel):
    name: str
    email: str
    password: str
    confirm_password: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        trimmed = (value or "").strip()
        if not trimmed:
            raise PydanticCustomError("name_missing", "Name is required", {})
        if len(trimmed) < NAME_MIN_LENGTH:
            raise PydanticCustomError(
                "name_too_short",
                "Name must be at least {min_length} characters",
                {"min_length": NAME_MIN_LENGTH},
            )
        if len(trimmed) > NAME_MAX_LENGTH:
            raise PydanticCustomError(
                "name_too_long", "Name is too long", {"max_length": NAME_MAX_LENGTH}
            )
        return trimmed

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return _check_password(value)

    @field_validator("confirm_password")
    @classmethod
    def validate_confirmation(cls, value: str, info: ValidationInfo) -> str:
        if not value:
            raise PydanticCustomError(
                "confirm_password_missing", "Please confirm your password", {}
            )
        password = info.data.get("password")
        # a failed password check already reported the problem on its own field
        if password is not None and value != password:
            raise PydanticCustomError("password_mismatch", "Passwords do not match", {})
        return value


@dataclass(frozen=True, slots=True)
class FormValidation:
    is_valid: bool
    errors: dict[str, str] = field(default_factory=dict)

    def raise_for_errors(self) -> None:
        if not self.is_valid:
            raise ValidationError(
                next(iter(self.errors.values()), "Invalid input"),
                context={"field_errors": dict(self.errors)},
            )


def _run(model: type[BaseModel], **values: str) -> FormValidation:
    try:
        model(**values)
    except PydanticValidationError as exc:
        return FormValidation(is_valid=False, errors=format_pydantic_errors(exc)["field_errors"])
    return FormValidation(is_valid=True)


def validate_login_form(email: str, password: str) -> FormValidation:
    return _run(LoginRequestDTO, email=email, password=password)


def validate_register_form(
    name: str, email: str, password: str, confirm_password: str
) -> FormValidation:
    return _run(
        RegisterRequestDTO,
        name=name,
        email=email,
        password=password,
        confirm_password=confirm_password,
    )


__all__ = [
    "EMAIL_MAX_LENGTH",
    "NAME_MAX_LENGTH",
    "NAME_MIN_LENGTH",
    "PASSWORD_MAX_LENGTH",
    "PASSWORD_MIN_LENGTH",
    "FormValidation",
    "LoginRequestDTO",
    "RegisterRequestDTO",
    "sanitize_input",
    "validate_login_form",
    "validate_register_form",
]
