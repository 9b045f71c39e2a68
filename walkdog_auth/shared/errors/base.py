# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(slots=True, eq=False)
class AppError(Exception):
    code: str
    message: str = ""
    context: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message or self.code)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code}
        if self.message:
            payload["message"] = self.message
        if self.context:
            payload["context"] = dict(self.context)
        return payload


class DomainError(AppError):
    def __init__(
        self,
        message: str = "",
        *,
        code: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        resolved_code = code or getattr(type(self), "default_code", "domain_error")
        super().__init__(code=resolved_code, message=message, context=context)


class InfrastructureError(AppError):
    def __init__(
        self,
        message: str = "",
        *,
        code: str = "infrastructure_error",
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(code=code, message=message, context=context)


class ValidationError(AppError):
    def __init__(
        self,
        message: str = "",
        *,
        code: str = "validation_error",
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(code=code, message=message, context=context)

    @property
    def field_errors(self) -> dict[str, str]:
        if not self.context:
            return {}
        return dict(self.context.get("field_errors", {}))
