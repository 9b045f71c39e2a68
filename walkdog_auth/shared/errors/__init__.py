from .base import AppError, DomainError, InfrastructureError, ValidationError
from .validation import format_pydantic_errors

__all__ = [
    "AppError",
    "DomainError",
    "InfrastructureError",
    "ValidationError",
    "format_pydantic_errors",
]
