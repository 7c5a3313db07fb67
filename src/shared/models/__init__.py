# src/shared/models/__init__.py
"""
Общие Pydantic-модели, используемые несколькими доменами.
"""

from src.shared.models.common import (
    Coordinates,
    LocalizedText,
    PaginationParams,
    PaginatedResponse,
    ErrorResponse,
    HealthStatus,
)

__all__ = [
    "Coordinates",
    "LocalizedText",
    "PaginationParams",
    "PaginatedResponse",
    "ErrorResponse",
    "HealthStatus",
]
