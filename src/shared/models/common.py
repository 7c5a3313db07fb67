# src/shared/models/common.py
"""
Модели, общие для заказов, каталога, пользователей и HTTP-ответов.
"""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


class Coordinates(BaseModel):
    """Точка на карте: магазин вендора, адрес доставки, позиция водителя."""

    latitude: float = Field(..., ge=-90.0, le=90.0, description="Широта")
    longitude: float = Field(..., ge=-180.0, le=180.0, description="Долгота")

    class Config:
        from_attributes = True


class LocalizedText(BaseModel):
    """Текст на английском и сесото."""

    en: str = Field(..., description="Английский")
    st: Optional[str] = Field(None, description="Сесото")


class PaginationParams(BaseModel):
    page: int = Field(default=1, ge=1, description="Номер страницы")
    page_size: int = Field(default=20, ge=1, le=100, description="Заказов на странице")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


class PaginatedResponse(BaseModel, Generic[T]):
    """Страница списка заказов с общим количеством."""

    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def create(cls, items: list[T], total: int, pagination: PaginationParams) -> "PaginatedResponse[T]":
        pages, rest = divmod(total, pagination.page_size)
        return cls(
            items=items,
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=pages + (1 if rest else 0),
        )


class ErrorResponse(BaseModel):
    """Тело ответа при ошибке: {"status": "fail", "message": ..., "error_code": ...}."""

    status: str = "fail"
    message: str
    error_code: str
    details: dict[str, Any] = Field(default_factory=dict)


class HealthStatus(BaseModel):
    service: str
    status: str = "healthy"  # healthy | degraded
    version: str | None = None
    uptime_seconds: float | None = None
    # Имя зависимости -> "ok" / "unavailable"
    dependencies: dict[str, str] = Field(default_factory=dict)
