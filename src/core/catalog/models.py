# src/core/catalog/models.py
"""
Модели каталога товаров.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.shared.models.common import LocalizedText


class Product(BaseModel):
    """Товар продавца."""

    id: str = Field(..., description="ID товара")
    vendor_id: str = Field(..., description="ID продавца")
    name: LocalizedText = Field(..., description="Название (en/st)")
    description: Optional[LocalizedText] = Field(None, description="Описание (en/st)")
    category: Optional[str] = Field(None, description="Категория")
    price: float = Field(..., ge=0.0, description="Цена за единицу")
    currency: str = Field("LSL", description="Валюта")
    stock_quantity: int = Field(0, ge=0, description="Остаток на складе")
    available: bool = Field(True, description="Доступен для заказа")
    created_at: Optional[datetime] = Field(None, description="Время создания")

    class Config:
        from_attributes = True

    def can_supply(self, quantity: int) -> bool:
        """Хватает ли остатка на запрошенное количество."""
        return self.available and self.stock_quantity >= quantity
