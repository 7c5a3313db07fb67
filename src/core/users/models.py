# src/core/users/models.py
"""
Модели данных пользователей.
Каталог пользователей только читается: регистрация и профиль живут в отдельном сервисе.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.common.constants import UserRole
from src.shared.models.common import Coordinates


class VendorInfo(BaseModel):
    """Данные магазина продавца."""

    shop_name: Optional[str] = Field(None, description="Название магазина")
    shop_location: Optional[Coordinates] = Field(None, description="Координаты магазина")
    shop_address: Optional[str] = Field(None, description="Адрес магазина")


class TaxiDriverInfo(BaseModel):
    """Данные водителя."""

    current_location: Optional[Coordinates] = Field(None, description="Текущие координаты")
    available: bool = Field(True, description="Готов принимать доставки")
    vehicle: Optional[str] = Field(None, description="Транспорт")


class User(BaseModel):
    """Модель пользователя."""

    id: str = Field(..., description="ID пользователя")
    role: UserRole = Field(..., description="Роль пользователя")
    email: Optional[str] = Field(None, description="Email")
    first_name: str = Field("", description="Имя")
    last_name: str = Field("", description="Фамилия")
    phone: Optional[str] = Field(None, description="Номер телефона")
    vendor_info: Optional[VendorInfo] = Field(None, description="Данные продавца")
    taxi_driver_info: Optional[TaxiDriverInfo] = Field(None, description="Данные водителя")
    is_active: bool = Field(True, description="Активен ли аккаунт")
    created_at: Optional[datetime] = Field(None, description="Дата регистрации")

    class Config:
        from_attributes = True

    @property
    def full_name(self) -> str:
        """Полное имя пользователя."""
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def display_name(self) -> str:
        """Отображаемое имя: название магазина для продавца, иначе полное имя."""
        if self.role == UserRole.VENDOR and self.vendor_info and self.vendor_info.shop_name:
            return self.vendor_info.shop_name
        return self.full_name or self.id

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_driver(self) -> bool:
        return self.role == UserRole.TAXI_DRIVER
