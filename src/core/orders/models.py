# src/core/orders/models.py
"""
Модели данных заказов.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from src.common.constants import OrderPaymentStatus, OrderStatus, PaymentMethod
from src.shared.models.common import Coordinates, LocalizedText


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ВЛОЖЕННЫЕ ДОКУМЕНТЫ ЗАКАЗА
# =============================================================================

class OrderItem(BaseModel):
    """Позиция заказа (снимок товара на момент оформления)."""

    product_id: str = Field(..., description="ID товара")
    product_name: LocalizedText = Field(..., description="Название товара")
    quantity: int = Field(..., ge=1, description="Количество")
    price: float = Field(..., ge=0.0, description="Цена за единицу")

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity


class PickupLocation(BaseModel):
    """Точка забора (магазин продавца)."""

    address: str = Field(..., min_length=1, description="Адрес")
    coordinates: Coordinates = Field(..., description="Координаты")
    vendor_name: Optional[str] = Field(None, description="Имя продавца")
    vendor_phone: Optional[str] = Field(None, description="Телефон продавца")


class Destination(BaseModel):
    """Точка доставки."""

    address: str = Field(..., min_length=1, description="Адрес")
    coordinates: Coordinates = Field(..., description="Координаты")
    instructions: Optional[str] = Field(None, description="Инструкции для водителя")
    passenger_name: Optional[str] = Field(None, description="Имя получателя")
    passenger_phone: Optional[str] = Field(None, description="Телефон получателя")


class OrderPayment(BaseModel):
    """Оплата, встроенная в заказ."""

    method: PaymentMethod = Field(..., description="Способ оплаты")
    status: OrderPaymentStatus = Field(OrderPaymentStatus.PENDING, description="Статус оплаты")
    phone_number: Optional[str] = Field(None, description="Телефон для мобильных денег")
    amount: float = Field(0.0, ge=0.0, description="Сумма")
    transaction_id: Optional[str] = Field(None, description="ID транзакции провайдера")
    payment_date: Optional[datetime] = Field(None, description="Дата оплаты")


# =============================================================================
# ЗАКАЗ
# =============================================================================

class Order(BaseModel):
    """Модель заказа."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="UUID заказа")
    passenger_id: str = Field(..., description="ID пассажира")
    vendor_id: str = Field(..., description="ID продавца")
    taxi_driver_id: Optional[str] = Field(None, description="ID назначенного водителя")

    items: list[OrderItem] = Field(..., min_length=1, description="Позиции заказа")
    pickup_location: PickupLocation = Field(..., description="Точка забора")
    destination: Destination = Field(..., description="Точка доставки")
    payment: OrderPayment = Field(..., description="Оплата")

    status: OrderStatus = Field(OrderStatus.PENDING, description="Статус заказа")
    total_amount: float = Field(..., ge=0.0, description="Итоговая сумма")
    delivery_fee: float = Field(15.0, ge=0.0, description="Стоимость доставки")
    is_urgent: bool = Field(False, description="Срочная доставка")
    notes: Optional[str] = Field(None, description="Комментарий к заказу")
    rejected_drivers: list[str] = Field(default_factory=list, description="Водители, отказавшиеся от заказа")

    # Временные метки
    driver_assigned_at: Optional[datetime] = Field(None, description="Время назначения водителя")
    pickup_confirmed_at: Optional[datetime] = Field(None, description="Время забора заказа")
    delivery_confirmed_at: Optional[datetime] = Field(None, description="Время подтверждения доставки")
    estimated_delivery: Optional[datetime] = Field(None, description="Ожидаемое время доставки")
    actual_delivery: Optional[datetime] = Field(None, description="Фактическое время доставки")
    cancelled_at: Optional[datetime] = Field(None, description="Время отмены")
    cancelled_by: Optional[str] = Field(None, description="Кто отменил")
    created_at: datetime = Field(default_factory=utc_now, description="Время создания")
    updated_at: datetime = Field(default_factory=utc_now, description="Время обновления")

    # Оценки
    rating: Optional[int] = Field(None, ge=1, le=5, description="Общая оценка")
    vendor_rating: Optional[int] = Field(None, ge=1, le=5, description="Оценка продавца")
    driver_rating: Optional[int] = Field(None, ge=1, le=5, description="Оценка водителя")
    feedback: Optional[str] = Field(None, description="Отзыв")

    class Config:
        from_attributes = True

    @property
    def order_number(self) -> str:
        """Короткий номер заказа для интерфейса."""
        return f"ORDER-{self.id[-6:].upper()}"

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_cancellable_by_passenger(self) -> bool:
        return self.status in (OrderStatus.PENDING, OrderStatus.CONFIRMED)

    def involves(self, user_id: str) -> bool:
        """Является ли пользователь участником заказа."""
        return user_id in (self.passenger_id, self.vendor_id, self.taxi_driver_id)


# =============================================================================
# DTO
# =============================================================================

class OrderItemInput(BaseModel):
    """Позиция в запросе на создание заказа."""

    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class PaymentSpec(BaseModel):
    """Способ оплаты в запросе на создание заказа."""

    method: PaymentMethod
    phone_number: Optional[str] = None


class OrderCreateDTO(BaseModel):
    """DTO для создания заказа."""

    items: list[OrderItemInput] = Field(..., min_length=1)
    pickup_location: PickupLocation
    destination: Destination
    payment: PaymentSpec
    is_urgent: bool = False
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_phone_for_mobile_money(self) -> "OrderCreateDTO":
        """Для мобильных денег нужен номер телефона."""
        if self.payment.method != PaymentMethod.CASH and not self.payment.phone_number:
            raise ValueError("Номер телефона обязателен для оплаты M-Pesa или EcoCash")
        return self


class OrderStatusUpdateDTO(BaseModel):
    """DTO смены статуса."""

    status: OrderStatus


class AssignDriverDTO(BaseModel):
    """DTO ручного назначения водителя."""

    driver_id: str = Field(..., min_length=1)


class OrderRatingDTO(BaseModel):
    """DTO оценки завершённого заказа."""

    rating: int = Field(..., ge=1, le=5)
    vendor_rating: Optional[int] = Field(None, ge=1, le=5)
    driver_rating: Optional[int] = Field(None, ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=1000)

    @field_validator("feedback")
    @classmethod
    def strip_feedback(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class OrderStats(BaseModel):
    """Сводка по заказам для администратора."""

    total_orders: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    completed_revenue: float = 0.0
    today_orders: int = 0
    today_revenue: float = 0.0
