# src/core/delivery/models.py
"""
Модели доставки: заработок водителя и представления для водительского приложения.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from src.common.constants import EarningsStatus, OrderStatus
from src.core.orders.models import Destination, Order, OrderItem, OrderPayment, PickupLocation


class DriverEarnings(BaseModel):
    """Запись о заработке водителя за один заказ."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="ID записи")
    driver_id: str = Field(..., description="ID водителя")
    order_id: str = Field(..., description="ID заказа")
    delivery_fee: float = Field(..., ge=0.0, description="Стоимость доставки")
    commission: float = Field(0.0, ge=0.0, description="Комиссия платформы")
    driver_amount: float = Field(..., ge=0.0, description="Сумма водителю")
    currency: str = Field("LSL", description="Валюта")
    status: EarningsStatus = Field(EarningsStatus.PENDING, description="Статус")
    payment_method: Optional[str] = Field(None, description="Способ выплаты")
    payment_date: Optional[datetime] = Field(None, description="Дата выплаты")
    completed_at: Optional[datetime] = Field(None, description="Время завершения доставки")
    created_at: Optional[datetime] = Field(None, description="Время создания")

    class Config:
        from_attributes = True


class ContactInfo(BaseModel):
    """Имя и телефон участника заказа."""

    name: Optional[str] = None
    phone: Optional[str] = None


class AvailableDelivery(BaseModel):
    """Заказ в списке доступных доставок водителя."""

    id: str
    order_number: str
    status: OrderStatus
    items: list[OrderItem]
    item_count: int
    pickup_location: PickupLocation
    destination: Destination
    payment: OrderPayment
    total_amount: float
    delivery_fee: float
    is_urgent: bool
    distance_km: float = Field(..., description="Расстояние от точки забора до точки доставки")
    vendor: ContactInfo
    passenger: ContactInfo
    notes: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_order(
        cls,
        order: Order,
        *,
        distance_km: float,
        delivery_fee: float,
        vendor: ContactInfo,
        passenger: ContactInfo,
    ) -> "AvailableDelivery":
        return cls(
            id=order.id,
            order_number=order.order_number,
            status=order.status,
            items=order.items,
            item_count=order.item_count,
            pickup_location=order.pickup_location,
            destination=order.destination,
            payment=order.payment,
            total_amount=order.total_amount,
            delivery_fee=delivery_fee,
            is_urgent=order.is_urgent,
            distance_km=distance_km,
            vendor=vendor,
            passenger=passenger,
            notes=order.notes,
            created_at=order.created_at,
        )


class EarningsSummary(BaseModel):
    """Сводка заработка водителя."""

    total_earnings: float = 0.0
    pending_earnings: float = 0.0
    total_deliveries: int = 0
    pending_deliveries: int = 0
    average_earning_per_delivery: float = 0.0
    currency: str = "LSL"
    earnings: list[DriverEarnings] = Field(default_factory=list)
