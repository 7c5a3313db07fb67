# src/core/payments/models.py
"""
Модели платёжного журнала (одна запись на заказ) и DTO платёжных операций.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from src.common.constants import (
    MobileMoneyProvider,
    OrderPaymentStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from src.core.orders.models import Order


class Payment(BaseModel):
    """Запись платёжного журнала."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="ID платежа")
    order_id: str = Field(..., description="ID заказа")
    passenger_id: str = Field(..., description="ID пассажира")
    vendor_id: str = Field(..., description="ID продавца")
    amount: float = Field(..., ge=0.0, description="Сумма")
    payment_method: PaymentMethod = Field(..., description="Способ оплаты")
    phone_number: Optional[str] = Field(None, description="Телефон плательщика")
    status: PaymentStatus = Field(PaymentStatus.PENDING, description="Статус")
    reference: Optional[str] = Field(None, description="Референс провайдера")
    completed_at: Optional[datetime] = Field(None, description="Время завершения")
    failure_reason: Optional[str] = Field(None, description="Причина отказа или возврата")
    created_at: Optional[datetime] = Field(None, description="Время создания")
    updated_at: Optional[datetime] = Field(None, description="Время обновления")

    class Config:
        from_attributes = True


class ProviderResult(BaseModel):
    """Результат обращения к провайдеру мобильных денег."""

    success: bool
    reference: str
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None


# =============================================================================
# DTO
# =============================================================================

class InitiatePaymentDTO(BaseModel):
    """DTO запуска оплаты мобильными деньгами."""

    order_id: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1)

    @field_validator("phone_number")
    @classmethod
    def strip_phone(cls, v: str) -> str:
        return v.replace(" ", "").strip()


class ConfirmPaymentDTO(BaseModel):
    """DTO сверки статуса оплаты (callback провайдера или ручная проверка)."""

    order_id: str = Field(..., min_length=1)
    status: OrderPaymentStatus = Field(..., description="completed или failed")
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v: OrderPaymentStatus) -> OrderPaymentStatus:
        if v not in (OrderPaymentStatus.COMPLETED, OrderPaymentStatus.FAILED):
            raise ValueError("Допустимые статусы: completed, failed")
        return v


class RefundDTO(BaseModel):
    """DTO возврата."""

    order_id: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=500)


class PaymentStatusView(BaseModel):
    """Состояние оплаты заказа."""

    order_id: str
    order_status: OrderStatus
    order_payment_status: OrderPaymentStatus
    payment_status: Optional[PaymentStatus] = None
    amount: float
    method: PaymentMethod
    reference: Optional[str] = None
    transaction_id: Optional[str] = None


class PaymentInitiation(BaseModel):
    """Результат запуска оплаты."""

    order: Order
    payment: Payment
    transaction_id: Optional[str] = None
    message: str = ""


class CallbackAck(BaseModel):
    """Ответ на callback провайдера."""

    provider: MobileMoneyProvider
    received: bool = True
    payload: dict[str, Any] = Field(default_factory=dict)
