# src/core/payments/__init__.py
"""
Домен оплаты: платёжный журнал и симуляция провайдеров мобильных денег.
"""

from src.core.payments.models import Payment, PaymentInitiation, PaymentStatusView
from src.core.payments.provider import MobileMoneyGateway
from src.core.payments.repository import PaymentRepository

__all__ = [
    "Payment",
    "PaymentInitiation",
    "PaymentStatusView",
    "MobileMoneyGateway",
    "PaymentRepository",
]
