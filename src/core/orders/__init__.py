# src/core/orders/__init__.py
"""
Домен заказов.
Модели, машина состояний и репозиторий заказов.
Сервис импортируется напрямую: src.core.orders.service.
"""

from src.core.orders.models import Order, OrderCreateDTO, OrderItem, OrderPayment
from src.core.orders.repository import OrderRepository
from src.core.orders.state_machine import OrderStateMachine

__all__ = [
    "Order",
    "OrderCreateDTO",
    "OrderItem",
    "OrderPayment",
    "OrderRepository",
    "OrderStateMachine",
]
