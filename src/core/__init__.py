# src/core/__init__.py
"""
Доменный слой (Core Domain).
Бизнес-логика заказов, доставки и оплаты поверх репозиториев.
"""

from src.core.catalog import Product
from src.core.orders import Order, OrderStateMachine
from src.core.users import User

__all__ = [
    "Product",
    "Order",
    "OrderStateMachine",
    "User",
]
