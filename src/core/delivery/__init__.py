# src/core/delivery/__init__.py
"""
Домен доставки: заработок водителей и представления для водительского приложения.
"""

from src.core.delivery.models import AvailableDelivery, DriverEarnings, EarningsSummary
from src.core.delivery.repository import EarningsRepository

__all__ = [
    "AvailableDelivery",
    "DriverEarnings",
    "EarningsSummary",
    "EarningsRepository",
]
