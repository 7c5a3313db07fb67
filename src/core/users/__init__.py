# src/core/users/__init__.py
"""
Каталог пользователей.
"""

from src.core.users.models import TaxiDriverInfo, User, VendorInfo
from src.core.users.repository import UserRepository

__all__ = [
    "User",
    "VendorInfo",
    "TaxiDriverInfo",
    "UserRepository",
]
