# src/core/catalog/__init__.py
"""
Каталог товаров: чтение и управление остатками.
"""

from src.core.catalog.models import Product
from src.core.catalog.repository import ProductRepository

__all__ = ["Product", "ProductRepository"]
