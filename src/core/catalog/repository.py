# src/core/catalog/repository.py
"""
Репозиторий товаров.

Остаток меняется только условными UPDATE, поэтому
одновременные заказы не уводят stock_quantity в минус.
"""

from __future__ import annotations

from typing import Any, Optional

from src.common.logger import log_debug
from src.core.catalog.models import Product
from src.infra.database import DatabaseManager, affected_rows


class ProductRepository:
    """Репозиторий товаров."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        """Получает товар по ID."""
        row = await self._db.fetchrow(
            """
            SELECT id, vendor_id, name, description, category, price, currency,
                   stock_quantity, available, created_at
            FROM products
            WHERE id = $1
            """,
            product_id,
        )
        if row is None:
            return None
        return self._row_to_product(row)

    async def decrement_stock(self, product_id: str, quantity: int) -> Optional[Product]:
        """
        Списывает остаток, если товар доступен и остатка хватает.

        Returns:
            Обновлённый товар или None, если условие не выполнилось
        """
        row = await self._db.fetchrow(
            """
            UPDATE products
            SET stock_quantity = stock_quantity - $2, updated_at = NOW()
            WHERE id = $1 AND available AND stock_quantity >= $2
            RETURNING id, vendor_id, name, description, category, price, currency,
                      stock_quantity, available, created_at
            """,
            product_id,
            quantity,
        )
        if row is None:
            return None

        await log_debug(f"Остаток товара {product_id} уменьшен на {quantity}")
        return self._row_to_product(row)

    async def restore_stock(self, product_id: str, quantity: int) -> bool:
        """
        Возвращает остаток на склад.

        Returns:
            True, если товар существует и остаток обновлён
        """
        result = await self._db.execute(
            """
            UPDATE products
            SET stock_quantity = stock_quantity + $2, updated_at = NOW()
            WHERE id = $1
            """,
            product_id,
            quantity,
        )
        return affected_rows(result) == 1

    def _row_to_product(self, row: Any) -> Product:
        """Конвертирует строку БД в модель Product."""
        return Product(
            id=row["id"],
            vendor_id=row["vendor_id"],
            name=row["name"],
            description=row["description"],
            category=row["category"],
            price=float(row["price"]),
            currency=row["currency"],
            stock_quantity=row["stock_quantity"],
            available=row["available"],
            created_at=row["created_at"],
        )
