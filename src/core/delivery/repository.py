# src/core/delivery/repository.py
"""
Репозиторий заработка водителей.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from src.common.constants import EarningsStatus, TypeMsg
from src.common.logger import log_info
from src.core.delivery.models import DriverEarnings
from src.infra.database import DatabaseManager


_EARNINGS_COLUMNS = """
    id, driver_id, order_id, delivery_fee, commission, driver_amount, currency,
    status, payment_method, payment_date, completed_at, created_at
"""


class EarningsRepository:
    """Репозиторий записей DriverEarnings (одна запись на пару водитель/заказ)."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create_assigned(self, earnings: DriverEarnings) -> DriverEarnings:
        """
        Создаёт запись при назначении водителя.
        Повторное назначение того же водителя возвращает существующую запись в статусе assigned.
        """
        row = await self._db.fetchrow(
            f"""
            INSERT INTO driver_earnings (
                id, driver_id, order_id, delivery_fee, commission, driver_amount, currency, status
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (driver_id, order_id) DO UPDATE
                SET status = EXCLUDED.status, updated_at = NOW()
            RETURNING {_EARNINGS_COLUMNS}
            """,
            earnings.id,
            earnings.driver_id,
            earnings.order_id,
            earnings.delivery_fee,
            earnings.commission,
            earnings.driver_amount,
            earnings.currency,
            earnings.status.value,
        )
        await log_info(
            f"Заработок водителя {earnings.driver_id} по заказу {earnings.order_id}: {earnings.status.value}",
            type_msg=TypeMsg.DEBUG,
        )
        return self._row_to_earnings(row)

    async def upsert_split(self, earnings: DriverEarnings) -> DriverEarnings:
        """
        Записывает разделение комиссии после подтверждения оплаты.
        Существующая запись сохраняет свой статус, меняются суммы и способ оплаты.
        """
        row = await self._db.fetchrow(
            f"""
            INSERT INTO driver_earnings (
                id, driver_id, order_id, delivery_fee, commission, driver_amount, currency, status,
                payment_method
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            ON CONFLICT (driver_id, order_id) DO UPDATE
                SET delivery_fee = EXCLUDED.delivery_fee,
                    commission = EXCLUDED.commission,
                    driver_amount = EXCLUDED.driver_amount,
                    payment_method = EXCLUDED.payment_method,
                    updated_at = NOW()
            RETURNING {_EARNINGS_COLUMNS}
            """,
            earnings.id,
            earnings.driver_id,
            earnings.order_id,
            earnings.delivery_fee,
            earnings.commission,
            earnings.driver_amount,
            earnings.currency,
            earnings.status.value,
            earnings.payment_method,
        )
        return self._row_to_earnings(row)

    async def set_status(
        self,
        driver_id: str,
        order_id: str,
        status: EarningsStatus,
        completed_at: datetime | None = None,
    ) -> Optional[DriverEarnings]:
        """Меняет статус записи водителя по заказу."""
        row = await self._db.fetchrow(
            f"""
            UPDATE driver_earnings
            SET status = $3, completed_at = COALESCE($4, completed_at), updated_at = NOW()
            WHERE driver_id = $1 AND order_id = $2
            RETURNING {_EARNINGS_COLUMNS}
            """,
            driver_id,
            order_id,
            status.value,
            completed_at,
        )
        if row is None:
            return None
        return self._row_to_earnings(row)

    async def list_by_driver(self, driver_id: str) -> list[DriverEarnings]:
        """Все записи водителя, новые первыми."""
        rows = await self._db.fetch(
            f"""
            SELECT {_EARNINGS_COLUMNS} FROM driver_earnings
            WHERE driver_id = $1
            ORDER BY created_at DESC
            """,
            driver_id,
        )
        return [self._row_to_earnings(row) for row in rows]

    def _row_to_earnings(self, row: Any) -> DriverEarnings:
        """Конвертирует строку БД в модель DriverEarnings."""
        data = dict(row)
        for key in ("delivery_fee", "commission", "driver_amount"):
            if isinstance(data.get(key), Decimal):
                data[key] = float(data[key])
        return DriverEarnings.model_validate(data)
