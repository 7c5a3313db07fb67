# src/core/payments/repository.py
"""
Репозиторий платёжного журнала (PostgreSQL).
Таблица: payments, не более одной записи на заказ.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from src.common.constants import PaymentStatus, TypeMsg
from src.common.logger import log_info
from src.core.payments.models import Payment
from src.infra.database import DatabaseManager


_PAYMENT_COLUMNS = """
    id, order_id, passenger_id, vendor_id, amount, payment_method, phone_number,
    status, reference, completed_at, failure_reason, created_at, updated_at
"""


class PaymentRepository:
    """Репозиторий платежей."""

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    async def get_by_order(self, order_id: str) -> Optional[Payment]:
        """Запись журнала по заказу."""
        row = await self.db.fetchrow(
            f"SELECT {_PAYMENT_COLUMNS} FROM payments WHERE order_id = $1",
            order_id,
        )
        if row is None:
            return None
        return self._row_to_payment(row)

    async def upsert(self, payment: Payment) -> Payment:
        """
        Создаёт запись для заказа или обновляет существующую.
        id существующей записи сохраняется.
        """
        row = await self.db.fetchrow(
            f"""
            INSERT INTO payments (
                id, order_id, passenger_id, vendor_id, amount, payment_method,
                phone_number, status, reference, completed_at, failure_reason
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            ON CONFLICT (order_id) DO UPDATE
                SET amount = EXCLUDED.amount,
                    payment_method = EXCLUDED.payment_method,
                    phone_number = COALESCE(EXCLUDED.phone_number, payments.phone_number),
                    status = EXCLUDED.status,
                    reference = COALESCE(EXCLUDED.reference, payments.reference),
                    completed_at = COALESCE(EXCLUDED.completed_at, payments.completed_at),
                    failure_reason = EXCLUDED.failure_reason,
                    updated_at = NOW()
            RETURNING {_PAYMENT_COLUMNS}
            """,
            payment.id,
            payment.order_id,
            payment.passenger_id,
            payment.vendor_id,
            payment.amount,
            payment.payment_method.value,
            payment.phone_number,
            payment.status.value,
            payment.reference,
            payment.completed_at,
            payment.failure_reason,
        )
        await log_info(
            f"Платёж по заказу {payment.order_id}: {payment.status.value}",
            type_msg=TypeMsg.DEBUG,
        )
        return self._row_to_payment(row)

    async def set_status(
        self,
        order_id: str,
        status: PaymentStatus,
        *,
        expected: PaymentStatus | None = None,
        reference: str | None = None,
        failure_reason: str | None = None,
        completed_at: datetime | None = None,
    ) -> Optional[Payment]:
        """
        Меняет статус записи.

        Args:
            expected: Условие на текущий статус (None — без условия)

        Returns:
            Обновлённая запись или None, если записи нет или условие не выполнилось
        """
        row = await self.db.fetchrow(
            f"""
            UPDATE payments
            SET status = $2,
                reference = COALESCE($3, reference),
                failure_reason = COALESCE($4, failure_reason),
                completed_at = COALESCE($5, completed_at),
                updated_at = NOW()
            WHERE order_id = $1
              AND ($6::text IS NULL OR status = $6::text)
            RETURNING {_PAYMENT_COLUMNS}
            """,
            order_id,
            status.value,
            reference,
            failure_reason,
            completed_at,
            expected.value if expected is not None else None,
        )
        if row is None:
            return None
        return self._row_to_payment(row)

    def _row_to_payment(self, row: Any) -> Payment:
        data = dict(row)
        if isinstance(data.get("amount"), Decimal):
            data["amount"] = float(data["amount"])
        return Payment.model_validate(data)
