# src/core/orders/repository.py
"""
Репозиторий для работы с заказами в БД.

Все изменения статуса, назначения водителя и оплаты выполняются одним
условным UPDATE ... WHERE <условие> RETURNING. Если условие не выполнилось,
метод возвращает None, а сервис перечитывает заказ и формирует точную ошибку.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from src.common.constants import OrderStatus, TypeMsg
from src.common.logger import log_error, log_info
from src.core.orders.models import Order, OrderRatingDTO, OrderStats
from src.infra.database import DatabaseManager


_ORDER_COLUMNS = """
    id, passenger_id, vendor_id, taxi_driver_id,
    items, pickup_location, destination, payment,
    status, total_amount, delivery_fee, is_urgent, notes, rejected_drivers,
    driver_assigned_at, pickup_confirmed_at, delivery_confirmed_at,
    estimated_delivery, actual_delivery, cancelled_at, cancelled_by,
    created_at, updated_at,
    rating, vendor_rating, driver_rating, feedback
"""

# Колонка, по которой роль видит «свои» заказы
_OWNER_COLUMNS = {
    "passenger": "passenger_id",
    "vendor": "vendor_id",
    "taxi_driver": "taxi_driver_id",
}


class OrderRepository:
    """Репозиторий заказов."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """Получает заказ по ID."""
        row = await self._db.fetchrow(
            f"SELECT {_ORDER_COLUMNS} FROM orders WHERE id = $1",
            order_id,
        )
        if row is None:
            return None
        return self._row_to_order(row)

    async def list_orders(
        self,
        *,
        owner_role: str | None = None,
        owner_id: str | None = None,
        status: OrderStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Order], int]:
        """
        Список заказов (новые первыми) и общее количество.

        Args:
            owner_role: Роль владельца (passenger, vendor, taxi_driver); None — все заказы
            owner_id: ID владельца
            status: Фильтр по статусу
            limit: Размер страницы
            offset: Смещение
        """
        conditions: list[str] = []
        params: list[Any] = []

        if owner_role is not None:
            column = _OWNER_COLUMNS[owner_role]
            params.append(owner_id)
            conditions.append(f"{column} = ${len(params)}")

        if status is not None:
            params.append(status.value)
            conditions.append(f"status = ${len(params)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        total = await self._db.fetchval(f"SELECT COUNT(*) FROM orders {where}", *params)

        rows = await self._db.fetch(
            f"""
            SELECT {_ORDER_COLUMNS} FROM orders
            {where}
            ORDER BY created_at DESC
            LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
            """,
            *params,
            limit,
            offset,
        )
        return [self._row_to_order(row) for row in rows], int(total or 0)

    async def list_available_for_driver(
        self,
        driver_id: str,
        statuses: tuple[str, ...],
        payment_statuses: tuple[str, ...],
        limit: int = 50,
    ) -> list[Order]:
        """
        Заказы без водителя, готовые к доставке и не отклонённые этим водителем.
        """
        rows = await self._db.fetch(
            f"""
            SELECT {_ORDER_COLUMNS} FROM orders
            WHERE status = ANY($1::text[])
              AND taxi_driver_id IS NULL
              AND payment->>'status' = ANY($2::text[])
              AND NOT ($3 = ANY(rejected_drivers))
            ORDER BY created_at DESC
            LIMIT $4
            """,
            list(statuses),
            list(payment_statuses),
            driver_id,
            limit,
        )
        return [self._row_to_order(row) for row in rows]

    async def list_assigned_to_driver(self, driver_id: str, status: OrderStatus) -> list[Order]:
        """Заказы, назначенные водителю, в указанном статусе."""
        rows = await self._db.fetch(
            f"""
            SELECT {_ORDER_COLUMNS} FROM orders
            WHERE taxi_driver_id = $1 AND status = $2
            ORDER BY driver_assigned_at DESC NULLS LAST
            """,
            driver_id,
            status.value,
        )
        return [self._row_to_order(row) for row in rows]

    async def get_stats(self, day_start: datetime) -> OrderStats:
        """Агрегаты по заказам для администратора."""
        rows = await self._db.fetch(
            """
            SELECT status, COUNT(*) AS cnt, COALESCE(SUM(total_amount), 0) AS revenue
            FROM orders
            GROUP BY status
            """
        )
        today = await self._db.fetchrow(
            """
            SELECT COUNT(*) AS cnt,
                   COALESCE(SUM(total_amount) FILTER (WHERE status = 'completed'), 0) AS revenue
            FROM orders
            WHERE created_at >= $1
            """,
            day_start,
        )

        by_status = {row["status"]: int(row["cnt"]) for row in rows}
        completed_revenue = sum(
            float(row["revenue"]) for row in rows if row["status"] == OrderStatus.COMPLETED.value
        )
        return OrderStats(
            total_orders=sum(by_status.values()),
            by_status=by_status,
            completed_revenue=completed_revenue,
            today_orders=int(today["cnt"]) if today else 0,
            today_revenue=float(today["revenue"]) if today else 0.0,
        )

    # =========================================================================
    # ЗАПИСЬ
    # =========================================================================

    async def create(self, order: Order) -> Order:
        """
        Создаёт новый заказ.

        Returns:
            Сохранённый заказ (со значениями по умолчанию из БД)
        """
        try:
            row = await self._db.fetchrow(
                f"""
                INSERT INTO orders (
                    id, passenger_id, vendor_id, taxi_driver_id,
                    items, pickup_location, destination, payment,
                    status, total_amount, delivery_fee, is_urgent, notes,
                    created_at, updated_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $14)
                RETURNING {_ORDER_COLUMNS}
                """,
                order.id,
                order.passenger_id,
                order.vendor_id,
                order.taxi_driver_id,
                [item.model_dump(mode="json") for item in order.items],
                order.pickup_location.model_dump(mode="json"),
                order.destination.model_dump(mode="json"),
                order.payment.model_dump(mode="json"),
                order.status.value,
                order.total_amount,
                order.delivery_fee,
                order.is_urgent,
                order.notes,
                order.created_at,
            )
        except Exception as e:
            await log_error(f"Ошибка создания заказа {order.id}: {e}")
            raise

        await log_info(f"Заказ {order.id} создан", type_msg=TypeMsg.DEBUG)
        return self._row_to_order(row)

    async def transition_status(
        self,
        order_id: str,
        expected: OrderStatus,
        target: OrderStatus,
        *,
        now: datetime,
        actor_id: str | None = None,
        estimated_delivery: datetime | None = None,
        driver_id: str | None = None,
    ) -> Optional[Order]:
        """
        Меняет статус, только если текущий статус равен expected.

        Побочные поля выставляются в том же UPDATE:
        - delivering: estimated_delivery, pickup_confirmed_at (если ещё не задан)
        - completed: actual_delivery, delivery_confirmed_at
        - cancelled: cancelled_at, cancelled_by

        Args:
            driver_id: Дополнительное условие — заказ назначен этому водителю

        Returns:
            Обновлённый заказ или None, если условие не выполнилось
        """
        params: list[Any] = [order_id, expected.value, target.value, now]
        set_clauses = ["status = $3", "updated_at = $4"]

        if target == OrderStatus.DELIVERING:
            params.append(estimated_delivery)
            set_clauses.append(f"estimated_delivery = ${len(params)}")
            set_clauses.append("pickup_confirmed_at = COALESCE(pickup_confirmed_at, $4)")
        elif target == OrderStatus.COMPLETED:
            set_clauses.append("actual_delivery = $4")
            set_clauses.append("delivery_confirmed_at = $4")
        elif target == OrderStatus.CANCELLED:
            params.append(actor_id)
            set_clauses.append("cancelled_at = $4")
            set_clauses.append(f"cancelled_by = ${len(params)}")

        conditions = ["id = $1", "status = $2"]
        if driver_id is not None:
            params.append(driver_id)
            conditions.append(f"taxi_driver_id = ${len(params)}")

        row = await self._db.fetchrow(
            f"""
            UPDATE orders
            SET {", ".join(set_clauses)}
            WHERE {" AND ".join(conditions)}
            RETURNING {_ORDER_COLUMNS}
            """,
            *params,
        )
        if row is None:
            return None

        await log_info(
            f"Статус заказа {order_id}: {expected.value} -> {target.value}",
            type_msg=TypeMsg.DEBUG,
        )
        return self._row_to_order(row)

    async def assign_driver(
        self,
        order_id: str,
        driver_id: str,
        *,
        allowed_statuses: tuple[str, ...],
        payment_statuses: tuple[str, ...] | None,
        now: datetime,
        estimated_delivery: datetime,
    ) -> Optional[Order]:
        """
        Назначает водителя и переводит заказ в delivering.

        Условие: водитель не назначен (или назначен этот же), статус из allowed_statuses,
        статус оплаты из payment_statuses (None — без проверки оплаты).

        Returns:
            Обновлённый заказ или None, если условие не выполнилось
        """
        row = await self._db.fetchrow(
            f"""
            UPDATE orders
            SET taxi_driver_id = $2,
                status = $3,
                driver_assigned_at = $4,
                estimated_delivery = $5,
                updated_at = $4
            WHERE id = $1
              AND (taxi_driver_id IS NULL OR taxi_driver_id = $2)
              AND status = ANY($6::text[])
              AND ($7::text[] IS NULL OR payment->>'status' = ANY($7::text[]))
            RETURNING {_ORDER_COLUMNS}
            """,
            order_id,
            driver_id,
            OrderStatus.DELIVERING.value,
            now,
            estimated_delivery,
            list(allowed_statuses),
            list(payment_statuses) if payment_statuses is not None else None,
        )
        if row is None:
            return None

        await log_info(f"Водитель {driver_id} назначен на заказ {order_id}", type_msg=TypeMsg.DEBUG)
        return self._row_to_order(row)

    async def add_rejected_driver(self, order_id: str, driver_id: str) -> Optional[Order]:
        """
        Добавляет водителя в rejected_drivers без дублей.

        Returns:
            Заказ после изменения или None, если заказа нет
        """
        await self._db.execute(
            """
            UPDATE orders
            SET rejected_drivers = array_append(rejected_drivers, $2), updated_at = NOW()
            WHERE id = $1 AND NOT ($2 = ANY(rejected_drivers))
            """,
            order_id,
            driver_id,
        )
        return await self.get_by_id(order_id)

    async def confirm_pickup(self, order_id: str, driver_id: str, now: datetime) -> Optional[Order]:
        """Отмечает забор заказа водителем (время не перезаписывается)."""
        row = await self._db.fetchrow(
            f"""
            UPDATE orders
            SET pickup_confirmed_at = COALESCE(pickup_confirmed_at, $3), updated_at = $3
            WHERE id = $1 AND taxi_driver_id = $2
            RETURNING {_ORDER_COLUMNS}
            """,
            order_id,
            driver_id,
            now,
        )
        if row is None:
            return None
        return self._row_to_order(row)

    async def update_payment(
        self,
        order_id: str,
        patch: dict[str, Any],
        *,
        confirm_if_pending: bool = False,
        expected_payment_status: str | None = None,
    ) -> Optional[Order]:
        """
        Частично обновляет встроенную оплату (payment || patch).

        Args:
            patch: Поля оплаты для перезаписи (JSON-совместимые значения)
            confirm_if_pending: В том же UPDATE перевести заказ pending -> confirmed
            expected_payment_status: Условие на текущий статус оплаты

        Returns:
            Обновлённый заказ или None, если условие не выполнилось
        """
        row = await self._db.fetchrow(
            f"""
            UPDATE orders
            SET payment = payment || $2::jsonb,
                status = CASE WHEN $3 AND status = 'pending' THEN 'confirmed' ELSE status END,
                updated_at = NOW()
            WHERE id = $1
              AND ($4::text IS NULL OR payment->>'status' = $4::text)
            RETURNING {_ORDER_COLUMNS}
            """,
            order_id,
            patch,
            confirm_if_pending,
            expected_payment_status,
        )
        if row is None:
            return None
        return self._row_to_order(row)

    async def set_rating(self, order_id: str, passenger_id: str, dto: OrderRatingDTO) -> Optional[Order]:
        """Сохраняет оценки завершённого заказа его пассажиром."""
        row = await self._db.fetchrow(
            f"""
            UPDATE orders
            SET rating = $3, vendor_rating = $4, driver_rating = $5, feedback = $6, updated_at = NOW()
            WHERE id = $1 AND passenger_id = $2 AND status = 'completed'
            RETURNING {_ORDER_COLUMNS}
            """,
            order_id,
            passenger_id,
            dto.rating,
            dto.vendor_rating,
            dto.driver_rating,
            dto.feedback,
        )
        if row is None:
            return None
        return self._row_to_order(row)

    def _row_to_order(self, row: Any) -> Order:
        """Конвертирует строку БД в модель Order."""
        data = dict(row)
        for key in ("total_amount", "delivery_fee"):
            if isinstance(data.get(key), Decimal):
                data[key] = float(data[key])
        data["rejected_drivers"] = list(data.get("rejected_drivers") or [])
        return Order.model_validate(data)
