# tests/core/test_delivery_repository.py
"""
Тесты для репозитория заработка водителей.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock

import pytest

from src.common.constants import EarningsStatus
from src.core.delivery.models import DriverEarnings
from src.core.delivery.repository import EarningsRepository


def earnings_row(**overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": "earn-1",
        "driver_id": "driver-1",
        "order_id": "order-abc123",
        "delivery_fee": Decimal("15.00"),
        "commission": Decimal("0.00"),
        "driver_amount": Decimal("15.00"),
        "currency": "LSL",
        "status": "assigned",
        "payment_method": None,
        "payment_date": None,
        "completed_at": None,
        "created_at": None,
    }
    row.update(overrides)
    return row


@pytest.fixture
def repository(mock_db: AsyncMock) -> EarningsRepository:
    return EarningsRepository(db=mock_db)


class TestEarningsRepository:
    """Тесты для EarningsRepository."""

    @pytest.mark.asyncio
    async def test_create_assigned_upserts_by_driver_and_order(
        self, repository: EarningsRepository, mock_db: AsyncMock
    ) -> None:
        mock_db.fetchrow = AsyncMock(return_value=earnings_row())

        record = await repository.create_assigned(DriverEarnings(
            driver_id="driver-1",
            order_id="order-abc123",
            delivery_fee=15.0,
            driver_amount=15.0,
            status=EarningsStatus.ASSIGNED,
        ))

        assert record.status == EarningsStatus.ASSIGNED
        assert isinstance(record.delivery_fee, float)
        sql = mock_db.fetchrow.await_args.args[0]
        assert "ON CONFLICT (driver_id, order_id)" in sql
        assert mock_db.fetchrow.await_args.args[-1] == "assigned"

    @pytest.mark.asyncio
    async def test_upsert_split_keeps_status(self, repository: EarningsRepository, mock_db: AsyncMock) -> None:
        """При конфликте меняются только суммы."""
        mock_db.fetchrow = AsyncMock(return_value=earnings_row(
            status="completed", commission=Decimal("1.50"), driver_amount=Decimal("13.50")
        ))

        record = await repository.upsert_split(DriverEarnings(
            driver_id="driver-1",
            order_id="order-abc123",
            delivery_fee=15.0,
            commission=1.5,
            driver_amount=13.5,
        ))

        assert record.status == EarningsStatus.COMPLETED
        assert record.driver_amount == 13.5
        update_clause = mock_db.fetchrow.await_args.args[0].split("DO UPDATE")[1]
        assert "status" not in update_clause.split("RETURNING")[0]

    @pytest.mark.asyncio
    async def test_upsert_split_stores_payment_method(self, repository: EarningsRepository, mock_db: AsyncMock) -> None:
        mock_db.fetchrow = AsyncMock(return_value=earnings_row(status="pending", payment_method="mpesa"))

        record = await repository.upsert_split(DriverEarnings(
            driver_id="driver-1",
            order_id="order-abc123",
            delivery_fee=15.0,
            commission=1.5,
            driver_amount=13.5,
            payment_method="mpesa",
        ))

        query, *params = mock_db.fetchrow.await_args.args
        assert params[-1] == "mpesa"
        assert "payment_method = EXCLUDED.payment_method" in query
        assert record.payment_method == "mpesa"

    @pytest.mark.asyncio
    async def test_set_status(self, repository: EarningsRepository, mock_db: AsyncMock) -> None:
        now = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
        mock_db.fetchrow = AsyncMock(return_value=earnings_row(status="completed", completed_at=now))

        record = await repository.set_status("driver-1", "order-abc123", EarningsStatus.COMPLETED, completed_at=now)

        assert record.completed_at == now
        assert mock_db.fetchrow.await_args.args[1:] == ("driver-1", "order-abc123", "completed", now)

    @pytest.mark.asyncio
    async def test_set_status_missing_record(self, repository: EarningsRepository, mock_db: AsyncMock) -> None:
        mock_db.fetchrow = AsyncMock(return_value=None)

        assert await repository.set_status("driver-1", "order-x", EarningsStatus.CANCELLED) is None

    @pytest.mark.asyncio
    async def test_list_by_driver(self, repository: EarningsRepository, mock_db: AsyncMock) -> None:
        mock_db.fetch = AsyncMock(return_value=[earnings_row(), earnings_row(id="earn-2", order_id="o2")])

        records = await repository.list_by_driver("driver-1")

        assert [r.order_id for r in records] == ["order-abc123", "o2"]
