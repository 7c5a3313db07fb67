# tests/core/test_orders_models.py
"""
Тесты для моделей заказов.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.common.constants import OrderStatus
from src.core.orders.models import OrderCreateDTO, OrderRatingDTO


LOCATION = {"address": "Maseru", "coordinates": {"latitude": -29.31, "longitude": 27.48}}


class TestOrder:
    """Тесты для модели Order."""

    def test_order_number_from_id_suffix(self, make_order) -> None:
        assert make_order("a1b2c3d4-e5f6-7788-99aa-bbccddeeff00").order_number == "ORDER-EEFF00"

    def test_totals(self, make_order) -> None:
        order = make_order()

        assert sum(item.subtotal for item in order.items) == 100.0
        assert order.item_count == 2

    def test_involves(self, make_order) -> None:
        order = make_order(taxi_driver_id="driver-1")

        assert order.involves("passenger-1")
        assert order.involves("vendor-1")
        assert order.involves("driver-1")
        assert not order.involves("someone-else")

    @pytest.mark.parametrize("status,expected", [
        (OrderStatus.PENDING, True),
        (OrderStatus.CONFIRMED, True),
        (OrderStatus.PREPARING, False),
        (OrderStatus.DELIVERING, False),
    ])
    def test_passenger_cancellable(self, make_order, status: OrderStatus, expected: bool) -> None:
        assert make_order(status=status).is_cancellable_by_passenger is expected

    def test_items_required(self, make_order) -> None:
        with pytest.raises(ValidationError):
            make_order(items=[])


class TestOrderCreateDTO:
    """Тесты для OrderCreateDTO."""

    def test_cash_without_phone(self) -> None:
        dto = OrderCreateDTO(
            items=[{"product_id": "p1", "quantity": 1}],
            pickup_location=LOCATION,
            destination=LOCATION,
            payment={"method": "cash"},
        )

        assert dto.is_urgent is False

    def test_mobile_money_requires_phone(self) -> None:
        with pytest.raises(ValidationError):
            OrderCreateDTO(
                items=[{"product_id": "p1", "quantity": 1}],
                pickup_location=LOCATION,
                destination=LOCATION,
                payment={"method": "ecocash"},
            )

    def test_zero_quantity_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OrderCreateDTO(
                items=[{"product_id": "p1", "quantity": 0}],
                pickup_location=LOCATION,
                destination=LOCATION,
                payment={"method": "cash"},
            )

    def test_invalid_coordinates_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OrderCreateDTO(
                items=[{"product_id": "p1", "quantity": 1}],
                pickup_location={"address": "X", "coordinates": {"latitude": 95, "longitude": 0}},
                destination=LOCATION,
                payment={"method": "cash"},
            )


class TestOrderRatingDTO:
    def test_feedback_is_trimmed(self) -> None:
        assert OrderRatingDTO(rating=5, feedback="  Fast!  ").feedback == "Fast!"
        assert OrderRatingDTO(rating=5, feedback="   ").feedback is None

    @pytest.mark.parametrize("rating", [0, 6])
    def test_rating_range(self, rating: int) -> None:
        with pytest.raises(ValidationError):
            OrderRatingDTO(rating=rating)
