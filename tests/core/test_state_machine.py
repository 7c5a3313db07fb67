# tests/core/test_state_machine.py
"""
Тесты для машины состояний заказа.
"""

from __future__ import annotations

import pytest

from src.common.constants import OrderStatus
from src.common.errors import InvalidTransitionError
from src.core.orders.state_machine import OrderStateMachine


class TestCanTransition:
    """Тесты для таблицы переходов."""

    @pytest.mark.parametrize("current,new", [
        (OrderStatus.PENDING, OrderStatus.CONFIRMED),
        (OrderStatus.CONFIRMED, OrderStatus.PREPARING),
        (OrderStatus.PREPARING, OrderStatus.READY),
        (OrderStatus.READY, OrderStatus.DELIVERING),
        (OrderStatus.DELIVERING, OrderStatus.COMPLETED),
    ])
    def test_forward_path(self, current: OrderStatus, new: OrderStatus) -> None:
        """Основной путь заказа разрешён."""
        assert OrderStateMachine.can_transition(current, new) is True

    @pytest.mark.parametrize("current", [
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.DELIVERING,
    ])
    def test_cancel_from_any_active_status(self, current: OrderStatus) -> None:
        """Отмена разрешена из любого незавершённого статуса."""
        assert OrderStateMachine.can_transition(current, OrderStatus.CANCELLED) is True

    @pytest.mark.parametrize("terminal", [OrderStatus.COMPLETED, OrderStatus.CANCELLED])
    def test_terminal_statuses_have_no_exits(self, terminal: OrderStatus) -> None:
        """Из завершённого и отменённого заказа переходов нет."""
        for target in OrderStatus:
            assert OrderStateMachine.can_transition(terminal, target) is False

    def test_skipping_status_is_forbidden(self) -> None:
        """Перескочить через статус нельзя."""
        assert OrderStateMachine.can_transition(OrderStatus.PENDING, OrderStatus.READY) is False
        assert OrderStateMachine.can_transition(OrderStatus.CONFIRMED, OrderStatus.DELIVERING) is False

    def test_backward_transition_is_forbidden(self) -> None:
        assert OrderStateMachine.can_transition(OrderStatus.READY, OrderStatus.PREPARING) is False

    def test_same_status_is_forbidden(self) -> None:
        assert OrderStateMachine.can_transition(OrderStatus.PENDING, OrderStatus.PENDING) is False

    def test_accepts_raw_strings(self) -> None:
        """Строковые значения статусов принимаются наравне с enum."""
        assert OrderStateMachine.can_transition("pending", "confirmed") is True

    def test_unknown_status_returns_false(self) -> None:
        assert OrderStateMachine.can_transition("pending", "shipped") is False
        assert OrderStateMachine.can_transition("lost", "pending") is False


class TestEnsureTransition:
    """Тесты для ensure_transition."""

    def test_allowed_transition_passes(self) -> None:
        OrderStateMachine.ensure_transition(OrderStatus.PREPARING, OrderStatus.READY)

    def test_forbidden_transition_raises(self) -> None:
        """Ошибка содержит текущий и целевой статус."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            OrderStateMachine.ensure_transition(OrderStatus.COMPLETED, OrderStatus.CANCELLED)

        error = exc_info.value
        assert error.current_status == "completed"
        assert error.target_status == "cancelled"
        assert error.details == {"current_status": "completed", "target_status": "cancelled"}
        assert error.status_code == 400
