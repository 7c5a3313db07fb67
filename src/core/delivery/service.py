# src/core/delivery/service.py
"""
Сервис доставки.
Назначение водителя, забор и завершение доставки, заработок водителя.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

from src.common.constants import (
    ACCEPTABLE_ORDER_STATUSES,
    DELIVERABLE_PAYMENT_STATUSES,
    EarningsStatus,
    OrderStatus,
    RealtimeEvents,
    Rooms,
    TypeMsg,
    UserRole,
)
from src.common.errors import (
    AlreadyAssignedError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from src.common.geo import calculate_distance
from src.common.logger import log_info
from src.config.loader import DeliverySettings
from src.core.delivery.models import AvailableDelivery, ContactInfo, DriverEarnings, EarningsSummary
from src.core.delivery.repository import EarningsRepository
from src.core.orders.models import Order, utc_now
from src.core.orders.repository import OrderRepository
from src.core.orders.service import order_payload, publish_event
from src.core.users.models import User
from src.core.users.repository import UserRepository
from src.infra.event_bus import EventBus, EventTypes
from src.infra.notifier import Notifier


def resolve_delivery_fee(order: Order, settings: DeliverySettings) -> float:
    """Стоимость доставки заказа: сохранённая или тариф по срочности."""
    if order.delivery_fee > 0:
        return order.delivery_fee
    return settings.URGENT_DELIVERY_FEE if order.is_urgent else settings.STANDARD_DELIVERY_FEE


class DeliveryService:
    """
    Сервис доставки.

    Назначение водителя выполняется одним условным UPDATE
    (водитель не назначен, статус и оплата подходят), поэтому из двух
    одновременных принятий успешно только одно.
    """

    def __init__(
        self,
        orders: OrderRepository,
        users: UserRepository,
        earnings: EarningsRepository,
        notifier: Notifier,
        event_bus: EventBus,
        delivery_settings: DeliverySettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._orders = orders
        self._users = users
        self._earnings = earnings
        self._notifier = notifier
        self._event_bus = event_bus
        self._delivery = delivery_settings or DeliverySettings()
        self._now = clock

    # =========================================================================
    # ДОСТУПНЫЕ ЗАКАЗЫ
    # =========================================================================

    async def list_available_orders(self, driver: User, limit: int = 50) -> list[AvailableDelivery]:
        """
        Заказы, которые водитель может взять.

        Args:
            driver: Водитель
            limit: Максимальное число заказов

        Returns:
            Список доставок, новые первыми
        """
        self._require_driver(driver)

        orders = await self._orders.list_available_for_driver(
            driver.id,
            statuses=ACCEPTABLE_ORDER_STATUSES,
            payment_statuses=DELIVERABLE_PAYMENT_STATUSES,
            limit=limit,
        )
        if not orders:
            return []

        user_ids = {o.vendor_id for o in orders} | {o.passenger_id for o in orders}
        profiles = await self._users.get_many(sorted(user_ids))

        result = []
        for order in orders:
            pickup = order.pickup_location.coordinates
            dest = order.destination.coordinates
            vendor = profiles.get(order.vendor_id)
            passenger = profiles.get(order.passenger_id)

            result.append(AvailableDelivery.from_order(
                order,
                distance_km=calculate_distance(pickup.latitude, pickup.longitude, dest.latitude, dest.longitude),
                delivery_fee=resolve_delivery_fee(order, self._delivery),
                vendor=ContactInfo(
                    name=order.pickup_location.vendor_name or (vendor.display_name if vendor else None),
                    phone=order.pickup_location.vendor_phone or (vendor.phone if vendor else None),
                ),
                passenger=ContactInfo(
                    name=order.destination.passenger_name or (passenger.full_name if passenger else None),
                    phone=order.destination.passenger_phone or (passenger.phone if passenger else None),
                ),
            ))
        return result

    async def list_assigned_orders(self, driver: User) -> list[Order]:
        """Заказы водителя в доставке."""
        self._require_driver(driver)
        return await self._orders.list_assigned_to_driver(driver.id, OrderStatus.DELIVERING)

    # =========================================================================
    # НАЗНАЧЕНИЕ
    # =========================================================================

    async def accept_order(self, driver: User, order_id: str) -> Order:
        """
        Водитель берёт заказ.

        Raises:
            NotFoundError: Заказ не найден
            AlreadyAssignedError: Заказ уже у другого водителя
            InvalidStateError: Статус заказа или оплаты не позволяет взять заказ
        """
        self._require_driver(driver)

        now = self._now()
        order = await self._orders.assign_driver(
            order_id,
            driver.id,
            allowed_statuses=ACCEPTABLE_ORDER_STATUSES,
            payment_statuses=DELIVERABLE_PAYMENT_STATUSES,
            now=now,
            estimated_delivery=now + timedelta(minutes=self._delivery.ESTIMATED_DELIVERY_MINUTES),
        )
        if order is None:
            await self._raise_assignment_conflict(order_id, driver.id, ACCEPTABLE_ORDER_STATUSES, check_payment=True)

        await self._after_assignment(order)

        await self._notifier.publish(Rooms.vendor(order.vendor_id), RealtimeEvents.DRIVER_ASSIGNED, order_payload(order))
        await self._notifier.publish(Rooms.passenger(order.passenger_id), RealtimeEvents.DRIVER_ASSIGNED, order_payload(order))
        await self._notifier.publish(Rooms.order(order.id), RealtimeEvents.ORDER_UPDATED, order_payload(order))

        await log_info(f"Водитель {driver.id} принял заказ {order_id}", type_msg=TypeMsg.INFO)
        return order

    async def assign_driver(self, actor: User, order_id: str, driver_id: str) -> Order:
        """
        Ручное назначение водителя продавцом или администратором.

        Raises:
            NotFoundError: Заказ или водитель не найден
            ForbiddenError: Не владелец заказа и не администратор
            ValidationError: Пользователь не водитель
            InvalidStateError: Заказ не в статусе ready
            AlreadyAssignedError: Заказ уже у другого водителя
        """
        order = await self._get_or_404(order_id)

        if actor.role == UserRole.VENDOR:
            if order.vendor_id != actor.id:
                raise ForbiddenError("Назначать водителя может только продавец заказа")
        elif not actor.is_admin:
            raise ForbiddenError("Назначать водителя могут только продавец или администратор")

        driver = await self._users.get_by_id(driver_id)
        if driver is None:
            raise NotFoundError(f"Водитель {driver_id} не найден", {"driver_id": driver_id})
        if not driver.is_driver:
            raise ValidationError("Пользователь не является водителем", {"driver_id": "не водитель"})

        allowed = (OrderStatus.READY.value,)
        now = self._now()
        assigned = await self._orders.assign_driver(
            order_id,
            driver_id,
            allowed_statuses=allowed,
            payment_statuses=None,
            now=now,
            estimated_delivery=now + timedelta(minutes=self._delivery.ESTIMATED_DELIVERY_MINUTES),
        )
        if assigned is None:
            await self._raise_assignment_conflict(order_id, driver_id, allowed, check_payment=False)

        await self._after_assignment(assigned)

        await self._notifier.publish(Rooms.driver(driver_id), RealtimeEvents.DELIVERY_ASSIGNED, order_payload(assigned))
        await self._notifier.publish(Rooms.order(assigned.id), RealtimeEvents.ORDER_UPDATED, order_payload(assigned))

        await log_info(
            f"Водитель {driver_id} назначен на заказ {order_id} ({actor.role.value} {actor.id})",
            type_msg=TypeMsg.INFO,
        )
        return assigned

    async def _after_assignment(self, order: Order) -> None:
        """Запись заработка и событие после успешного назначения."""
        fee = resolve_delivery_fee(order, self._delivery)
        await self._earnings.create_assigned(DriverEarnings(
            driver_id=order.taxi_driver_id,
            order_id=order.id,
            delivery_fee=fee,
            driver_amount=fee,
            currency=self._delivery.CURRENCY,
            status=EarningsStatus.ASSIGNED,
        ))
        await publish_event(self._event_bus, EventTypes.DELIVERY_ACCEPTED, {
            "order_id": order.id,
            "driver_id": order.taxi_driver_id,
            "vendor_id": order.vendor_id,
            "passenger_id": order.passenger_id,
            "delivery_fee": fee,
        })

    async def _raise_assignment_conflict(
        self,
        order_id: str,
        driver_id: str,
        allowed_statuses: tuple[str, ...],
        check_payment: bool,
    ) -> None:
        """Перечитывает заказ после неудачного назначения и бросает точную ошибку."""
        order = await self._get_or_404(order_id)

        if order.taxi_driver_id and order.taxi_driver_id != driver_id:
            raise AlreadyAssignedError(
                "Заказ уже назначен другому водителю",
                {"order_id": order_id},
            )
        if order.status.value not in allowed_statuses:
            raise InvalidStateError(
                f"Заказ в статусе '{order.status.value}' нельзя взять в доставку",
                {"current_status": order.status.value, "allowed_statuses": list(allowed_statuses)},
            )
        if check_payment and order.payment.status.value not in DELIVERABLE_PAYMENT_STATUSES:
            raise InvalidStateError(
                "Оплата заказа не подтверждена",
                {"payment_status": order.payment.status.value},
            )
        raise InvalidStateError("Заказ изменился, повторите запрос", {"order_id": order_id})

    async def reject_order(self, driver: User, order_id: str) -> Order:
        """Водитель отказывается от заказа. Повторный отказ ничего не меняет."""
        self._require_driver(driver)

        order = await self._orders.add_rejected_driver(order_id, driver.id)
        if order is None:
            raise NotFoundError(f"Заказ {order_id} не найден", {"order_id": order_id})

        await log_info(f"Водитель {driver.id} отказался от заказа {order_id}", type_msg=TypeMsg.DEBUG)
        return order

    # =========================================================================
    # ДОСТАВКА
    # =========================================================================

    async def start_delivery(self, driver: User, order_id: str) -> Order:
        """
        Водитель забрал заказ у продавца. Статус не меняется.

        Raises:
            NotFoundError: Заказ не найден
            ForbiddenError: Заказ назначен не этому водителю
        """
        self._require_driver(driver)
        order = await self._get_or_404(order_id)
        if order.taxi_driver_id != driver.id:
            raise ForbiddenError("Заказ назначен другому водителю")

        updated = await self._orders.confirm_pickup(order_id, driver.id, self._now())
        if updated is None:
            raise ForbiddenError("Заказ назначен другому водителю")

        await self._notifier.publish(Rooms.order(order_id), RealtimeEvents.ORDER_UPDATED, order_payload(updated))
        return updated

    async def complete_delivery(self, driver: User, order_id: str) -> Order:
        """
        Водитель доставил заказ.

        Raises:
            NotFoundError: Заказ не найден
            ForbiddenError: Заказ назначен не этому водителю
            InvalidStateError: Заказ не в статусе delivering
        """
        self._require_driver(driver)
        order = await self._get_or_404(order_id)
        if order.taxi_driver_id != driver.id:
            raise ForbiddenError("Заказ назначен другому водителю")
        if order.status != OrderStatus.DELIVERING:
            raise InvalidStateError(
                "Завершить можно только заказ в доставке",
                {"current_status": order.status.value},
            )

        now = self._now()
        completed = await self._orders.transition_status(
            order_id,
            OrderStatus.DELIVERING,
            OrderStatus.COMPLETED,
            now=now,
            actor_id=driver.id,
            driver_id=driver.id,
        )
        if completed is None:
            fresh = await self._get_or_404(order_id)
            raise InvalidStateError(
                "Завершить можно только заказ в доставке",
                {"current_status": fresh.status.value},
            )

        await self._earnings.set_status(driver.id, order_id, EarningsStatus.COMPLETED, completed_at=now)

        payload = order_payload(completed)
        await self._notifier.publish(Rooms.order(order_id), RealtimeEvents.ORDER_UPDATED, payload)
        await self._notifier.publish(Rooms.passenger(completed.passenger_id), RealtimeEvents.DELIVERY_COMPLETED, payload)
        await self._notifier.publish(Rooms.vendor(completed.vendor_id), RealtimeEvents.DELIVERY_COMPLETED, payload)

        await publish_event(self._event_bus, EventTypes.DELIVERY_COMPLETED, {
            "order_id": order_id,
            "driver_id": driver.id,
            "passenger_id": completed.passenger_id,
            "vendor_id": completed.vendor_id,
        })

        await log_info(f"Водитель {driver.id} завершил доставку заказа {order_id}", type_msg=TypeMsg.INFO)
        return completed

    # =========================================================================
    # ЗАРАБОТОК
    # =========================================================================

    async def get_driver_earnings(self, driver: User) -> EarningsSummary:
        """
        Сводка заработка водителя.

        total_earnings — сумма по завершённым доставкам,
        pending_earnings — по назначенным, но не завершённым.
        """
        self._require_driver(driver)
        records = await self._earnings.list_by_driver(driver.id)

        completed = [r for r in records if r.status == EarningsStatus.COMPLETED]
        assigned = [r for r in records if r.status == EarningsStatus.ASSIGNED]

        total = round(sum(r.delivery_fee for r in completed), 2)
        pending = round(sum(r.delivery_fee for r in assigned), 2)
        average = round(total / len(completed), 2) if completed else 0.0

        return EarningsSummary(
            total_earnings=total,
            pending_earnings=pending,
            total_deliveries=len(completed),
            pending_deliveries=len(assigned),
            average_earning_per_delivery=average,
            currency=self._delivery.CURRENCY,
            earnings=records,
        )

    # =========================================================================
    # ВСПОМОГАТЕЛЬНЫЕ
    # =========================================================================

    @staticmethod
    def _require_driver(user: User) -> None:
        if not user.is_driver:
            raise ForbiddenError("Действие доступно только водителям")

    async def _get_or_404(self, order_id: str) -> Order:
        order: Optional[Order] = await self._orders.get_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Заказ {order_id} не найден", {"order_id": order_id})
        return order
