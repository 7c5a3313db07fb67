# src/core/orders/service.py
"""
Сервис для работы с заказами.
Жизненный цикл заказа: оформление, смена статуса, просмотр, оценка.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from src.common.constants import (
    EarningsStatus,
    OrderPaymentStatus,
    OrderStatus,
    PaymentMethod,
    RealtimeEvents,
    Rooms,
    TypeMsg,
    UserRole,
)
from src.common.errors import (
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from src.common.logger import log_error, log_info, log_warning
from src.config.loader import DeliverySettings
from src.core.catalog.repository import ProductRepository
from src.core.delivery.repository import EarningsRepository
from src.core.orders.models import (
    Order,
    OrderCreateDTO,
    OrderItem,
    OrderPayment,
    OrderRatingDTO,
    OrderStats,
    utc_now,
)
from src.core.orders.repository import OrderRepository
from src.core.orders.state_machine import OrderStateMachine
from src.core.users.models import User
from src.infra.event_bus import DomainEvent, EventBus, EventTypes
from src.infra.notifier import Notifier
from src.shared.models.common import PaginatedResponse, PaginationParams


def order_payload(order: Order) -> dict[str, Any]:
    """Представление заказа для событий реального времени."""
    data = order.model_dump(mode="json")
    data["order_number"] = order.order_number
    return data


async def publish_event(event_bus: EventBus, event_type: str, payload: dict[str, Any]) -> None:
    """Публикует доменное событие, не прерывая основной сценарий."""
    try:
        await event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
    except Exception as e:
        await log_error(f"Не удалось опубликовать {event_type}: {e}")


class OrderService:
    """
    Сервис заказов.
    Управляет жизненным циклом заказов.
    """

    def __init__(
        self,
        orders: OrderRepository,
        products: ProductRepository,
        earnings: EarningsRepository,
        notifier: Notifier,
        event_bus: EventBus,
        delivery_settings: DeliverySettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Args:
            orders: Репозиторий заказов
            products: Репозиторий товаров
            earnings: Репозиторий заработка водителей
            notifier: Отправка событий в комнаты реального времени
            event_bus: Шина доменных событий
            delivery_settings: Тарифы доставки (по умолчанию из конфигурации)
            clock: Источник текущего времени (UTC)
        """
        self._orders = orders
        self._products = products
        self._earnings = earnings
        self._notifier = notifier
        self._event_bus = event_bus
        self._delivery = delivery_settings or DeliverySettings()
        self._now = clock

    # =========================================================================
    # ОФОРМЛЕНИЕ
    # =========================================================================

    async def create_order(self, actor: User, dto: OrderCreateDTO) -> Order:
        """
        Оформляет заказ пассажира.

        Остаток каждого товара списывается условным UPDATE по мере проверки позиций.
        Если позиция не прошла проверку, уже списанные остатки предыдущих позиций
        не возвращаются.

        Raises:
            ForbiddenError: Заказ оформляет не пассажир
            NotFoundError: Товар не найден
            ValidationError: Товар недоступен, не хватает остатка или товары разных продавцов
        """
        if actor.role != UserRole.PASSENGER:
            raise ForbiddenError("Оформлять заказы могут только пассажиры")

        order_items: list[OrderItem] = []
        vendor_id: Optional[str] = None

        for index, item in enumerate(dto.items):
            product = await self._products.get_by_id(item.product_id)
            if product is None:
                raise NotFoundError(
                    f"Товар {item.product_id} не найден",
                    {"product_id": item.product_id},
                )

            if not product.can_supply(item.quantity):
                raise ValidationError(
                    f"Товар {product.name.en} недоступен в запрошенном количестве",
                    {f"items[{index}].quantity": f"доступно: {product.stock_quantity if product.available else 0}"},
                )

            if vendor_id is None:
                vendor_id = product.vendor_id
            elif vendor_id != product.vendor_id:
                raise ValidationError(
                    "Все товары заказа должны быть от одного продавца",
                    {f"items[{index}].product_id": "другой продавец"},
                )

            updated = await self._products.decrement_stock(product.id, item.quantity)
            if updated is None:
                # Остаток забрал параллельный заказ
                raise ValidationError(
                    f"Товар {product.name.en} недоступен в запрошенном количестве",
                    {f"items[{index}].quantity": "остаток изменился"},
                )

            order_items.append(OrderItem(
                product_id=product.id,
                product_name=product.name,
                quantity=item.quantity,
                price=product.price,
            ))

        delivery_fee = (
            self._delivery.URGENT_DELIVERY_FEE if dto.is_urgent else self._delivery.STANDARD_DELIVERY_FEE
        )
        total_amount = round(sum(i.subtotal for i in order_items) + delivery_fee, 2)

        payment_status = (
            OrderPaymentStatus.PENDING
            if dto.payment.method == PaymentMethod.CASH
            else OrderPaymentStatus.PROCESSING
        )

        now = self._now()
        order = Order(
            passenger_id=actor.id,
            vendor_id=vendor_id,
            items=order_items,
            pickup_location=dto.pickup_location,
            destination=dto.destination,
            payment=OrderPayment(
                method=dto.payment.method,
                status=payment_status,
                phone_number=dto.payment.phone_number,
                amount=total_amount,
            ),
            status=OrderStatus.PENDING,
            total_amount=total_amount,
            delivery_fee=delivery_fee,
            is_urgent=dto.is_urgent,
            notes=dto.notes,
            created_at=now,
            updated_at=now,
        )

        created = await self._orders.create(order)

        await self._notifier.publish(Rooms.vendor(created.vendor_id), RealtimeEvents.NEW_ORDER, order_payload(created))
        await publish_event(self._event_bus, EventTypes.ORDER_CREATED, {
            "order_id": created.id,
            "passenger_id": created.passenger_id,
            "vendor_id": created.vendor_id,
            "total_amount": created.total_amount,
            "payment_method": created.payment.method.value,
        })

        await log_info(
            f"Заказ {created.id} оформлен пассажиром {actor.id} на сумму {created.total_amount}",
            type_msg=TypeMsg.INFO,
        )
        return created

    # =========================================================================
    # СМЕНА СТАТУСА
    # =========================================================================

    async def update_status(self, actor: User, order_id: str, target: OrderStatus) -> Order:
        """
        Переводит заказ в новый статус.

        Порядок проверок: права актора, затем таблица переходов.
        Запись выполняется условным UPDATE по текущему статусу.

        Raises:
            NotFoundError: Заказ не найден
            ForbiddenError: Актор не может менять этот заказ
            InvalidTransitionError: Переход не разрешён
        """
        order = await self._get_or_404(order_id)

        self._authorize_transition(actor, order, target)
        OrderStateMachine.ensure_transition(order.status, target)

        now = self._now()
        updated = await self._orders.transition_status(
            order.id,
            order.status,
            target,
            now=now,
            actor_id=actor.id,
            estimated_delivery=now + timedelta(minutes=self._delivery.ESTIMATED_DELIVERY_MINUTES),
        )

        if updated is None:
            # Статус изменился между чтением и записью
            fresh = await self._get_or_404(order_id)
            raise InvalidTransitionError(fresh.status.value, target.value)

        await self._apply_transition_effects(updated, now)
        await self._notify_transition(actor, updated, target)

        await publish_event(self._event_bus, EventTypes.ORDER_STATUS_CHANGED, {
            "order_id": updated.id,
            "from_status": order.status.value,
            "to_status": target.value,
            "actor_id": actor.id,
            "actor_role": actor.role.value,
        })
        if target == OrderStatus.CANCELLED:
            await publish_event(self._event_bus, EventTypes.ORDER_CANCELLED, {
                "order_id": updated.id,
                "cancelled_by": actor.id,
                "passenger_id": updated.passenger_id,
                "vendor_id": updated.vendor_id,
            })

        await log_info(
            f"Заказ {order_id}: {order.status.value} -> {target.value} ({actor.role.value} {actor.id})",
            type_msg=TypeMsg.INFO,
        )
        return updated

    def _authorize_transition(self, actor: User, order: Order, target: OrderStatus) -> None:
        """Проверяет, может ли актор перевести заказ в целевой статус."""
        details = {"current_status": order.status.value, "target_status": target.value}

        if actor.is_admin:
            return
        if actor.role == UserRole.VENDOR and order.vendor_id == actor.id:
            return
        if actor.is_driver and order.taxi_driver_id == actor.id:
            return

        if actor.role == UserRole.PASSENGER and order.passenger_id == actor.id:
            if target != OrderStatus.CANCELLED:
                raise ForbiddenError(
                    f"Пассажир может только отменить заказ (запрошен статус '{target.value}')",
                    details,
                )
            if not order.is_cancellable_by_passenger:
                raise ForbiddenError(
                    f"Отменить можно только заказ в статусе pending или confirmed "
                    f"(текущий: '{order.status.value}', запрошен: '{target.value}')",
                    details,
                )
            return

        raise ForbiddenError("Нет прав на изменение этого заказа", details)

    async def _apply_transition_effects(self, order: Order, now: datetime) -> None:
        """Побочные эффекты перехода: возврат остатков и статус заработка водителя."""
        if order.status == OrderStatus.CANCELLED:
            for item in order.items:
                restored = await self._products.restore_stock(item.product_id, item.quantity)
                if not restored:
                    await log_warning(
                        f"Товар {item.product_id} не найден при возврате остатка по заказу {order.id}"
                    )
            if order.taxi_driver_id:
                await self._earnings.set_status(order.taxi_driver_id, order.id, EarningsStatus.CANCELLED)

        elif order.status == OrderStatus.COMPLETED and order.taxi_driver_id:
            await self._earnings.set_status(
                order.taxi_driver_id, order.id, EarningsStatus.COMPLETED, completed_at=now
            )

    async def _notify_transition(self, actor: User, order: Order, target: OrderStatus) -> None:
        payload = order_payload(order)
        await self._notifier.publish(Rooms.order(order.id), RealtimeEvents.ORDER_UPDATED, payload)

        if actor.role == UserRole.PASSENGER and target == OrderStatus.CANCELLED:
            await self._notifier.publish(Rooms.vendor(order.vendor_id), RealtimeEvents.ORDER_CANCELLED, payload)
        elif actor.role == UserRole.VENDOR and target == OrderStatus.READY:
            await self._notifier.publish(Rooms.DRIVERS, RealtimeEvents.NEW_DELIVERY_AVAILABLE, payload)

    # =========================================================================
    # ПРОСМОТР
    # =========================================================================

    async def get_order(self, actor: User, order_id: str) -> Order:
        """
        Заказ для участника или администратора.

        Raises:
            NotFoundError: Заказ не найден
            ForbiddenError: Пользователь не участник заказа
        """
        order = await self._get_or_404(order_id)
        if not actor.is_admin and not order.involves(actor.id):
            raise ForbiddenError("Нет прав на просмотр этого заказа")
        return order

    async def list_orders(
        self,
        actor: User,
        pagination: PaginationParams,
        status: OrderStatus | None = None,
    ) -> PaginatedResponse[Order]:
        """Заказы пользователя по его роли (администратор видит все)."""
        owner_role = None if actor.is_admin else actor.role.value
        items, total = await self._orders.list_orders(
            owner_role=owner_role,
            owner_id=actor.id,
            status=status,
            limit=pagination.limit,
            offset=pagination.offset,
        )
        return PaginatedResponse[Order].create(items=items, total=total, pagination=pagination)

    async def get_order_stats(self, actor: User) -> OrderStats:
        """Сводка по заказам (только администратор)."""
        if not actor.is_admin:
            raise ForbiddenError("Статистика доступна только администратору")
        now = self._now()
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return await self._orders.get_stats(day_start)

    # =========================================================================
    # ОЦЕНКА
    # =========================================================================

    async def rate_order(self, actor: User, order_id: str, dto: OrderRatingDTO) -> Order:
        """
        Оценка завершённого заказа пассажиром.

        Raises:
            NotFoundError: Заказ не найден
            ForbiddenError: Не пассажир этого заказа
            InvalidStateError: Заказ не завершён
        """
        order = await self._get_or_404(order_id)
        if actor.role != UserRole.PASSENGER or order.passenger_id != actor.id:
            raise ForbiddenError("Оценить заказ может только его пассажир")
        if order.status != OrderStatus.COMPLETED:
            raise InvalidStateError(
                "Оценить можно только завершённый заказ",
                {"current_status": order.status.value},
            )

        rated = await self._orders.set_rating(order_id, actor.id, dto)
        if rated is None:
            raise InvalidStateError("Заказ изменился, оценка не сохранена")

        await publish_event(self._event_bus, EventTypes.ORDER_RATED, {
            "order_id": order_id,
            "rating": dto.rating,
            "vendor_id": rated.vendor_id,
            "vendor_rating": dto.vendor_rating,
            "driver_id": rated.taxi_driver_id,
            "driver_rating": dto.driver_rating,
        })
        return rated

    async def _get_or_404(self, order_id: str) -> Order:
        order = await self._orders.get_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Заказ {order_id} не найден", {"order_id": order_id})
        return order
