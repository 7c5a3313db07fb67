# src/core/payments/service.py
"""
Бизнес-логика оплаты заказов мобильными деньгами.

Состояние оплаты хранится в двух местах: встроенная оплата заказа
(orders.payment) и запись платёжного журнала (payments). Сервис меняет
их вместе.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Callable

from src.common.constants import (
    EarningsStatus,
    MobileMoneyProvider,
    OrderPaymentStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    RealtimeEvents,
    Rooms,
    TypeMsg,
)
from src.common.errors import (
    AlreadyProcessedError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UpstreamSimulatedFailure,
    ValidationError,
)
from src.common.logger import log_info, log_warning
from src.config.loader import DeliverySettings, PaymentSettings
from src.core.delivery.models import DriverEarnings
from src.core.delivery.repository import EarningsRepository
from src.core.delivery.service import resolve_delivery_fee
from src.core.orders.models import Order, utc_now
from src.core.orders.repository import OrderRepository
from src.core.orders.service import order_payload, publish_event
from src.core.payments.models import (
    CallbackAck,
    ConfirmPaymentDTO,
    InitiatePaymentDTO,
    Payment,
    PaymentInitiation,
    PaymentStatusView,
    RefundDTO,
)
from src.core.payments.provider import MobileMoneyGateway
from src.core.payments.repository import PaymentRepository
from src.core.users.models import User
from src.infra.event_bus import EventBus, EventTypes
from src.infra.notifier import Notifier


class PaymentService:
    """
    Сервис управления платежами.

    Ответственности:
    - Запуск оплаты через M-Pesa / EcoCash
    - Сверка статуса оплаты
    - Возвраты
    - Разделение стоимости доставки между платформой и водителем
    """

    def __init__(
        self,
        orders: OrderRepository,
        payments: PaymentRepository,
        earnings: EarningsRepository,
        gateway: MobileMoneyGateway,
        notifier: Notifier,
        event_bus: EventBus,
        payment_settings: PaymentSettings | None = None,
        delivery_settings: DeliverySettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._orders = orders
        self._payments = payments
        self._earnings = earnings
        self._gateway = gateway
        self._notifier = notifier
        self._event_bus = event_bus
        self._settings = payment_settings or PaymentSettings()
        self._delivery = delivery_settings or DeliverySettings()
        self._now = clock
        self._phone_re = re.compile(self._settings.PHONE_NUMBER_PATTERN)

    # === ЗАПУСК ОПЛАТЫ ===

    async def initiate_mobile_money_payment(
        self,
        actor: User,
        provider: MobileMoneyProvider,
        dto: InitiatePaymentDTO,
    ) -> PaymentInitiation:
        """
        Запустить оплату заказа мобильными деньгами.

        1. Проверяет телефон и владельца заказа
        2. Переводит оплату заказа pending -> processing (условный UPDATE)
        3. Записывает журнал со свежим референсом
        4. Ждёт ответ провайдера

        Raises:
            ValidationError: Некорректный номер телефона
            NotFoundError: Заказ не найден или принадлежит другому пассажиру
            AlreadyProcessedError: Оплата уже не в статусе pending
            UpstreamSimulatedFailure: Провайдер отклонил платёж
        """
        if not self._phone_re.match(dto.phone_number):
            raise ValidationError(
                "Некорректный номер телефона",
                {"phone_number": f"ожидается формат {self._settings.PHONE_NUMBER_PATTERN}"},
            )

        order = await self._orders.get_by_id(dto.order_id)
        if order is None or order.passenger_id != actor.id:
            raise NotFoundError(
                "Заказ не найден или не принадлежит пользователю",
                {"order_id": dto.order_id},
            )
        if order.payment.status != OrderPaymentStatus.PENDING:
            raise AlreadyProcessedError(order.payment.status.value)

        claimed = await self._orders.update_payment(
            order.id,
            {"status": OrderPaymentStatus.PROCESSING.value, "phone_number": dto.phone_number},
            expected_payment_status=OrderPaymentStatus.PENDING.value,
        )
        if claimed is None:
            fresh = await self._orders.get_by_id(order.id)
            current = fresh.payment.status.value if fresh else order.payment.status.value
            raise AlreadyProcessedError(current)

        reference = self._gateway.new_reference(provider, order.id)
        payment = await self._payments.upsert(Payment(
            order_id=order.id,
            passenger_id=order.passenger_id,
            vendor_id=order.vendor_id,
            amount=order.total_amount,
            payment_method=PaymentMethod(provider.value),
            phone_number=dto.phone_number,
            status=PaymentStatus.PROCESSING,
            reference=reference,
        ))
        await publish_event(self._event_bus, EventTypes.PAYMENT_INITIATED, {
            "order_id": order.id,
            "provider": provider.value,
            "amount": order.total_amount,
            "reference": reference,
        })

        result = await self._gateway.request_payment(
            provider, order.id, dto.phone_number, order.total_amount, reference
        )

        if not result.success:
            reason = result.failure_reason or "Payment failed"
            await self._payments.set_status(order.id, PaymentStatus.FAILED, failure_reason=reason)
            await self._orders.update_payment(order.id, {"status": OrderPaymentStatus.FAILED.value})
            await publish_event(self._event_bus, EventTypes.PAYMENT_FAILED, {
                "order_id": order.id,
                "provider": provider.value,
                "failure_reason": reason,
            })
            raise UpstreamSimulatedFailure(reason)

        transaction_id = result.transaction_id or reference
        updated_order = await self._orders.update_payment(order.id, {
            "status": OrderPaymentStatus.PROCESSING.value,
            "transaction_id": transaction_id,
            "phone_number": dto.phone_number,
        })
        payment = await self._payments.set_status(
            order.id, PaymentStatus.PROCESSING, reference=transaction_id
        ) or payment

        await log_info(
            f"Оплата {provider.value} по заказу {order.id} запущена ({transaction_id})",
            type_msg=TypeMsg.INFO,
        )
        return PaymentInitiation(
            order=updated_order or claimed,
            payment=payment,
            transaction_id=transaction_id,
            message="Подтвердите платёж на телефоне",
        )

    # === СВЕРКА ===

    async def confirm_payment(self, actor: User, dto: ConfirmPaymentDTO) -> PaymentInitiation:
        """
        Сверка статуса оплаты. Повторный вызов с теми же данными безопасен.

        completed: дата оплаты, заказ pending -> confirmed, журнал completed.
        Если водитель назначен и заказ уже завершён, пишется разделение
        стоимости доставки между платформой и водителем.
        failed: журнал failed с причиной.
        """
        order = await self._get_order_or_404(dto.order_id)
        now = self._now()

        payment = await self._payments.get_by_order(order.id)
        if payment is None:
            payment = await self._payments.upsert(Payment(
                order_id=order.id,
                passenger_id=order.passenger_id,
                vendor_id=order.vendor_id,
                amount=order.total_amount,
                payment_method=order.payment.method,
                phone_number=order.payment.phone_number,
                status=PaymentStatus(dto.status.value),
                reference=dto.transaction_id or f"MANUAL_{int(now.timestamp() * 1000)}",
            ))

        if dto.status == OrderPaymentStatus.COMPLETED:
            transaction_id = dto.transaction_id or payment.reference
            updated = await self._orders.update_payment(
                order.id,
                {
                    "status": OrderPaymentStatus.COMPLETED.value,
                    "payment_date": now.isoformat(),
                    "transaction_id": transaction_id,
                },
                confirm_if_pending=True,
            )
            payment = await self._payments.set_status(
                order.id, PaymentStatus.COMPLETED, reference=transaction_id, completed_at=now
            ) or payment

            order = updated or order
            if order.taxi_driver_id and order.status == OrderStatus.COMPLETED:
                await self._record_commission_split(order)

            await publish_event(self._event_bus, EventTypes.PAYMENT_COMPLETED, {
                "order_id": order.id,
                "amount": order.total_amount,
                "transaction_id": transaction_id,
            })
        else:
            reason = dto.failure_reason or "Payment failed"
            updated = await self._orders.update_payment(
                order.id, {"status": OrderPaymentStatus.FAILED.value}
            )
            payment = await self._payments.set_status(
                order.id, PaymentStatus.FAILED, failure_reason=reason
            ) or payment
            order = updated or order

            await publish_event(self._event_bus, EventTypes.PAYMENT_FAILED, {
                "order_id": order.id,
                "failure_reason": reason,
            })

        await self._notifier.publish(Rooms.order(order.id), RealtimeEvents.ORDER_UPDATED, order_payload(order))
        await log_info(
            f"Оплата заказа {order.id}: {dto.status.value} (сверка от {actor.id})",
            type_msg=TypeMsg.INFO,
        )
        return PaymentInitiation(
            order=order,
            payment=payment,
            transaction_id=order.payment.transaction_id,
            message=f"Оплата {dto.status.value}",
        )

    async def _record_commission_split(self, order: Order) -> DriverEarnings:
        """Комиссия платформы и сумма водителю от стоимости доставки."""
        fee = resolve_delivery_fee(order, self._delivery)
        commission = round(fee * self._settings.PLATFORM_COMMISSION_PERCENT / 100, 2)
        return await self._earnings.upsert_split(DriverEarnings(
            driver_id=order.taxi_driver_id,
            order_id=order.id,
            delivery_fee=fee,
            commission=commission,
            driver_amount=round(fee - commission, 2),
            currency=self._delivery.CURRENCY,
            status=EarningsStatus.PENDING,
            payment_method=order.payment.method.value,
        ))

    # === ВОЗВРАТ ===

    async def refund_payment(self, actor: User, dto: RefundDTO) -> Payment:
        """
        Возврат оплаченного заказа. Статус заказа и остатки не меняются.

        Raises:
            ForbiddenError: Не администратор
            NotFoundError: Платёж не найден
            InvalidStateError: Платёж не завершён
        """
        if not actor.is_admin:
            raise ForbiddenError("Возврат доступен только администратору")

        payment = await self._payments.get_by_order(dto.order_id)
        if payment is None:
            raise NotFoundError(f"Платёж по заказу {dto.order_id} не найден", {"order_id": dto.order_id})
        if payment.status != PaymentStatus.COMPLETED:
            raise InvalidStateError(
                "Вернуть можно только завершённый платёж",
                {"payment_status": payment.status.value},
            )

        refunded = await self._payments.set_status(
            dto.order_id,
            PaymentStatus.REFUNDED,
            expected=PaymentStatus.COMPLETED,
            failure_reason=dto.reason or "Refund",
        )
        if refunded is None:
            raise InvalidStateError("Платёж изменился, возврат не выполнен", {"order_id": dto.order_id})

        await self._orders.update_payment(dto.order_id, {"status": OrderPaymentStatus.REFUNDED.value})
        await publish_event(self._event_bus, EventTypes.PAYMENT_REFUNDED, {
            "order_id": dto.order_id,
            "amount": refunded.amount,
            "reason": dto.reason,
        })

        await log_info(f"Платёж по заказу {dto.order_id} возвращён", type_msg=TypeMsg.INFO)
        return refunded

    # === ПРОСМОТР ===

    async def get_payment_status(self, actor: User, order_id: str) -> PaymentStatusView:
        order = await self._get_order_or_404(order_id)
        if not actor.is_admin and not order.involves(actor.id):
            raise ForbiddenError("Нет прав на просмотр оплаты этого заказа")

        payment = await self._payments.get_by_order(order_id)
        return PaymentStatusView(
            order_id=order.id,
            order_status=order.status,
            order_payment_status=order.payment.status,
            payment_status=payment.status if payment else None,
            amount=order.total_amount,
            method=order.payment.method,
            reference=payment.reference if payment else None,
            transaction_id=order.payment.transaction_id,
        )

    async def handle_provider_callback(
        self,
        provider: MobileMoneyProvider,
        payload: dict[str, Any],
    ) -> CallbackAck:
        """Callback провайдера принимается и логируется, статус меняет только сверка."""
        await log_warning(f"Callback {provider.value} получен и не обработан: {payload}")
        return CallbackAck(provider=provider, payload=payload)

    async def _get_order_or_404(self, order_id: str) -> Order:
        order = await self._orders.get_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Заказ {order_id} не найден", {"order_id": order_id})
        return order
