# src/infra/event_bus.py
"""
Доменные события маркетплейса в RabbitMQ.

Сервисы публикуют факты (заказ создан, доставка завершена, оплата прошла)
в topic exchange с routing key = тип события. Подписчики вне API
(email-рассылка, аналитика) биндят свои очереди по шаблонам вроде "payment.*".
Публикация не блокирует бизнес-операцию: без брокера событие теряется с записью в лог.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import aio_pika
from aio_pika import DeliveryMode, ExchangeType, Message
from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractExchange

from src.common.logger import log_debug, log_error, log_info, log_warning
from src.common.constants import TypeMsg

if TYPE_CHECKING:
    from src.config.loader import RabbitMQSettings


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class EventTypes:
    """Типы событий (routing keys)."""
    ORDER_CREATED = "order.created"
    ORDER_STATUS_CHANGED = "order.status_changed"
    ORDER_CANCELLED = "order.cancelled"
    ORDER_RATED = "order.rated"

    DELIVERY_ACCEPTED = "delivery.accepted"
    DELIVERY_COMPLETED = "delivery.completed"

    PAYMENT_INITIATED = "payment.initiated"
    PAYMENT_COMPLETED = "payment.completed"
    PAYMENT_FAILED = "payment.failed"
    PAYMENT_REFUNDED = "payment.refunded"


@dataclass
class DomainEvent:
    """Событие с полезной нагрузкой; order_id из payload уходит в заголовки сообщения."""
    event_type: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: str = field(default_factory=_utc_now_iso)

    @property
    def order_id(self) -> str | None:
        return self.payload.get("order_id") or self.payload.get("id")

    def to_json(self) -> str:
        return json.dumps(
            {
                "event_id": self.event_id,
                "event_type": self.event_type,
                "timestamp": self.timestamp,
                "payload": self.payload,
            },
            ensure_ascii=False,
            default=str,
        )

    def to_message(self) -> Message:
        """Персистентное AMQP сообщение."""
        headers = {"order_id": self.order_id} if self.order_id else {}
        return Message(
            body=self.to_json().encode(),
            content_type="application/json",
            message_id=self.event_id,
            type=self.event_type,
            headers=headers,
            delivery_mode=DeliveryMode.PERSISTENT,
            timestamp=datetime.now(timezone.utc),
        )


class EventBus:
    """Издатель доменных событий (Singleton)."""

    _instance: EventBus | None = None

    def __new__(cls) -> EventBus:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._connection: AbstractConnection | None = None
        self._channel: AbstractChannel | None = None
        self._exchange: AbstractExchange | None = None
        self._exchange_name = "marketplace.events"

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    async def connect(self, url: str, exchange_name: str | None = None, prefetch_count: int = 10) -> None:
        """Открывает robust-соединение и объявляет durable topic exchange."""
        if self.is_connected:
            return

        self._exchange_name = exchange_name or self._exchange_name
        self._connection = await aio_pika.connect_robust(url)
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=prefetch_count)
        self._exchange = await self._channel.declare_exchange(
            self._exchange_name,
            ExchangeType.TOPIC,
            durable=True,
        )

    async def disconnect(self) -> None:
        if self._connection is None:
            return
        await self._connection.close()
        self._connection = None
        self._channel = None
        self._exchange = None

    async def publish(self, event: DomainEvent) -> None:
        """Публикует событие. Ошибки брокера логируются и не пробрасываются."""
        if not self.is_connected or self._exchange is None:
            await log_warning(f"RabbitMQ недоступен, событие {event.event_type} не опубликовано")
            return

        try:
            await self._exchange.publish(event.to_message(), routing_key=event.event_type)
        except Exception as e:
            await log_error(f"Ошибка публикации события {event.event_type}: {e}")
            return
        await log_debug(f"Событие {event.event_type} опубликовано (заказ {event.order_id})")

    async def health_check(self) -> bool:
        return self.is_connected


_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


async def init_event_bus(config: "RabbitMQSettings | None" = None) -> None:
    """Подключается к RabbitMQ по настройкам."""
    if config is None:
        from src.config import settings
        config = settings.rabbitmq

    await get_event_bus().connect(
        url=config.url,
        exchange_name=config.RABBITMQ_EXCHANGE,
        prefetch_count=config.RABBITMQ_PREFETCH_COUNT,
    )
    await log_info(
        f"RabbitMQ подключён: {config.RABBITMQ_HOST}:{config.RABBITMQ_PORT}, exchange {config.RABBITMQ_EXCHANGE}",
        type_msg=TypeMsg.INFO,
    )


async def close_event_bus() -> None:
    await get_event_bus().disconnect()
    await log_info("RabbitMQ отключён", type_msg=TypeMsg.INFO)
