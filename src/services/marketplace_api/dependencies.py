# src/services/marketplace_api/dependencies.py
"""
Dependency Injection для Marketplace API.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.config import settings
from src.infra.notifier import Notifier, NullNotifier, RedisNotifier

if TYPE_CHECKING:
    from src.core.delivery.service import DeliveryService
    from src.core.orders.service import OrderService
    from src.core.payments.service import PaymentService
    from src.core.users.repository import UserRepository
    from src.infra.database import DatabaseManager
    from src.infra.event_bus import EventBus
    from src.infra.redis_client import RedisClient


# Синглтоны для инфраструктуры
_db: "DatabaseManager | None" = None
_redis: "RedisClient | None" = None
_event_bus: "EventBus | None" = None

# Синглтоны для сервисов
_order_service: "OrderService | None" = None
_delivery_service: "DeliveryService | None" = None
_payment_service: "PaymentService | None" = None


async def init_dependencies(
    db: "DatabaseManager",
    redis: "RedisClient",
    event_bus: "EventBus",
) -> None:
    """Инициализировать зависимости при старте приложения."""
    global _db, _redis, _event_bus
    _db = db
    _redis = redis
    _event_bus = event_bus


def get_db() -> "DatabaseManager":
    """Получить менеджер базы данных."""
    if _db is None:
        raise RuntimeError("База данных не инициализирована. Вызовите init_dependencies()")
    return _db


def get_event_bus() -> "EventBus":
    """Получить шину событий."""
    if _event_bus is None:
        raise RuntimeError("EventBus не инициализирован. Вызовите init_dependencies()")
    return _event_bus


def get_notifier() -> Notifier:
    """Notifier комнат реального времени (без Redis события не доставляются)."""
    if _redis is None or not _redis.is_connected:
        return NullNotifier()
    return RedisNotifier(_redis, channel_prefix=settings.redis.ROOMS_CHANNEL_PREFIX)


def get_user_repository() -> "UserRepository":
    from src.core.users.repository import UserRepository
    return UserRepository(get_db())


def get_order_service() -> "OrderService":
    """Получить сервис заказов."""
    global _order_service

    if _order_service is None:
        from src.core.catalog.repository import ProductRepository
        from src.core.delivery.repository import EarningsRepository
        from src.core.orders.repository import OrderRepository
        from src.core.orders.service import OrderService

        db = get_db()
        _order_service = OrderService(
            orders=OrderRepository(db),
            products=ProductRepository(db),
            earnings=EarningsRepository(db),
            notifier=get_notifier(),
            event_bus=get_event_bus(),
            delivery_settings=settings.delivery,
        )

    return _order_service


def get_delivery_service() -> "DeliveryService":
    """Получить сервис доставки."""
    global _delivery_service

    if _delivery_service is None:
        from src.core.delivery.repository import EarningsRepository
        from src.core.delivery.service import DeliveryService
        from src.core.orders.repository import OrderRepository
        from src.core.users.repository import UserRepository

        db = get_db()
        _delivery_service = DeliveryService(
            orders=OrderRepository(db),
            users=UserRepository(db),
            earnings=EarningsRepository(db),
            notifier=get_notifier(),
            event_bus=get_event_bus(),
            delivery_settings=settings.delivery,
        )

    return _delivery_service


def get_payment_service() -> "PaymentService":
    """Получить сервис платежей."""
    global _payment_service

    if _payment_service is None:
        from src.core.delivery.repository import EarningsRepository
        from src.core.orders.repository import OrderRepository
        from src.core.payments.provider import MobileMoneyGateway
        from src.core.payments.repository import PaymentRepository
        from src.core.payments.service import PaymentService

        db = get_db()
        _payment_service = PaymentService(
            orders=OrderRepository(db),
            payments=PaymentRepository(db),
            earnings=EarningsRepository(db),
            gateway=MobileMoneyGateway(settings.payments),
            notifier=get_notifier(),
            event_bus=get_event_bus(),
            payment_settings=settings.payments,
            delivery_settings=settings.delivery,
        )

    return _payment_service


async def cleanup_dependencies() -> None:
    """Очистить ресурсы при остановке приложения."""
    global _order_service, _delivery_service, _payment_service
    _order_service = None
    _delivery_service = None
    _payment_service = None
