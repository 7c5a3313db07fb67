# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("RABBITMQ_PASSWORD", "guest")
os.environ.setdefault("ENVIRONMENT", "test")

from src.common.constants import OrderPaymentStatus, OrderStatus, PaymentMethod, UserRole  # noqa: E402
from src.core.catalog.models import Product  # noqa: E402
from src.core.orders.models import (  # noqa: E402
    Destination,
    Order,
    OrderItem,
    OrderPayment,
    PickupLocation,
)
from src.core.users.models import TaxiDriverInfo, User, VendorInfo  # noqa: E402
from src.shared.models.common import Coordinates, LocalizedText  # noqa: E402


FIXED_NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "PROJECT_NAME": "marketplace_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "API_PORT": 9000,
        "LOG_LEVEL": "DEBUG",
        "LOG_TO_FILE": False,
        "LOG_FORMAT": "colored",
        "DB_HOST": "localhost",
        "DB_PORT": 5432,
        "DB_NAME": "marketplace_test",
        "DB_USER": "postgres",
        "REDIS_HOST": "localhost",
        "REDIS_PORT": 6379,
        "REDIS_DB": 1,
        "ROOMS_CHANNEL_PREFIX": "rooms_test",
        "RABBITMQ_HOST": "localhost",
        "RABBITMQ_EXCHANGE": "marketplace.test",
        "STANDARD_DELIVERY_FEE": 15.0,
        "URGENT_DELIVERY_FEE": 25.0,
        "ESTIMATED_DELIVERY_MINUTES": 30,
        "CURRENCY": "LSL",
        "PROVIDER_LATENCY_SECONDS": 0.0,
        "MPESA_SUCCESS_RATE": 0.9,
        "ECOCASH_SUCCESS_RATE": 1.0,
        "PLATFORM_COMMISSION_PERCENT": 10.0,
        "PHONE_NUMBER_PATTERN": "^\\+266\\d{8}$",
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="UPDATE 1")
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.publish = AsyncMock(return_value=1)
    redis.is_connected = True
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=None)
    event_bus.is_connected = True
    return event_bus


@pytest.fixture
def mock_notifier() -> AsyncMock:
    """Мок отправки событий в комнаты."""
    notifier = AsyncMock()
    notifier.publish = AsyncMock(return_value=None)
    return notifier


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Фиксированное время для сервисов."""
    return lambda: FIXED_NOW


# =============================================================================
# ФИКСТУРЫ МОДЕЛЕЙ
# =============================================================================

@pytest.fixture
def make_user() -> Callable[..., User]:
    """Фабрика пользователей."""

    def factory(user_id: str = "user-1", role: UserRole = UserRole.PASSENGER, **overrides: Any) -> User:
        data: dict[str, Any] = {
            "id": user_id,
            "role": role,
            "email": f"{user_id}@example.com",
            "first_name": "Thabo",
            "last_name": "Mokoena",
            "phone": "+26650000000",
        }
        if role == UserRole.VENDOR:
            data["vendor_info"] = VendorInfo(
                shop_name="Maseru Fresh",
                shop_location=Coordinates(latitude=-29.31, longitude=27.48),
                shop_address="Kingsway 1, Maseru",
            )
        if role == UserRole.TAXI_DRIVER:
            data["taxi_driver_info"] = TaxiDriverInfo(vehicle="Toyota Quantum")
        data.update(overrides)
        return User(**data)

    return factory


@pytest.fixture
def passenger(make_user: Callable[..., User]) -> User:
    return make_user("passenger-1", UserRole.PASSENGER)


@pytest.fixture
def vendor(make_user: Callable[..., User]) -> User:
    return make_user("vendor-1", UserRole.VENDOR)


@pytest.fixture
def driver(make_user: Callable[..., User]) -> User:
    return make_user("driver-1", UserRole.TAXI_DRIVER)


@pytest.fixture
def admin(make_user: Callable[..., User]) -> User:
    return make_user("admin-1", UserRole.ADMIN)


@pytest.fixture
def make_product() -> Callable[..., Product]:
    """Фабрика товаров."""

    def factory(product_id: str = "product-1", **overrides: Any) -> Product:
        data: dict[str, Any] = {
            "id": product_id,
            "vendor_id": "vendor-1",
            "name": LocalizedText(en="Maize meal", st="Phofo"),
            "price": 50.0,
            "stock_quantity": 10,
            "available": True,
        }
        data.update(overrides)
        return Product(**data)

    return factory


@pytest.fixture
def make_order() -> Callable[..., Order]:
    """Фабрика заказов."""

    def factory(order_id: str = "order-abc123", **overrides: Any) -> Order:
        data: dict[str, Any] = {
            "id": order_id,
            "passenger_id": "passenger-1",
            "vendor_id": "vendor-1",
            "items": [
                OrderItem(
                    product_id="product-1",
                    product_name=LocalizedText(en="Maize meal"),
                    quantity=2,
                    price=50.0,
                )
            ],
            "pickup_location": PickupLocation(
                address="Kingsway 1, Maseru",
                coordinates=Coordinates(latitude=-29.3100, longitude=27.4800),
            ),
            "destination": Destination(
                address="Roma Campus",
                coordinates=Coordinates(latitude=-29.4500, longitude=27.7200),
            ),
            "payment": OrderPayment(
                method=PaymentMethod.CASH,
                status=OrderPaymentStatus.PENDING,
                amount=115.0,
            ),
            "status": OrderStatus.PENDING,
            "total_amount": 115.0,
            "delivery_fee": 15.0,
            "created_at": FIXED_NOW,
            "updated_at": FIXED_NOW,
        }
        data.update(overrides)
        return Order(**data)

    return factory


@pytest.fixture
def order_row() -> Callable[..., dict[str, Any]]:
    """Строка таблицы orders в том виде, в каком её возвращает asyncpg."""

    def factory(**overrides: Any) -> dict[str, Any]:
        from decimal import Decimal

        row: dict[str, Any] = {
            "id": "order-abc123",
            "passenger_id": "passenger-1",
            "vendor_id": "vendor-1",
            "taxi_driver_id": None,
            "items": [{
                "product_id": "product-1",
                "product_name": {"en": "Maize meal"},
                "quantity": 2,
                "price": 50.0,
            }],
            "pickup_location": {
                "address": "Kingsway 1, Maseru",
                "coordinates": {"latitude": -29.31, "longitude": 27.48},
            },
            "destination": {
                "address": "Roma Campus",
                "coordinates": {"latitude": -29.45, "longitude": 27.72},
            },
            "payment": {"method": "cash", "status": "pending", "amount": 115.0},
            "status": "pending",
            "total_amount": Decimal("115.00"),
            "delivery_fee": Decimal("15.00"),
            "is_urgent": False,
            "notes": None,
            "rejected_drivers": None,
            "driver_assigned_at": None,
            "pickup_confirmed_at": None,
            "delivery_confirmed_at": None,
            "estimated_delivery": None,
            "actual_delivery": None,
            "cancelled_at": None,
            "cancelled_by": None,
            "created_at": FIXED_NOW,
            "updated_at": FIXED_NOW,
            "rating": None,
            "vendor_rating": None,
            "driver_rating": None,
            "feedback": None,
        }
        row.update(overrides)
        return row

    return factory
