# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class UserRole(str, Enum):
    """Роли пользователей."""
    ADMIN = "admin"
    VENDOR = "vendor"
    TAXI_DRIVER = "taxi_driver"
    PASSENGER = "passenger"


class OrderStatus(str, Enum):
    """Статусы заказа."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERING = "delivering"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """Способы оплаты."""
    CASH = "cash"
    MPESA = "mpesa"
    ECOCASH = "ecocash"


class OrderPaymentStatus(str, Enum):
    """Статусы оплаты, встроенной в заказ."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    """Статусы записи в платёжном журнале."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class EarningsStatus(str, Enum):
    """Статусы заработка водителя."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    PROCESSING = "processing"
    COMPLETED = "completed"
    PAID = "paid"
    CANCELLED = "cancelled"


class MobileMoneyProvider(str, Enum):
    """Провайдеры мобильных денег."""
    MPESA = "mpesa"
    ECOCASH = "ecocash"


# Статусы заказа, из которых водитель может взять доставку
ACCEPTABLE_ORDER_STATUSES: tuple[str, ...] = (
    OrderStatus.CONFIRMED.value,
    OrderStatus.PREPARING.value,
    OrderStatus.READY.value,
)

# Статусы оплаты, при которых заказ виден водителям.
# "initiated" никогда не записывается, но исторически входит в фильтр
DELIVERABLE_PAYMENT_STATUSES: tuple[str, ...] = (
    OrderPaymentStatus.COMPLETED.value,
    OrderPaymentStatus.PROCESSING.value,
    "initiated",
)


class Rooms:
    """Имена комнат реального времени."""
    DRIVERS = "drivers"

    @staticmethod
    def order(order_id: str) -> str:
        return f"order_{order_id}"

    @staticmethod
    def vendor(vendor_id: str) -> str:
        return f"vendor_{vendor_id}"

    @staticmethod
    def passenger(passenger_id: str) -> str:
        return f"passenger_{passenger_id}"

    @staticmethod
    def driver(driver_id: str) -> str:
        return f"driver_{driver_id}"


class RealtimeEvents:
    """Имена событий, отправляемых в комнаты."""
    NEW_ORDER = "new_order"
    ORDER_UPDATED = "order_updated"
    DRIVER_ASSIGNED = "driver_assigned"
    ORDER_CANCELLED = "order_cancelled"
    DELIVERY_COMPLETED = "delivery_completed"
    DELIVERY_ASSIGNED = "delivery_assigned"
    NEW_DELIVERY_AVAILABLE = "new_delivery_available"
