# src/core/payments/provider.py
"""
Симуляция провайдеров мобильных денег (M-Pesa, EcoCash).

Реальный API не вызывается: ответ приходит после фиксированной задержки,
успех определяется вероятностью провайдера.
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Awaitable, Callable, Optional

from src.common.constants import MobileMoneyProvider, TypeMsg
from src.common.logger import log_info, log_warning
from src.config.loader import PaymentSettings
from src.core.payments.models import ProviderResult


def build_reference(provider: MobileMoneyProvider, order_id: str, epoch_ms: int) -> str:
    """Референс платежа: <PROVIDER>_<epoch-ms>_<order_id>."""
    return f"{provider.value.upper()}_{epoch_ms}_{order_id}"


class MobileMoneyGateway:
    """
    Шлюз к провайдерам мобильных денег.

    Args:
        settings: Задержка и вероятность успеха по провайдерам
        rng: Генератор случайных чисел (в тестах фиксируется)
        sleep: Функция ожидания (в тестах подменяется)
    """

    def __init__(
        self,
        settings: PaymentSettings | None = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        epoch_ms: Callable[[], int] = lambda: int(time.time() * 1000),
    ) -> None:
        self._settings = settings or PaymentSettings()
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._epoch_ms = epoch_ms

    def success_rate(self, provider: MobileMoneyProvider) -> float:
        if provider == MobileMoneyProvider.MPESA:
            return self._settings.MPESA_SUCCESS_RATE
        return self._settings.ECOCASH_SUCCESS_RATE

    def new_reference(self, provider: MobileMoneyProvider, order_id: str) -> str:
        return build_reference(provider, order_id, self._epoch_ms())

    async def request_payment(
        self,
        provider: MobileMoneyProvider,
        order_id: str,
        phone_number: str,
        amount: float,
        reference: str,
    ) -> ProviderResult:
        """
        Запрос на списание с телефона плательщика.
        Повторных попыток нет: отказ окончателен для этой попытки.
        """
        await log_info(
            f"Запрос {provider.value} на {amount} для заказа {order_id} ({phone_number})",
            type_msg=TypeMsg.DEBUG,
        )
        await self._sleep(self._settings.PROVIDER_LATENCY_SECONDS)

        if self._rng.random() < self.success_rate(provider):
            return ProviderResult(
                success=True,
                reference=reference,
                transaction_id=f"{provider.value.upper()}_{self._epoch_ms()}",
            )

        reason = f"Simulated {provider.value} API failure"
        await log_warning(f"Провайдер {provider.value} отклонил платёж по заказу {order_id}: {reason}")
        return ProviderResult(success=False, reference=reference, failure_reason=reason)
