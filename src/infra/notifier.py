# src/infra/notifier.py
"""
Отправка событий реального времени в комнаты.

Сервисы знают только протокол Notifier: publish(room, event, payload).
Рабочая реализация публикует сообщение в канал Redis rooms:<room>,
WebSocket-шлюз подписан на rooms:* и рассылает его участникам комнаты.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

from src.common.logger import log_debug, log_error
from src.infra.redis_client import RedisClient


class Notifier(Protocol):
    """Получатель событий реального времени."""

    async def publish(self, room: str, event: str, payload: dict[str, Any]) -> None:
        ...


def build_room_message(room: str, event: str, payload: dict[str, Any]) -> str:
    """Формирует тело сообщения канала комнаты."""
    return json.dumps(
        {"room": room, "event": event, "payload": payload},
        ensure_ascii=False,
        default=str,
    )


class RedisNotifier:
    """
    Notifier поверх Redis Pub/Sub.
    Доставка best-effort: ошибки логируются и не пробрасываются.
    """

    def __init__(self, redis: RedisClient, channel_prefix: str = "rooms") -> None:
        self._redis = redis
        self._prefix = channel_prefix

    def channel_for(self, room: str) -> str:
        return f"{self._prefix}:{room}"

    async def publish(self, room: str, event: str, payload: dict[str, Any]) -> None:
        try:
            await self._redis.publish(self.channel_for(room), build_room_message(room, event, payload))
            await log_debug(f"Событие {event} отправлено в комнату {room}")
        except Exception as e:
            await log_error(f"Не удалось отправить событие {event} в комнату {room}: {e}")


class NullNotifier:
    """Notifier без доставки (когда Redis недоступен)."""

    async def publish(self, room: str, event: str, payload: dict[str, Any]) -> None:
        await log_debug(f"Событие {event} для комнаты {room} пропущено: Redis не подключён")
