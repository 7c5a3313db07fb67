# src/services/realtime_ws/redis_subscriber.py
"""
Подписчик на Redis Pub/Sub.

Слушает каналы комнат <prefix>:<room>, которые публикует RedisNotifier,
и передаёт (room, message) обработчику.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from src.common.logger import log_error, log_info
from src.common.constants import TypeMsg

if TYPE_CHECKING:
    from redis.asyncio.client import PubSub


MessageHandler = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value) if value is not None else ""


class RedisSubscriber:
    """
    Подписчик на каналы комнат.

    Args:
        pubsub: Объект Pub/Sub клиента Redis
        message_handler: Callback (room, message)
        channel_prefix: Префикс каналов комнат
    """

    def __init__(
        self,
        pubsub: "PubSub",
        message_handler: MessageHandler,
        channel_prefix: str = "rooms",
    ) -> None:
        self._pubsub = pubsub
        self._handler = message_handler
        self._prefix = channel_prefix
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def pattern(self) -> str:
        return f"{self._prefix}:*"

    def room_from_channel(self, channel: str) -> str | None:
        head = f"{self._prefix}:"
        if not channel.startswith(head):
            return None
        return channel[len(head):] or None

    async def start(self) -> None:
        """Запустить подписчика."""
        if self._running:
            return

        await self._pubsub.psubscribe(self.pattern)
        self._running = True
        self._task = asyncio.create_task(self._listen())
        await log_info(f"Подписка на каналы {self.pattern}", type_msg=TypeMsg.INFO)

    async def stop(self) -> None:
        """Остановить подписчика."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        await self._pubsub.punsubscribe()
        await self._pubsub.aclose()

    async def _listen(self) -> None:
        while self._running:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )
                if message is None:
                    continue
                await self.process_message(message)

            except asyncio.CancelledError:
                break
            except Exception as e:
                await log_error(f"Ошибка подписчика Redis: {e}", exc_info=True)
                await asyncio.sleep(1)

    async def process_message(self, message: dict[str, Any]) -> bool:
        """
        Разобрать сообщение Pub/Sub и передать обработчику.

        Returns:
            True, если сообщение передано обработчику
        """
        if message.get("type") not in ("message", "pmessage"):
            return False

        room = self.room_from_channel(_decode(message.get("channel")))
        if room is None:
            return False

        raw = _decode(message.get("data"))
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            await log_error(f"Некорректное сообщение в комнате {room}: {raw[:200]}")
            return False

        if not isinstance(parsed, dict):
            return False

        await self._handler(room, parsed)
        return True
