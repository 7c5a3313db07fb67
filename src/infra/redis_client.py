# src/infra/redis_client.py
"""
Клиент Redis.

Используется только как транспорт событий комнат: API публикует
в каналы <prefix>:<room>, WebSocket шлюз слушает их по шаблону.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import redis.asyncio as redis
from redis.asyncio.client import PubSub

from src.common.logger import log_error, log_info
from src.common.constants import TypeMsg

if TYPE_CHECKING:
    from src.config.loader import RedisSettings


class RedisClient:
    """Соединение с Redis (Singleton), ответы декодируются в str."""

    _instance: RedisClient | None = None

    def __new__(cls) -> RedisClient:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._client: redis.Redis | None = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Redis не подключён: сначала вызовите connect()")
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self, url: str, max_connections: int = 50) -> None:
        if self._client is not None:
            return

        self._client = redis.from_url(url, max_connections=max_connections, decode_responses=True)
        await self._client.ping()

    async def disconnect(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        await log_info("Соединение с Redis закрыто", type_msg=TypeMsg.INFO)

    async def publish(self, channel: str, message: str | dict[str, Any]) -> int:
        """
        Публикует сообщение, dict сериализуется в JSON.

        Returns:
            Число подписчиков канала (0, если шлюз сейчас не слушает)
        """
        body = message if isinstance(message, str) else json.dumps(message, ensure_ascii=False, default=str)
        return await self.client.publish(channel, body)

    def pubsub(self) -> PubSub:
        return self.client.pubsub()

    async def health_check(self) -> bool:
        try:
            return await self.client.ping()
        except Exception as e:
            await log_error(f"Health check Redis failed: {e}")
            return False


def get_redis() -> RedisClient:
    return RedisClient()


async def init_redis(config: "RedisSettings | None" = None) -> None:
    """Подключается к Redis по настройкам."""
    if config is None:
        from src.config import settings
        config = settings.redis

    await get_redis().connect(url=config.url, max_connections=config.REDIS_MAX_CONNECTIONS)
    await log_info(
        f"Redis подключён: {config.REDIS_HOST}:{config.REDIS_PORT}/{config.REDIS_DB}, "
        f"каналы комнат {config.ROOMS_CHANNEL_PREFIX}:*",
        type_msg=TypeMsg.INFO,
    )


async def close_redis() -> None:
    await get_redis().disconnect()
