# src/services/realtime_ws/app.py
"""
FastAPI приложение для Realtime WebSocket Gateway.

WebSocket endpoints:
- /ws/{user_id}?role=... — подключение пользователя, автоматический вход в свои комнаты

REST endpoints:
- GET /health — проверка здоровья
- GET /stats — статистика соединений
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from src.common.constants import TypeMsg, UserRole
from src.common.logger import log_error, log_info, log_warning
from src.config import settings
from src.shared.models.common import HealthStatus
from src.services.realtime_ws.connection_manager import manager
from src.services.realtime_ws.redis_subscriber import RedisSubscriber

SERVICE_NAME = "realtime_ws_gateway"


class StatsResponse(BaseModel):
    """Статистика соединений."""
    active_connections: int
    total_rooms: int
    total_connections_ever: int
    total_messages_sent: int
    connections_by_role: dict[str, int]


# === REDIS HANDLER ===

async def handle_room_message(room: str, data: dict[str, Any]) -> None:
    """Переслать событие комнаты её участникам."""
    message = {
        "type": "event",
        "room": room,
        "event": data.get("event"),
        "payload": data.get("payload", {}),
    }
    await manager.broadcast_to_room(room, message)


# === LIFESPAN ===

_redis_subscriber: RedisSubscriber | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    global _redis_subscriber
    from src.infra.redis_client import close_redis, get_redis, init_redis

    await log_info("Запуск Realtime WS Gateway...", type_msg=TypeMsg.INFO)
    await init_redis()

    _redis_subscriber = RedisSubscriber(
        get_redis().pubsub(),
        handle_room_message,
        channel_prefix=settings.redis.ROOMS_CHANNEL_PREFIX,
    )
    await _redis_subscriber.start()

    yield

    await log_info("Остановка Realtime WS Gateway...", type_msg=TypeMsg.INFO)
    if _redis_subscriber:
        await _redis_subscriber.stop()
    await close_redis()


# === APP ===

app = FastAPI(
    title="Realtime WebSocket Gateway",
    description="WebSocket сервис событий заказов по комнатам.",
    version=settings.system.VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.get("/health", response_model=HealthStatus, tags=["Health"])
async def health_check() -> HealthStatus:
    """Проверка здоровья сервиса."""
    return HealthStatus(
        status="healthy",
        service=SERVICE_NAME,
        version=settings.system.VERSION,
    )


@app.get("/stats", response_model=StatsResponse, tags=["Stats"])
async def get_stats() -> StatsResponse:
    return StatsResponse(**manager.get_stats())


# === WEBSOCKET ===

@app.websocket("/ws/{user_id}")
async def websocket_endpoint(
    websocket: WebSocket,
    user_id: str,
    role: UserRole = Query(default=UserRole.PASSENGER),
) -> None:
    """
    WebSocket пользователя.

    При подключении пользователь входит в свою комнату
    (водитель ещё и в общую комнату drivers).

    Входящие сообщения:
    - {"action": "join", "room": "order_xxx"}
    - {"action": "leave", "room": "order_xxx"}
    - {"action": "ping"}
    """
    await manager.connect(websocket, user_id, role)

    try:
        while True:
            data = await websocket.receive_json()
            await handle_client_message(user_id, data)

    except WebSocketDisconnect:
        await manager.disconnect(user_id, websocket)
    except ValueError as e:
        await log_warning(f"WS {user_id}: некорректное сообщение ({e})")
        await manager.disconnect(user_id, websocket)
    except Exception as e:
        await log_error(f"WS {user_id}: ошибка обработки ({e})", exc_info=True)
        await manager.disconnect(user_id, websocket)


async def handle_client_message(user_id: str, data: Any) -> None:
    """Обработать сообщение от клиента."""
    if not isinstance(data, dict):
        await manager.send_personal(user_id, {"type": "error", "message": "message must be an object"})
        return

    action = data.get("action")
    room = data.get("room")

    if action == "join" and room:
        await manager.join(user_id, room)
        await manager.send_personal(user_id, {"type": "joined", "room": room})

    elif action == "leave" and room:
        await manager.leave(user_id, room)
        await manager.send_personal(user_id, {"type": "left", "room": room})

    elif action == "ping":
        await manager.send_personal(user_id, {"type": "pong"})

    else:
        await manager.send_personal(user_id, {"type": "error", "message": "unknown action"})
