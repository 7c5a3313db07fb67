# src/services/realtime_ws/connection_manager.py
"""
Менеджер WebSocket соединений.
Управляет участием в комнатах и рассылкой событий.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

from src.common.constants import Rooms, UserRole
from src.common.logger import log_debug, log_warning


@dataclass
class ConnectionInfo:
    """Информация о соединении."""
    websocket: WebSocket
    user_id: str
    role: UserRole
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    rooms: set[str] = field(default_factory=set)


def default_rooms(user_id: str, role: UserRole) -> list[str]:
    """Комнаты, в которые пользователь входит при подключении."""
    match role:
        case UserRole.TAXI_DRIVER:
            return [Rooms.driver(user_id), Rooms.DRIVERS]
        case UserRole.VENDOR:
            return [Rooms.vendor(user_id)]
        case UserRole.PASSENGER:
            return [Rooms.passenger(user_id)]
        case _:
            return []


class ConnectionManager:
    """
    Менеджер WebSocket соединений.

    Поддерживает:
    - Подключение/отключение клиентов (одно соединение на пользователя)
    - Вход и выход из комнат (order_<id>, vendor_<id>, passenger_<id>, driver_<id>, drivers)
    - Рассылку события всем участникам комнаты
    """

    def __init__(self) -> None:
        # user_id -> ConnectionInfo
        self._connections: dict[str, ConnectionInfo] = {}

        # room -> set of user_ids
        self._rooms: dict[str, set[str]] = {}

        # Для статистики
        self._total_connections: int = 0
        self._total_messages_sent: int = 0

    @property
    def active_connections(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket, user_id: str, role: UserRole) -> None:
        """
        Подключить клиента и ввести его в собственные комнаты.
        Если у пользователя уже есть соединение, старое закрывается.
        """
        if user_id in self._connections:
            old_conn = self._connections[user_id]
            await self.disconnect(user_id)
            await self._close_connection(old_conn)

        await websocket.accept()

        self._connections[user_id] = ConnectionInfo(websocket=websocket, user_id=user_id, role=role)
        self._total_connections += 1

        for room in default_rooms(user_id, role):
            await self.join(user_id, room)

        await log_debug(f"WS подключён: {user_id} ({role.value})")

    async def disconnect(self, user_id: str, websocket: WebSocket | None = None) -> None:
        """
        Отключить клиента и вывести из всех комнат.

        С websocket отключается только это соединение: закрытый при переподключении
        сокет не должен снимать новое соединение того же пользователя.
        """
        conn = self._connections.get(user_id)
        if conn is None:
            return
        if websocket is not None and conn.websocket is not websocket:
            return
        for room in list(conn.rooms):
            self._leave_room(user_id, room)
        del self._connections[user_id]
        await log_debug(f"WS отключён: {user_id}")

    async def join(self, user_id: str, room: str) -> bool:
        """Ввести пользователя в комнату."""
        conn = self._connections.get(user_id)
        if conn is None:
            return False
        conn.rooms.add(room)
        self._rooms.setdefault(room, set()).add(user_id)
        return True

    async def leave(self, user_id: str, room: str) -> None:
        self._leave_room(user_id, room)

    def _leave_room(self, user_id: str, room: str) -> None:
        conn = self._connections.get(user_id)
        if conn is not None:
            conn.rooms.discard(room)

        members = self._rooms.get(room)
        if members is not None:
            members.discard(user_id)
            if not members:
                del self._rooms[room]

    async def send_personal(self, user_id: str, message: dict[str, Any]) -> bool:
        """
        Отправить сообщение конкретному пользователю.

        Returns:
            True если сообщение отправлено, False если пользователь не подключен
        """
        conn = self._connections.get(user_id)
        if conn is None:
            return False
        return await self._send(conn, message)

    async def broadcast_to_room(self, room: str, message: dict[str, Any]) -> int:
        """
        Отправить сообщение всем участникам комнаты.

        Returns:
            Количество успешно отправленных сообщений
        """
        sent_count = 0
        for user_id in list(self._rooms.get(room, ())):
            conn = self._connections.get(user_id)
            if conn is not None and await self._send(conn, message):
                sent_count += 1
        return sent_count

    async def _send(self, conn: ConnectionInfo, message: dict[str, Any]) -> bool:
        try:
            await conn.websocket.send_json(message)
        except Exception as e:
            await log_warning(f"WS {conn.user_id}: отправка не удалась ({e}), соединение закрыто")
            await self.disconnect(conn.user_id, conn.websocket)
            return False
        self._total_messages_sent += 1
        return True

    def get_user_rooms(self, user_id: str) -> set[str]:
        conn = self._connections.get(user_id)
        return conn.rooms.copy() if conn else set()

    def get_room_members(self, room: str) -> set[str]:
        return self._rooms.get(room, set()).copy()

    def get_stats(self) -> dict[str, Any]:
        """Получить статистику."""
        counts: dict[str, int] = {}
        for conn in self._connections.values():
            counts[conn.role.value] = counts.get(conn.role.value, 0) + 1
        return {
            "active_connections": len(self._connections),
            "total_rooms": len(self._rooms),
            "total_connections_ever": self._total_connections,
            "total_messages_sent": self._total_messages_sent,
            "connections_by_role": counts,
        }

    async def _close_connection(self, conn: ConnectionInfo) -> None:
        try:
            await conn.websocket.close()
        except RuntimeError as e:
            # Соединение уже закрыто клиентом
            await log_debug(f"WS {conn.user_id}: повторное закрытие ({e})")


# Глобальный экземпляр
manager = ConnectionManager()
