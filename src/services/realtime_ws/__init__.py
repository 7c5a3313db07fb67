# src/services/realtime_ws/__init__.py
"""
Realtime WebSocket Gateway.

Обеспечивает:
- WebSocket соединения для клиентов
- Вход и выход из комнат заказов
- Пересылку событий комнат из Redis Pub/Sub
"""
