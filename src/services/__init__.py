# src/services/__init__.py
"""
Сервисы приложения.

Архитектура:
- Каждый сервис — независимое FastAPI-приложение
- Общая PostgreSQL с заказами, товарами, платежами и заработком водителей
- Redis Pub/Sub для событий комнат реального времени
- RabbitMQ для доменных событий (email, аналитика)

Сервисы:
- marketplace_api: заказы, доставка, оплата мобильными деньгами
- realtime_ws: WebSocket шлюз комнат заказов, продавцов, пассажиров и водителей
"""

__all__: list[str] = []
