# src/services/marketplace_api/routes/__init__.py
"""
Роутеры Marketplace API.
"""

from src.services.marketplace_api.routes.driver_orders import router as driver_orders_router
from src.services.marketplace_api.routes.orders import router as orders_router
from src.services.marketplace_api.routes.payments import router as payments_router

__all__ = ["driver_orders_router", "orders_router", "payments_router"]
