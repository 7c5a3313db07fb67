# src/services/marketplace_api/routes/orders.py
"""
Эндпоинты заказов: оформление, статус, назначение водителя, оценка.
"""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status

from src.common.constants import OrderStatus
from src.core.delivery.service import DeliveryService
from src.core.orders.models import (
    AssignDriverDTO,
    Order,
    OrderCreateDTO,
    OrderRatingDTO,
    OrderStats,
    OrderStatusUpdateDTO,
)
from src.core.orders.service import OrderService
from src.services.marketplace_api.auth import (
    AdminUser,
    CurrentUser,
    PassengerUser,
    VendorOrAdminUser,
)
from src.services.marketplace_api.dependencies import get_delivery_service, get_order_service
from src.shared.models.common import PaginatedResponse, PaginationParams

router = APIRouter(prefix="/orders", tags=["Orders"])

OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]


@router.post("", response_model=Order, status_code=status.HTTP_201_CREATED, summary="Оформить заказ")
async def create_order(dto: OrderCreateDTO, user: PassengerUser, service: OrderServiceDep) -> Order:
    """
    Оформить заказ.

    Остатки товаров списываются сразу, продавец получает событие `new_order`.
    """
    return await service.create_order(user, dto)


@router.get("", response_model=PaginatedResponse[Order], summary="Мои заказы")
async def list_orders(
    user: CurrentUser,
    service: OrderServiceDep,
    status_filter: Annotated[Optional[OrderStatus], Query(alias="status")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> PaginatedResponse[Order]:
    return await service.list_orders(
        user, PaginationParams(page=page, page_size=page_size), status=status_filter
    )


@router.get("/stats", response_model=OrderStats, summary="Статистика заказов")
async def get_order_stats(user: AdminUser, service: OrderServiceDep) -> OrderStats:
    return await service.get_order_stats(user)


@router.get("/{order_id}", response_model=Order, summary="Получить заказ")
async def get_order(order_id: str, user: CurrentUser, service: OrderServiceDep) -> Order:
    return await service.get_order(user, order_id)


@router.patch("/{order_id}/status", response_model=Order, summary="Изменить статус заказа")
async def update_order_status(
    order_id: str,
    dto: OrderStatusUpdateDTO,
    user: CurrentUser,
    service: OrderServiceDep,
) -> Order:
    """
    Перевести заказ в новый статус.

    Права зависят от роли: продавец меняет свои заказы, водитель назначенные ему,
    пассажир может только отменить заказ в статусе pending или confirmed.
    """
    return await service.update_status(user, order_id, dto.status)


@router.patch("/{order_id}/assign-driver", response_model=Order, summary="Назначить водителя")
async def assign_driver(
    order_id: str,
    dto: AssignDriverDTO,
    user: VendorOrAdminUser,
    service: Annotated[DeliveryService, Depends(get_delivery_service)],
) -> Order:
    return await service.assign_driver(user, order_id, dto.driver_id)


@router.post("/{order_id}/rating", response_model=Order, summary="Оценить заказ")
async def rate_order(
    order_id: str,
    dto: OrderRatingDTO,
    user: PassengerUser,
    service: OrderServiceDep,
) -> Order:
    return await service.rate_order(user, order_id, dto)
