# src/services/marketplace_api/routes/driver_orders.py
"""
Эндпоинты водительского приложения.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from src.core.delivery.models import AvailableDelivery, EarningsSummary
from src.core.delivery.service import DeliveryService
from src.core.orders.models import Order
from src.services.marketplace_api.auth import DriverUser
from src.services.marketplace_api.dependencies import get_delivery_service

router = APIRouter(prefix="/orders/driver", tags=["Driver orders"])

DeliveryServiceDep = Annotated[DeliveryService, Depends(get_delivery_service)]


@router.get("/available", response_model=list[AvailableDelivery], summary="Доступные заказы")
async def list_available_orders(
    user: DriverUser,
    service: DeliveryServiceDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> list[AvailableDelivery]:
    """Заказы без водителя, с подходящим статусом и оплатой, новые первыми."""
    return await service.list_available_orders(user, limit=limit)


@router.get("/assigned", response_model=list[Order], summary="Мои доставки")
async def list_assigned_orders(user: DriverUser, service: DeliveryServiceDep) -> list[Order]:
    return await service.list_assigned_orders(user)


@router.get("/earnings", response_model=EarningsSummary, summary="Заработок")
async def get_driver_earnings(user: DriverUser, service: DeliveryServiceDep) -> EarningsSummary:
    return await service.get_driver_earnings(user)


@router.patch("/{order_id}/accept", response_model=Order, summary="Взять заказ")
async def accept_order(order_id: str, user: DriverUser, service: DeliveryServiceDep) -> Order:
    """
    Взять заказ в доставку.

    Если заказ уже взял другой водитель, возвращается 400 `already_assigned`.
    """
    return await service.accept_order(user, order_id)


@router.patch("/{order_id}/reject", response_model=Order, summary="Отказаться от заказа")
async def reject_order(order_id: str, user: DriverUser, service: DeliveryServiceDep) -> Order:
    return await service.reject_order(user, order_id)


@router.patch("/{order_id}/start", response_model=Order, summary="Забрал заказ")
async def start_delivery(order_id: str, user: DriverUser, service: DeliveryServiceDep) -> Order:
    return await service.start_delivery(user, order_id)


@router.patch("/{order_id}/complete", response_model=Order, summary="Доставил заказ")
async def complete_delivery(order_id: str, user: DriverUser, service: DeliveryServiceDep) -> Order:
    return await service.complete_delivery(user, order_id)
