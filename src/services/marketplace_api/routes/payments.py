# src/services/marketplace_api/routes/payments.py
"""
Эндпоинты оплаты мобильными деньгами.
"""

from __future__ import annotations

from typing import Annotated, Any, Optional

from fastapi import APIRouter, Body, Depends

from src.common.constants import MobileMoneyProvider
from src.core.payments.models import (
    CallbackAck,
    ConfirmPaymentDTO,
    InitiatePaymentDTO,
    Payment,
    PaymentInitiation,
    PaymentStatusView,
    RefundDTO,
)
from src.core.payments.service import PaymentService
from src.services.marketplace_api.auth import AdminUser, CurrentUser, PassengerUser
from src.services.marketplace_api.dependencies import get_payment_service

router = APIRouter(prefix="/payments", tags=["Payments"])

PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]


@router.post("/mpesa/initiate", response_model=PaymentInitiation, summary="Оплата M-Pesa")
async def initiate_mpesa(dto: InitiatePaymentDTO, user: PassengerUser, service: PaymentServiceDep) -> PaymentInitiation:
    """
    Запустить оплату через M-Pesa.

    Ответ приходит после задержки провайдера. При отказе провайдера
    возвращается 400 `payment_failed` с причиной.
    """
    return await service.initiate_mobile_money_payment(user, MobileMoneyProvider.MPESA, dto)


@router.post("/ecocash/initiate", response_model=PaymentInitiation, summary="Оплата EcoCash")
async def initiate_ecocash(dto: InitiatePaymentDTO, user: PassengerUser, service: PaymentServiceDep) -> PaymentInitiation:
    return await service.initiate_mobile_money_payment(user, MobileMoneyProvider.ECOCASH, dto)


@router.post("/confirm", response_model=PaymentInitiation, summary="Сверка оплаты")
async def confirm_payment(dto: ConfirmPaymentDTO, user: CurrentUser, service: PaymentServiceDep) -> PaymentInitiation:
    return await service.confirm_payment(user, dto)


@router.post("/refund", response_model=Payment, summary="Возврат")
async def refund_payment(dto: RefundDTO, user: AdminUser, service: PaymentServiceDep) -> Payment:
    return await service.refund_payment(user, dto)


@router.get("/status/{order_id}", response_model=PaymentStatusView, summary="Статус оплаты")
async def get_payment_status(order_id: str, user: CurrentUser, service: PaymentServiceDep) -> PaymentStatusView:
    return await service.get_payment_status(user, order_id)


@router.post("/mpesa/callback", response_model=CallbackAck, summary="Callback M-Pesa")
async def mpesa_callback(
    service: PaymentServiceDep,
    payload: Annotated[Optional[dict[str, Any]], Body()] = None,
) -> CallbackAck:
    return await service.handle_provider_callback(MobileMoneyProvider.MPESA, payload or {})


@router.post("/ecocash/callback", response_model=CallbackAck, summary="Callback EcoCash")
async def ecocash_callback(
    service: PaymentServiceDep,
    payload: Annotated[Optional[dict[str, Any]], Body()] = None,
) -> CallbackAck:
    return await service.handle_provider_callback(MobileMoneyProvider.ECOCASH, payload or {})
