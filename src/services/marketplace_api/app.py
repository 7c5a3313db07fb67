# src/services/marketplace_api/app.py
"""
FastAPI приложение Marketplace API.

Endpoints (префикс /api/v1):
- /orders — оформление, статус, назначение водителя, оценка
- /orders/driver — доступные заказы, принятие, забор, завершение, заработок
- /payments — M-Pesa / EcoCash, сверка, возврат, статус
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.common.errors import MarketplaceError, UnexpectedError, ValidationError
from src.common.logger import log_error, log_info, log_warning
from src.common.constants import TypeMsg
from src.config import settings
from src.shared.models.common import ErrorResponse, HealthStatus
from src.services.marketplace_api.dependencies import cleanup_dependencies, init_dependencies
from src.services.marketplace_api.routes import (
    driver_orders_router,
    orders_router,
    payments_router,
)

SERVICE_NAME = "marketplace_api"

# Формат ошибок в OpenAPI для всех маршрутов /api/v1
ERROR_RESPONSES: dict[int | str, dict] = {
    code: {"model": ErrorResponse} for code in (400, 401, 403, 404, 500)
}

_started_at = time.monotonic()


# === LIFESPAN ===

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    from src.infra.database import close_db, get_db, init_db
    from src.infra.event_bus import close_event_bus, get_event_bus, init_event_bus
    from src.infra.redis_client import close_redis, get_redis, init_redis

    await log_info("Запуск Marketplace API...", type_msg=TypeMsg.INFO)
    await init_db()
    await init_redis()
    await init_event_bus()

    await init_dependencies(get_db(), get_redis(), get_event_bus())

    yield

    await log_info("Остановка Marketplace API...", type_msg=TypeMsg.INFO)
    await cleanup_dependencies()
    await close_event_bus()
    await close_redis()
    await close_db()


# === ОБРАБОТЧИКИ ОШИБОК ===

def _validation_fields(exc: RequestValidationError) -> dict[str, str]:
    fields: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        fields[".".join(loc) or "body"] = error.get("msg", "invalid")
    return fields


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    if exc.status_code >= 500:
        await log_error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        await log_warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationError("Некорректные данные запроса", _validation_fields(exc))
    return JSONResponse(status_code=error.status_code, content=jsonable_encoder(error.to_dict()))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    await log_error(f"Необработанная ошибка {request.method} {request.url.path}: {exc}", exc_info=True)
    message = "Внутренняя ошибка сервера" if settings.system.is_production else str(exc)
    error = UnexpectedError(message)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_app() -> FastAPI:
    """Создаёт приложение с роутерами и обработчиками ошибок."""
    application = FastAPI(
        title="Marketplace API",
        description="Заказы, доставка и оплата мобильными деньгами.",
        version=settings.system.VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.deployment.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(MarketplaceError, marketplace_error_handler)
    application.add_exception_handler(RequestValidationError, request_validation_error_handler)
    application.add_exception_handler(Exception, unhandled_error_handler)

    # Водительские маршруты раньше /orders/{order_id}
    application.include_router(driver_orders_router, prefix="/api/v1", responses=ERROR_RESPONSES)
    application.include_router(orders_router, prefix="/api/v1", responses=ERROR_RESPONSES)
    application.include_router(payments_router, prefix="/api/v1", responses=ERROR_RESPONSES)

    @application.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check() -> HealthStatus:
        """Проверка здоровья сервиса и его зависимостей."""
        from src.infra.database import get_db
        from src.infra.event_bus import get_event_bus
        from src.infra.redis_client import get_redis

        dependencies = {
            "postgres": "ok" if await get_db().health_check() else "unavailable",
            "redis": "ok" if await get_redis().health_check() else "unavailable",
            "rabbitmq": "ok" if await get_event_bus().health_check() else "unavailable",
        }
        healthy = all(v == "ok" for v in dependencies.values())
        return HealthStatus(
            service=SERVICE_NAME,
            status="healthy" if healthy else "degraded",
            version=settings.system.VERSION,
            uptime_seconds=round(time.monotonic() - _started_at, 1),
            dependencies=dependencies,
        )

    return application


app = create_app()
