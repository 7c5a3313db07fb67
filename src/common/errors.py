# src/common/errors.py
"""
Доменные исключения маркетплейса.

Каждое исключение несёт HTTP-код и машинный код ошибки,
поэтому слой API переводит их в ответ без дополнительных проверок.
"""

from __future__ import annotations

from typing import Any


class MarketplaceError(Exception):
    """Базовое исключение домена."""

    status_code: int = 400
    error_code: str = "bad_request"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Сериализует ошибку для ответа API."""
        return {
            "status": "fail" if self.status_code < 500 else "error",
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ValidationError(MarketplaceError):
    """Некорректные входные данные (с разбивкой по полям)."""

    status_code = 400
    error_code = "validation_error"

    def __init__(self, message: str, fields: dict[str, str] | None = None) -> None:
        super().__init__(message, {"fields": fields or {}})
        self.fields = fields or {}


class AuthenticationError(MarketplaceError):
    """Пользователь не определён."""

    status_code = 401
    error_code = "unauthenticated"


class ForbiddenError(MarketplaceError):
    """Действие запрещено для роли или пользователя."""

    status_code = 403
    error_code = "forbidden"


class NotFoundError(MarketplaceError):
    """Сущность не найдена."""

    status_code = 404
    error_code = "not_found"


class InvalidTransitionError(MarketplaceError):
    """Переход статуса заказа не разрешён машиной состояний."""

    error_code = "invalid_transition"

    def __init__(self, current_status: str, target_status: str) -> None:
        super().__init__(
            f"Невозможно перевести заказ из статуса '{current_status}' в '{target_status}'",
            {"current_status": current_status, "target_status": target_status},
        )
        self.current_status = current_status
        self.target_status = target_status


class InvalidStateError(MarketplaceError):
    """Сущность находится в неподходящем состоянии для операции."""

    error_code = "invalid_state"


class AlreadyProcessedError(MarketplaceError):
    """Оплата заказа уже обрабатывается или завершена."""

    error_code = "already_processed"

    def __init__(self, current_status: str) -> None:
        super().__init__(
            f"Оплата уже обработана (статус: {current_status})",
            {"current_status": current_status},
        )
        self.current_status = current_status


class AlreadyAssignedError(MarketplaceError):
    """Заказ уже назначен другому водителю."""

    error_code = "already_assigned"


class UpstreamSimulatedFailure(MarketplaceError):
    """Провайдер мобильных денег отклонил платёж."""

    error_code = "payment_failed"

    def __init__(self, failure_reason: str) -> None:
        super().__init__(
            f"Платёж отклонён: {failure_reason}",
            {"failure_reason": failure_reason},
        )
        self.failure_reason = failure_reason


class UnexpectedError(MarketplaceError):
    """Непредвиденная внутренняя ошибка."""

    status_code = 500
    error_code = "internal_error"
