# src/services/marketplace_api/auth.py
"""
Определение пользователя запроса.

Аутентификацию выполняет шлюз перед API, он передаёт ID пользователя
в заголовке X-User-Id. Здесь пользователь только ищется в каталоге.
"""

from __future__ import annotations

from typing import Annotated, Callable

from fastapi import Depends, Header

from src.common.constants import UserRole
from src.common.errors import AuthenticationError, ForbiddenError
from src.core.users.models import User
from src.core.users.repository import UserRepository
from src.services.marketplace_api.dependencies import get_user_repository


async def get_current_user(
    users: Annotated[UserRepository, Depends(get_user_repository)],
    x_user_id: Annotated[str | None, Header()] = None,
) -> User:
    if not x_user_id:
        raise AuthenticationError("Не передан заголовок X-User-Id")

    user = await users.get_by_id(x_user_id)
    if user is None:
        raise AuthenticationError("Пользователь не найден")
    if not user.is_active:
        raise ForbiddenError("Аккаунт деактивирован")
    return user


def require_roles(*roles: UserRole) -> Callable:
    """Зависимость, пропускающая только пользователей с указанными ролями."""

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if user.role not in roles:
            raise ForbiddenError(
                "Недостаточно прав для этого действия",
                {"required_roles": [r.value for r in roles], "role": user.role.value},
            )
        return user

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
PassengerUser = Annotated[User, Depends(require_roles(UserRole.PASSENGER))]
DriverUser = Annotated[User, Depends(require_roles(UserRole.TAXI_DRIVER))]
AdminUser = Annotated[User, Depends(require_roles(UserRole.ADMIN))]
VendorOrAdminUser = Annotated[User, Depends(require_roles(UserRole.VENDOR, UserRole.ADMIN))]
