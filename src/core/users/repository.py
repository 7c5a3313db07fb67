# src/core/users/repository.py
"""
Репозиторий каталога пользователей (только чтение).
"""

from __future__ import annotations

from typing import Any, Optional

from src.common.constants import UserRole
from src.core.users.models import TaxiDriverInfo, User, VendorInfo
from src.infra.database import DatabaseManager


_USER_COLUMNS = """
    id, role, email, first_name, last_name, phone,
    vendor_info, taxi_driver_info, is_active, created_at
"""


class UserRepository:
    """Репозиторий пользователей."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Получает пользователя по ID."""
        row = await self._db.fetchrow(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1",
            user_id,
        )
        if row is None:
            return None
        return self._row_to_user(row)

    async def get_many(self, user_ids: list[str]) -> dict[str, User]:
        """
        Получает пользователей пачкой.

        Returns:
            Словарь id -> User (отсутствующие ID пропускаются)
        """
        ids = sorted({uid for uid in user_ids if uid})
        if not ids:
            return {}

        rows = await self._db.fetch(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = ANY($1::text[])",
            ids,
        )
        return {row["id"]: self._row_to_user(row) for row in rows}

    def _row_to_user(self, row: Any) -> User:
        """Конвертирует строку БД в модель User."""
        vendor_info = row["vendor_info"]
        driver_info = row["taxi_driver_info"]
        return User(
            id=row["id"],
            role=UserRole(row["role"]),
            email=row["email"],
            first_name=row["first_name"] or "",
            last_name=row["last_name"] or "",
            phone=row["phone"],
            vendor_info=VendorInfo(**vendor_info) if vendor_info else None,
            taxi_driver_info=TaxiDriverInfo(**driver_info) if driver_info else None,
            is_active=row["is_active"],
            created_at=row["created_at"],
        )
