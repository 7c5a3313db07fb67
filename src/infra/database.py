# src/infra/database.py
"""
Доступ к PostgreSQL для репозиториев маркетплейса.

Заказы хранят позиции, точки маршрута и оплату в JSONB, поэтому каждое
соединение пула получает кодек json/jsonb. Конкурентные изменения
(склад, назначение водителя, статус оплаты) делаются условными UPDATE
в репозиториях, а здесь только пул, ретраи и миграция схемы.
"""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from functools import wraps
from typing import TYPE_CHECKING, Any, AsyncGenerator, Callable, TypeVar

import asyncpg
from asyncpg import Connection, Pool, Record

from src.common.logger import log_error, log_info, log_warning
from src.common.constants import TypeMsg

if TYPE_CHECKING:
    from src.config.loader import DatabaseSettings

T = TypeVar("T")

# Ключ advisory lock: API и воркеры могут стартовать одновременно
SCHEMA_LOCK_ID = 726354

# Ошибки, после которых запрос имеет смысл повторить
CONNECTION_ERRORS = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    ConnectionRefusedError,
    OSError,
)


def retry_on_connection_error(
    max_attempts: int = 3,
    delay: float = 1.0,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Повторяет корутину при обрыве соединения с БД.

    Задержка растёт линейно: delay, 2 * delay, ...
    Ошибки SQL (нарушение ограничений, синтаксис) не повторяются.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except CONNECTION_ERRORS as e:
                    if attempt >= max_attempts:
                        await log_error(f"PostgreSQL недоступен после {max_attempts} попыток: {e}")
                        raise
                    await log_warning(f"PostgreSQL: обрыв соединения ({attempt}/{max_attempts}): {e}")
                    await asyncio.sleep(delay * attempt)
                    attempt += 1

        return wrapper  # type: ignore

    return decorator


def affected_rows(status: str) -> int:
    """Число строк из статуса команды asyncpg ("UPDATE 3" -> 3)."""
    tail = status.rsplit(" ", 1)[-1] if status else ""
    return int(tail) if tail.isdigit() else 0


async def _init_connection(conn: Connection) -> None:
    """Кодеки json/jsonb: документы заказа читаются как dict/list."""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=lambda value: json.dumps(value, ensure_ascii=False, default=str),
            decoder=json.loads,
            schema="pg_catalog",
        )


class DatabaseManager:
    """Пул соединений PostgreSQL (Singleton)."""

    _instance: DatabaseManager | None = None
    _pool: Pool | None = None

    def __new__(cls) -> DatabaseManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._pool = None

    @property
    def pool(self) -> Pool:
        if self._pool is None:
            raise RuntimeError("Пул PostgreSQL не создан: сначала вызовите connect()")
        return self._pool

    async def connect(
        self,
        dsn: str,
        min_size: int = 5,
        max_size: int = 20,
        command_timeout: int = 60,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        """Создаёт пул. Повторный вызов ничего не делает."""
        if self._pool is not None:
            return

        create_pool = retry_on_connection_error(retry_attempts, retry_delay)(asyncpg.create_pool)
        self._pool = await create_pool(
            dsn=dsn,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
            init=_init_connection,
        )

    async def disconnect(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def acquire(self) -> AsyncGenerator[Connection, None]:
        async with self.pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[Connection, None]:
        """Соединение внутри транзакции: commit при выходе, rollback при исключении."""
        async with self.pool.acquire() as connection:
            async with connection.transaction():
                yield connection

    # =========================================================================
    # ЗАПРОСЫ
    # =========================================================================

    @retry_on_connection_error()
    async def _run(self, method: str, query: str, *args: Any, **kwargs: Any) -> Any:
        async with self.acquire() as conn:
            return await getattr(conn, method)(query, *args, **kwargs)

    async def execute(self, query: str, *args: Any) -> str:
        """Выполняет команду и возвращает её статус ("UPDATE 1")."""
        return await self._run("execute", query, *args)

    async def fetch(self, query: str, *args: Any) -> list[Record]:
        return await self._run("fetch", query, *args)

    async def fetchrow(self, query: str, *args: Any) -> Record | None:
        """
        Одна строка или None.

        Для условного UPDATE ... RETURNING None означает,
        что условие не выполнилось (заказ уже взят, статус сменился).
        """
        return await self._run("fetchrow", query, *args)

    async def fetchval(self, query: str, *args: Any, column: int = 0) -> Any:
        return await self._run("fetchval", query, *args, column=column)

    async def health_check(self) -> bool:
        try:
            return await self.fetchval("SELECT 1") == 1
        except Exception as e:
            await log_error(f"Health check PostgreSQL failed: {e}")
            return False


_db_manager: DatabaseManager | None = None


def get_db() -> DatabaseManager:
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


async def init_db(config: "DatabaseSettings | None" = None) -> None:
    """Подключается к PostgreSQL по настройкам и применяет схему."""
    if config is None:
        from src.config import settings
        config = settings.database

    db = get_db()
    await db.connect(
        dsn=config.dsn,
        min_size=config.DB_MIN_POOL_SIZE,
        max_size=config.DB_MAX_POOL_SIZE,
        command_timeout=config.DB_COMMAND_TIMEOUT,
        retry_attempts=config.DB_RETRY_ATTEMPTS,
        retry_delay=config.DB_RETRY_DELAY,
    )
    await log_info(
        f"PostgreSQL подключён: {config.DB_HOST}:{config.DB_PORT}/{config.DB_NAME}",
        type_msg=TypeMsg.INFO,
    )

    await _init_schema(db)


async def _init_schema(db: DatabaseManager) -> None:
    """Применяет migrations/init.sql (идемпотентный скрипт) под advisory lock."""
    from src.config.loader import get_project_root

    schema_path = get_project_root() / "migrations" / "init.sql"
    if not schema_path.exists():
        await log_error(f"Файл схемы БД не найден: {schema_path}")
        return

    try:
        async with db.transaction() as conn:
            await conn.execute("SELECT pg_advisory_xact_lock($1)", SCHEMA_LOCK_ID)
            await conn.execute(schema_path.read_text(encoding="utf-8"))
    except asyncpg.DeadlockDetectedError as e:
        await log_warning(f"Схема применяется другим процессом: {e}")
        return

    await log_info("Схема маркетплейса применена", type_msg=TypeMsg.INFO)


async def close_db() -> None:
    await get_db().disconnect()
    await log_info("PostgreSQL отключён", type_msg=TypeMsg.INFO)
