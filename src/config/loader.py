# src/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины — config/config.json.
Секретные данные и адреса сервисов переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json и возвращает словарь."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "marketplace"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"
    COMPONENT_MODE: str = "all"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


class DeploymentSettings(BaseModel):
    """Настройки развертывания компонентов."""
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    REALTIME_WS_GATEWAY_HOST: str = "0.0.0.0"
    REALTIME_WS_GATEWAY_PORT: int = 8001
    CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["*"])


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "marketplace"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 60
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """Возвращает DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Настройки Redis."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_MAX_CONNECTIONS: int = 50
    ROOMS_CHANNEL_PREFIX: str = "rooms"

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("REDIS_PASSWORD", "")
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ."""
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "marketplace.events"
    RABBITMQ_PREFETCH_COUNT: int = 10

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class DeliverySettings(BaseModel):
    """Настройки доставки и оформления заказа."""
    STANDARD_DELIVERY_FEE: float = 15.0
    URGENT_DELIVERY_FEE: float = 25.0
    ESTIMATED_DELIVERY_MINUTES: int = 30
    CURRENCY: str = "LSL"


class PaymentSettings(BaseModel):
    """Настройки платежей и симуляции провайдеров."""
    PROVIDER_LATENCY_SECONDS: float = 1.5
    MPESA_SUCCESS_RATE: float = 0.9
    ECOCASH_SUCCESS_RATE: float = 1.0
    PLATFORM_COMMISSION_PERCENT: float = 10.0
    PHONE_NUMBER_PATTERN: str = r"^\+266\d{8}$"

    @field_validator("MPESA_SUCCESS_RATE", "ECOCASH_SUCCESS_RATE")
    @classmethod
    def check_rate(cls, v: float) -> float:
        """Вероятность успеха должна лежать в [0, 1]."""
        if not 0.0 <= v <= 1.0:
            raise ValueError("Вероятность успеха должна быть в диапазоне [0, 1]")
        return v

    @field_validator("PHONE_NUMBER_PATTERN")
    @classmethod
    def check_pattern(cls, v: str) -> str:
        """Проверяет, что шаблон компилируется."""
        re.compile(v)
        return v


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    delivery: DeliverySettings = Field(default_factory=DeliverySettings)
    payments: PaymentSettings = Field(default_factory=PaymentSettings)

    @classmethod
    def from_config_json(cls) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Секреты и адреса переопределяются из переменных окружения.
        """
        config_data = load_config_json()
        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, config_data: dict[str, Any]) -> "Settings":
        """Собирает настройки из плоского словаря (формат config.json)."""
        data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        def pick(key: str, default: Any, *, env: bool = False, cast: Callable[[Any], Any] | None = None) -> Any:
            # Переменная окружения (если разрешена) важнее config.json
            value = os.getenv(key) if env else None
            if value is None:
                value = data.get(key, default)
            return cast(value) if cast else value

        return cls(
            system=SystemSettings(
                PROJECT_NAME=pick("PROJECT_NAME", "marketplace"),
                VERSION=pick("VERSION", "1.0.0"),
                DEBUG=pick("DEBUG", True),
                ENVIRONMENT=pick("ENVIRONMENT", "development", env=True),
                COMPONENT_MODE=pick("COMPONENT_MODE", "all", env=True),
            ),
            deployment=DeploymentSettings(
                API_HOST=pick("API_HOST", "0.0.0.0", env=True),
                API_PORT=pick("API_PORT", 8000, env=True, cast=int),
                REALTIME_WS_GATEWAY_HOST=pick("REALTIME_WS_GATEWAY_HOST", "0.0.0.0", env=True),
                REALTIME_WS_GATEWAY_PORT=pick("REALTIME_WS_GATEWAY_PORT", 8001, env=True, cast=int),
                CORS_ORIGINS=pick("CORS_ORIGINS", ["*"]),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=pick("LOG_LEVEL", "DEBUG", env=True),
                LOG_TO_FILE=pick("LOG_TO_FILE", False),
                LOG_FILE_PATH=pick("LOG_FILE_PATH", "logs/app.log"),
                LOG_FORMAT=pick("LOG_FORMAT", "colored", env=True),
                LOG_MAX_BYTES=pick("LOG_MAX_BYTES", 10485760),
            ),
            database=DatabaseSettings(
                DB_HOST=pick("DB_HOST", "localhost", env=True),
                DB_PORT=pick("DB_PORT", 5432, env=True, cast=int),
                DB_NAME=pick("DB_NAME", "marketplace", env=True),
                DB_USER=pick("DB_USER", "postgres", env=True),
                DB_PASSWORD=pick("DB_PASSWORD", "", env=True),
                DB_MIN_POOL_SIZE=pick("DB_MIN_POOL_SIZE", 5),
                DB_MAX_POOL_SIZE=pick("DB_MAX_POOL_SIZE", 20),
                DB_COMMAND_TIMEOUT=pick("DB_COMMAND_TIMEOUT", 60),
                DB_RETRY_ATTEMPTS=pick("DB_RETRY_ATTEMPTS", 3),
                DB_RETRY_DELAY=pick("DB_RETRY_DELAY", 1.0),
            ),
            redis=RedisSettings(
                REDIS_HOST=pick("REDIS_HOST", "localhost", env=True),
                REDIS_PORT=pick("REDIS_PORT", 6379, env=True, cast=int),
                REDIS_DB=pick("REDIS_DB", 0),
                REDIS_PASSWORD=pick("REDIS_PASSWORD", "", env=True),
                REDIS_MAX_CONNECTIONS=pick("REDIS_MAX_CONNECTIONS", 50),
                ROOMS_CHANNEL_PREFIX=pick("ROOMS_CHANNEL_PREFIX", "rooms"),
            ),
            rabbitmq=RabbitMQSettings(
                RABBITMQ_HOST=pick("RABBITMQ_HOST", "localhost", env=True),
                RABBITMQ_PORT=pick("RABBITMQ_PORT", 5672, env=True, cast=int),
                RABBITMQ_USER=pick("RABBITMQ_USER", "guest", env=True),
                RABBITMQ_PASSWORD=pick("RABBITMQ_PASSWORD", "guest", env=True),
                RABBITMQ_VHOST=pick("RABBITMQ_VHOST", "/"),
                RABBITMQ_EXCHANGE=pick("RABBITMQ_EXCHANGE", "marketplace.events"),
                RABBITMQ_PREFETCH_COUNT=pick("RABBITMQ_PREFETCH_COUNT", 10),
            ),
            delivery=DeliverySettings(
                STANDARD_DELIVERY_FEE=pick("STANDARD_DELIVERY_FEE", 15.0),
                URGENT_DELIVERY_FEE=pick("URGENT_DELIVERY_FEE", 25.0),
                ESTIMATED_DELIVERY_MINUTES=pick("ESTIMATED_DELIVERY_MINUTES", 30),
                CURRENCY=pick("CURRENCY", "LSL"),
            ),
            payments=PaymentSettings(
                PROVIDER_LATENCY_SECONDS=pick("PROVIDER_LATENCY_SECONDS", 1.5, env=True, cast=float),
                MPESA_SUCCESS_RATE=pick("MPESA_SUCCESS_RATE", 0.9, env=True, cast=float),
                ECOCASH_SUCCESS_RATE=pick("ECOCASH_SUCCESS_RATE", 1.0, env=True, cast=float),
                PLATFORM_COMMISSION_PERCENT=pick("PLATFORM_COMMISSION_PERCENT", 10.0),
                PHONE_NUMBER_PATTERN=pick("PHONE_NUMBER_PATTERN", r"^\+266\d{8}$"),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Использует кэширование для производительности.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
