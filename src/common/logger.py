# src/common/logger.py
"""
Логирование сервисов маркетплейса.

Консоль: цветной текст (разработка) или JSON (продакшн, сбор логов).
Файлы: общий <name>[_<SERVICE_NAME>].log и error.log, архивируются при переполнении.
В каждую запись добавляются модуль, функция и строка вызвавшего кода.
"""

from __future__ import annotations

import inspect
import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from src.common.constants import TypeMsg


DEFAULT_LOGGER_NAME = "marketplace"

LEVELS: dict[TypeMsg, int] = {
    TypeMsg.DEBUG: logging.DEBUG,
    TypeMsg.INFO: logging.INFO,
    TypeMsg.WARNING: logging.WARNING,
    TypeMsg.ERROR: logging.ERROR,
    TypeMsg.CRITICAL: logging.CRITICAL,
}

# Сторонние библиотеки, которым хватает WARNING
QUIET_LOGGERS = ("asyncpg", "redis", "aio_pika", "aiormq", "httpx", "uvicorn.access")

_LOG_FUNCTIONS = frozenset({"log_info", "log_debug", "log_warning", "log_error"})

# Файловые хендлеры общие для всех логгеров процесса
_file_handlers: dict[str, logging.Handler] = {}
_loggers: dict[str, logging.Logger] = {}
_LOGGING_INITIALIZED: bool = False


# =============================================================================
# ФОРМАТТЕРЫ
# =============================================================================

class JsonFormatter(logging.Formatter):
    """Одна запись - одна JSON строка."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        extra = getattr(record, "extra_data", None)
        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Текст с ANSI цветом уровня и местом вызова."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    GRAY = "\033[90m"

    def _caller(self, record: logging.LogRecord) -> str:
        extra = getattr(record, "extra_data", None) or {}
        if not extra.get("caller_function"):
            return ""
        place = f"{extra.get('caller_module')}.{extra.get('caller_function')}():{extra.get('caller_line')}"
        return f" {self.GRAY}[{place}]{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.GRAY)
        line = (
            f"{datetime.now():%Y-%m-%d %H:%M:%S} {color}[{record.levelname}]{self.RESET}"
            f"{self._caller(record)} {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class SizeRotatingFileHandler(RotatingFileHandler):
    """
    Пишет в <log_dir>/<logger_name>.log.
    При превышении max_bytes файл переименовывается в <logger_name>_<время>.log.
    """

    def __init__(self, log_dir: str, max_bytes: int, logger_name: str = "app", encoding: str = "utf-8"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.logger_name = logger_name
        super().__init__(
            filename=str(self.log_dir / f"{logger_name}.log"),
            maxBytes=max_bytes,
            backupCount=0,
            encoding=encoding,
        )

    def doRollover(self) -> None:
        if self.stream:
            self.stream.close()
            self.stream = None

        archive = self.log_dir / f"{self.logger_name}_{datetime.now():%Y-%m-%d_%H-%M-%S}.log"
        if os.path.exists(self.baseFilename):
            try:
                os.rename(self.baseFilename, archive)
            except OSError:
                # Файл держит другой процесс: пишем дальше в текущий
                pass

        self.stream = self._open()


# =============================================================================
# НАСТРОЙКА
# =============================================================================

def _read_logging_settings() -> dict[str, Any]:
    """Параметры логирования из конфигурации; при её недоступности дефолты."""
    defaults: dict[str, Any] = {
        "level": "DEBUG",
        "format": "colored",
        "to_file": False,
        "file_path": "logs/app.log",
        "max_bytes": 10485760,
    }
    try:
        from src.config import settings
    except Exception:
        return defaults

    section = settings.logging
    values = {
        "level": section.LOG_LEVEL,
        "format": section.LOG_FORMAT,
        "to_file": section.LOG_TO_FILE,
        "file_path": section.LOG_FILE_PATH,
        "max_bytes": section.LOG_MAX_BYTES,
    }
    # Значение неверного типа (например, MagicMock в тестах) заменяется дефолтом
    return {
        key: value if isinstance(value, type(defaults[key])) else defaults[key]
        for key, value in values.items()
    }


def _file_handler(key: str, log_dir: str, max_bytes: int, formatter: logging.Formatter, level: int) -> logging.Handler:
    handler = _file_handlers.get(key)
    if handler is None:
        handler = SizeRotatingFileHandler(log_dir=log_dir, max_bytes=max_bytes, logger_name=key)
        handler.setLevel(level)
        handler.setFormatter(formatter)
        _file_handlers[key] = handler
    return handler


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """Логгер с консольным (и при LOG_TO_FILE файловыми) хендлерами, кэшируется по имени."""
    if name in _loggers:
        return _loggers[name]

    cfg = _read_logging_settings()
    formatter: logging.Formatter = JsonFormatter() if cfg["format"] == "json" else ColoredFormatter()

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, cfg["level"].upper(), logging.DEBUG))
    logger.propagate = False

    if not logger.handlers:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        logger.addHandler(console)

        if cfg["to_file"]:
            log_path = Path(cfg["file_path"])
            service = os.getenv("SERVICE_NAME")
            main_name = f"{log_path.stem}_{service}" if service else log_path.stem
            log_dir = str(log_path.parent)
            logger.addHandler(_file_handler(main_name, log_dir, cfg["max_bytes"], formatter, logging.NOTSET))
            logger.addHandler(_file_handler("error", log_dir, cfg["max_bytes"], formatter, logging.ERROR))

    _loggers[name] = logger
    return logger


def setup_logging() -> None:
    """Создаёт основной логгер и приглушает сторонние библиотеки (один раз на процесс)."""
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED:
        return
    _LOGGING_INITIALIZED = True

    get_logger(DEFAULT_LOGGER_NAME)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


# =============================================================================
# ФУНКЦИИ ЛОГИРОВАНИЯ
# =============================================================================

def _get_caller_info() -> dict[str, Any]:
    """Модуль, функция и строка кода, вызвавшего log_* (обёртки log_* пропускаются)."""
    frame = inspect.currentframe()
    try:
        caller = frame.f_back.f_back if frame and frame.f_back else None
        while caller is not None and caller.f_code.co_name in _LOG_FUNCTIONS:
            caller = caller.f_back
        if caller is None:
            return {}

        module = inspect.getmodule(caller)
        return {
            "caller_function": caller.f_code.co_name,
            "caller_module": module.__name__ if module else "unknown",
            "caller_line": caller.f_lineno,
        }
    finally:
        del frame


def _record_extra(extra: dict[str, Any] | None) -> dict[str, Any]:
    return {"extra_data": {**_get_caller_info(), **(extra or {})}}


async def log_info(
    message: str,
    *,
    type_msg: TypeMsg = TypeMsg.INFO,
    logger_name: str = DEFAULT_LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    """
    Записывает сообщение с уровнем type_msg.

    Args:
        message: Текст
        type_msg: Уровень
        logger_name: Имя логгера
        extra: Дополнительные поля (order_id, driver_id, ...)
    """
    get_logger(logger_name).log(LEVELS.get(type_msg, logging.INFO), message, extra=_record_extra(extra))


async def log_debug(message: str, logger_name: str = DEFAULT_LOGGER_NAME, extra: dict[str, Any] | None = None) -> None:
    await log_info(message, type_msg=TypeMsg.DEBUG, logger_name=logger_name, extra=extra)


async def log_warning(message: str, logger_name: str = DEFAULT_LOGGER_NAME, extra: dict[str, Any] | None = None) -> None:
    await log_info(message, type_msg=TypeMsg.WARNING, logger_name=logger_name, extra=extra)


async def log_error(
    message: str,
    logger_name: str = DEFAULT_LOGGER_NAME,
    extra: dict[str, Any] | None = None,
    exc_info: bool = False,
) -> None:
    """ERROR, при exc_info=True с трейсбеком текущего исключения."""
    get_logger(logger_name).error(message, extra=_record_extra(extra), exc_info=exc_info)
