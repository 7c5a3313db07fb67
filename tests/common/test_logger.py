# tests/common/test_logger.py
"""
Тесты для модуля логирования.
"""

import json
import logging
import sys
from unittest.mock import MagicMock, patch

import pytest

from src.common import logger as logger_module
from src.common.constants import TypeMsg
from src.common.logger import (
    DEFAULT_LOGGER_NAME,
    ColoredFormatter,
    JsonFormatter,
    SizeRotatingFileHandler,
    _get_caller_info,
    _loggers,
    _read_logging_settings,
    get_logger,
    log_debug,
    log_error,
    log_info,
    log_warning,
    setup_logging,
)


def make_record(level: int = logging.INFO, msg: str = "Заказ создан", exc_info=None) -> logging.LogRecord:
    record = logging.LogRecord(
        name="marketplace",
        level=level,
        pathname="orders.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    record.module = "service"
    record.funcName = "create_order"
    return record


class TestJsonFormatter:
    """Тесты для JsonFormatter."""

    def test_basic_fields(self) -> None:
        data = json.loads(JsonFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["message"] == "Заказ создан"
        assert data["function"] == "create_order"
        assert data["line"] == 42
        assert data["timestamp"].endswith("Z")

    def test_extra_data(self) -> None:
        record = make_record()
        record.extra_data = {"order_id": "o1"}

        data = json.loads(JsonFormatter().format(record))

        assert data["extra"] == {"order_id": "o1"}

    def test_exception(self) -> None:
        try:
            raise ValueError("stock exhausted")
        except ValueError:
            exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(make_record(logging.ERROR, exc_info=exc_info)))

        assert "ValueError: stock exhausted" in data["exception"]


class TestColoredFormatter:
    """Тесты для ColoredFormatter."""

    def test_level_is_colored(self) -> None:
        result = ColoredFormatter().format(make_record(logging.WARNING))

        assert "\033[33m[WARNING]" in result
        assert "Заказ создан" in result

    def test_caller_info(self) -> None:
        record = make_record()
        record.extra_data = {
            "caller_function": "accept_order",
            "caller_module": "src.core.delivery.service",
            "caller_line": 120,
        }

        result = ColoredFormatter().format(record)

        assert "src.core.delivery.service.accept_order():120" in result


class TestSizeRotatingFileHandler:
    def test_rollover_archives_file(self, tmp_path) -> None:
        handler = SizeRotatingFileHandler(log_dir=str(tmp_path), max_bytes=1024, logger_name="app")
        handler.emit(make_record())

        handler.doRollover()
        handler.close()

        archived = [p.name for p in tmp_path.iterdir() if p.name.startswith("app_")]
        assert len(archived) == 1
        assert (tmp_path / "app.log").exists()


class TestReadLoggingSettings:
    def test_defaults_when_config_unavailable(self) -> None:
        with patch.dict(sys.modules, {"src.config": None}):
            cfg = _read_logging_settings()

        assert cfg["level"] == "DEBUG"
        assert cfg["to_file"] is False

    def test_mocked_values_fall_back_to_defaults(self) -> None:
        fake_config = MagicMock()
        fake_config.settings.logging.LOG_LEVEL = "WARNING"

        with patch.dict(sys.modules, {"src.config": fake_config}):
            cfg = _read_logging_settings()

        assert cfg["level"] == "WARNING"
        assert cfg["format"] == "colored"
        assert cfg["max_bytes"] == 10485760


class TestGetLogger:
    """Тесты для get_logger."""

    def setup_method(self) -> None:
        _loggers.clear()
        logging.getLogger("test_marketplace").handlers.clear()

    def test_creates_console_logger(self) -> None:
        logger = get_logger("test_marketplace")

        assert logger.name == "test_marketplace"
        assert logger.propagate is False
        assert any(isinstance(h, logging.StreamHandler) for h in logger.handlers)

    def test_cached(self) -> None:
        assert get_logger("test_marketplace") is get_logger("test_marketplace")

    def test_level_from_settings(self) -> None:
        with patch.object(logger_module, "_read_logging_settings", return_value={
            "level": "ERROR",
            "format": "json",
            "to_file": False,
            "file_path": "logs/app.log",
            "max_bytes": 1024,
        }):
            logger = get_logger("test_marketplace")

        assert logger.level == logging.ERROR
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)


class TestSetupLogging:
    def test_quiets_third_party_loggers(self) -> None:
        with patch.object(logger_module, "_LOGGING_INITIALIZED", False):
            setup_logging()

        assert DEFAULT_LOGGER_NAME in _loggers
        assert logging.getLogger("asyncpg").level == logging.WARNING
        assert logging.getLogger("aio_pika").level == logging.WARNING


class TestGetCallerInfo:
    def test_skips_log_functions(self) -> None:
        def log_info():
            return _get_caller_info()

        def placing_order():
            return log_info()

        info = placing_order()

        assert info["caller_function"] == "placing_order"
        assert info["caller_module"] == __name__


class TestLogFunctions:
    """Тесты для асинхронных функций логирования."""

    @pytest.fixture
    def fake_logger(self):
        fake = MagicMock()
        with patch.object(logger_module, "get_logger", return_value=fake) as getter:
            fake.getter = getter
            yield fake

    @pytest.mark.asyncio
    async def test_log_info(self, fake_logger) -> None:
        await log_info("Заказ создан", extra={"order_id": "o1"})

        level, message = fake_logger.log.call_args.args
        extra_data = fake_logger.log.call_args.kwargs["extra"]["extra_data"]
        assert level == logging.INFO
        assert message == "Заказ создан"
        assert extra_data["order_id"] == "o1"
        assert extra_data["caller_function"] == "test_log_info"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("type_msg,level", [
        (TypeMsg.DEBUG, logging.DEBUG),
        (TypeMsg.WARNING, logging.WARNING),
        (TypeMsg.ERROR, logging.ERROR),
        (TypeMsg.CRITICAL, logging.CRITICAL),
    ])
    async def test_type_msg_sets_level(self, fake_logger, type_msg: TypeMsg, level: int) -> None:
        await log_info("msg", type_msg=type_msg)

        assert fake_logger.log.call_args.args[0] == level

    @pytest.mark.asyncio
    async def test_shortcuts(self, fake_logger) -> None:
        await log_debug("d")
        await log_warning("w")

        levels = [c.args[0] for c in fake_logger.log.call_args_list]
        assert levels == [logging.DEBUG, logging.WARNING]
        assert fake_logger.log.call_args.kwargs["extra"]["extra_data"]["caller_function"] == "test_shortcuts"

    @pytest.mark.asyncio
    async def test_log_error_with_exc_info(self, fake_logger) -> None:
        await log_error("Ошибка оплаты", exc_info=True)

        assert fake_logger.error.call_args.kwargs["exc_info"] is True
        assert fake_logger.error.call_args.kwargs["extra"]["extra_data"]["caller_function"] == "test_log_error_with_exc_info"

    @pytest.mark.asyncio
    async def test_custom_logger_name(self, fake_logger) -> None:
        await log_info("msg", logger_name="realtime")

        fake_logger.getter.assert_called_once_with("realtime")
