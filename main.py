#!/usr/bin/env python3
# main.py
"""
Главная точка входа Marketplace.
Запускает Marketplace API, Realtime WS Gateway или оба компонента.
"""

from __future__ import annotations

import asyncio
import signal
import sys

from src.config import settings
from src.common.logger import setup_logging, log_info, log_error
from src.common.constants import TypeMsg

VALID_MODES = ("api", "realtime_ws", "all")

# Глобальный флаг для graceful shutdown
_shutdown_event: asyncio.Event | None = None
_running_tasks: list[asyncio.Task] = []


def setup_signal_handlers() -> None:
    """Настраивает обработчики сигналов для graceful shutdown."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    def signal_handler(sig: int) -> None:
        if _shutdown_event and not _shutdown_event.is_set():
            _shutdown_event.set()
            for task in _running_tasks:
                if not task.done():
                    task.cancel()

    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
    except NotImplementedError:
        # Windows не поддерживает add_signal_handler
        signal.signal(signal.SIGINT, lambda s, f: signal_handler(s))
        signal.signal(signal.SIGTERM, lambda s, f: signal_handler(s))


async def _serve(app_path: str, name: str, host: str, port: int) -> None:
    """Запускает FastAPI приложение под uvicorn внутри текущего event loop."""
    import uvicorn

    await log_info(f"Запуск {name} на {host}:{port}...", type_msg=TypeMsg.INFO)

    config = uvicorn.Config(
        app_path,
        host=host,
        port=port,
        log_level="debug" if settings.system.DEBUG else "info",
    )
    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info(f"{name}: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


async def run_marketplace_api() -> None:
    """Запускает Marketplace API (заказы, доставка, оплата)."""
    await _serve(
        "src.services.marketplace_api.app:app",
        "Marketplace API",
        settings.deployment.API_HOST,
        settings.deployment.API_PORT,
    )


async def run_realtime_ws_gateway() -> None:
    """Запускает Realtime WebSocket Gateway."""
    await _serve(
        "src.services.realtime_ws.app:app",
        "Realtime WS Gateway",
        settings.deployment.REALTIME_WS_GATEWAY_HOST,
        settings.deployment.REALTIME_WS_GATEWAY_PORT,
    )


async def main(mode: str | None = None) -> None:
    """
    Главная функция запуска.

    Args:
        mode: Режим запуска (api, realtime_ws, all).
              Если None, берётся COMPONENT_MODE из настроек.
    """
    global _running_tasks

    setup_logging()
    setup_signal_handlers()

    if mode is None:
        mode = settings.system.COMPONENT_MODE if settings.system.COMPONENT_MODE in VALID_MODES else "all"

    await log_info(
        f"Marketplace v{settings.system.VERSION} — запуск в режиме '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    runners = {
        "api": [run_marketplace_api],
        "realtime_ws": [run_realtime_ws_gateway],
        "all": [run_marketplace_api, run_realtime_ws_gateway],
    }

    try:
        _running_tasks = [asyncio.create_task(runner()) for runner in runners[mode]]
        await asyncio.gather(*_running_tasks)
    except asyncio.CancelledError:
        await log_info("Задача отменена, выполняется graceful shutdown", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}", exc_info=True)
        raise
    finally:
        for task in _running_tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*_running_tasks, return_exceptions=True)
        _running_tasks.clear()
        await log_info("Приложение остановлено", type_msg=TypeMsg.INFO)


def print_usage() -> None:
    """Выводит справку по использованию."""
    print("""
Marketplace — заказы, доставка и оплата мобильными деньгами

Использование:
    python main.py [mode]

Режимы:
    api            — Marketplace API (:8000)
    realtime_ws    — Realtime WebSocket Gateway (:8001)
    all            — оба компонента в одном процессе

Без аргумента режим берётся из COMPONENT_MODE.
    """)


if __name__ == "__main__":
    mode = None

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        elif arg in VALID_MODES:
            mode = arg
        else:
            print(f"Ошибка: неизвестный режим '{arg}'")
            print_usage()
            sys.exit(1)

    try:
        asyncio.run(main(mode))
    except KeyboardInterrupt:
        pass
