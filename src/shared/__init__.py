# src/shared/__init__.py
"""
Общий код между сервисами.

Модули:
- models: координаты, локализованный текст, пагинация, ответы об ошибках и health check
"""

__all__: list[str] = []
