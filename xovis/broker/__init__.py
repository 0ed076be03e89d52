# xovis/broker/__init__.py
"""
Протокол датчиков Xovis (HTTPS JSON API v5).

Состав:
  - http.py      → HTTPS-исполнитель запросов
  - login.py     → учёт токена/сессии
  - decoder.py   → логики → линии/зоны
  - discovery.py → поиск соседних датчиков
  - connector.py → фасад для одного датчика
"""
from .connector import XovisConnector

__all__ = ["XovisConnector"]
