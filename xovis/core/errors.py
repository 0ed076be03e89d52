# xovis/core/errors.py
"""
Ошибки интеграции.

  TransportError : сеть/таймаут/TLS или статус не 200/201/202 (тело ответа сохраняется);
  DecodeError    : битый JSON от датчика или платформы;
  NotFoundError  : нет ассета/конфигурации/датчика (используется и для fallback zone → line);
  ValidationError: некорректные входные параметры (L3 без first_ip/count, неизвестный режим).

Неизвестные счётчики/типы логик/индексы счётчиков не ошибки, их логируем и пропускаем.
"""
from __future__ import annotations

from typing import Optional


class TransportError(Exception):
    def __init__(self, message: str, *, body: Optional[bytes] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.body = body
        self.status_code = status_code


class DecodeError(Exception):
    pass


class NotFoundError(Exception):
    pass


class ValidationError(ValueError):
    pass
