# xovis/broker/login.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

log = logging.getLogger("broker")

# токен считаем протухшим заранее, чтобы он не истёк посреди запроса
EXPIRY_MARGIN_S = 240


@dataclass
class Login:
    """
    Учёт токена датчика: когда выдан, когда использовался, сколько живёт.

    Запросы сейчас идут с Basic-авторизацией; Login ведёт только учёт времени
    (touch при успехе, reset при ошибке) и проверку is_valid().
    """
    token: str = ""
    valid_for: int = 0          # сек от выдачи
    max_unused_for: int = 0     # сек простоя
    received_at: int = 0        # unix-время выдачи
    last_used_at: int = 0       # unix-время последнего успешного запроса

    def is_valid(self, now: Optional[int] = None) -> bool:
        now = int(time.time()) if now is None else int(now)
        if (self.received_at + self.valid_for <= now + EXPIRY_MARGIN_S
                or self.last_used_at + self.max_unused_for <= now + EXPIRY_MARGIN_S):
            log.debug("token expired")
            return False
        return True

    def touch(self, now: Optional[int] = None) -> None:
        self.last_used_at = int(time.time()) if now is None else int(now)

    def reset(self) -> None:
        self.received_at = 0
        self.last_used_at = 0
