# xovis/broker/http.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
import urllib3

from xovis.core.errors import TransportError

log = logging.getLogger("broker")

API_PATH = "/api/v5"

OK_STATUSES = (200, 201, 202)


class XovisHttp:
    """
    Минимальный HTTPS-исполнитель запросов к датчику.

    Ретраев нет, повтором служит следующий цикл опроса.
    Проверку сертификата включает/выключает конфигурация (у датчиков self-signed).
    """

    def __init__(self, host: str, port: int, timeout: float, check_cert: bool):
        self.host = host
        self.port = int(port)
        self.timeout = float(timeout)
        self.check_cert = bool(check_cert)
        if not self.check_cert:
            # предупреждение urllib3 на каждый запрос только засоряет лог
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @property
    def base_url(self) -> str:
        host = self.host
        # IPv6 без скобок в URL не работает
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"https://{host}:{self.port}"

    def request(self, method: str, api_path: str, headers: Optional[Dict[str, str]] = None,
                json_body: Optional[Dict[str, Any]] = None) -> bytes:
        """
        Выполнить запрос и вернуть тело.
        При статусе не 200/201/202 бросает TransportError, тело лежит в err.body.
        """
        url = self.base_url + api_path
        try:
            resp = requests.request(
                method,
                url,
                headers=headers or {},
                json=json_body,
                timeout=self.timeout,
                verify=self.check_cert,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"request to {url}: {e}") from e

        body = resp.content
        if resp.status_code not in OK_STATUSES:
            log.debug(f" -> {method} {url}: {resp.status_code}, {body[:500]!r}")
            raise TransportError(
                f"{url} not ok: status code: {resp.status_code}",
                body=body,
                status_code=resp.status_code,
            )
        return body
