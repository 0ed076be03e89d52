# xovis/broker/connector.py
from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from xovis.broker import discovery
from xovis.broker.decoder import decode_counters, decode_logics
from xovis.broker.http import API_PATH, XovisHttp
from xovis.broker.login import Login
from xovis.core.errors import DecodeError, TransportError
from xovis.core.types import Line, Logics, PeopleCounter, Sensor, Zone

log = logging.getLogger("broker")


DEVICE_ID_PATH = API_PATH + "/device/id"
DEVICE_INFO_PATH = API_PATH + "/device/info"
ALL_COUNTERS_PATH = API_PATH + "/singlesensor/data/live/logics"
RESET_ALL_COUNTERS_PATH = API_PATH + "/singlesensor/data/live/counts/reset"


def encode_basic_auth(username: str, password: str) -> str:
    return base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")


def _json_object(raw: bytes, what: str) -> Dict[str, Any]:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"parsing {what} response: {e}") from e
    if not isinstance(data, dict):
        raise DecodeError(f"parsing {what} response: not a JSON object")
    return data


class XovisConnector:
    """
    Один настроенный датчик: HTTP + учёт сессии + декодер + discovery.

    Экземпляр принадлежит одной задаче (опрос или discovery) и не
    потокобезопасен: request() меняет времена в Login.
    """

    def __init__(self, sensor: Sensor):
        self.sensor = sensor
        self.basic_auth = encode_basic_auth(sensor.username, sensor.password)
        self.login = Login()
        self.http = XovisHttp(
            host=sensor.hostname,
            port=sensor.port,
            timeout=sensor.config.request_timeout,
            check_cert=sensor.config.check_certificate,
        )

    # ───────────────────────── транспорт ─────────────────────────
    def request(self, method: str, path: str, json_body: Optional[Dict[str, Any]] = None) -> bytes:
        headers = {
            "Authorization": "Basic " + self.basic_auth,
            "Accept": "application/json",
        }
        try:
            body = self.http.request(method, path, headers, json_body=json_body)
        except TransportError:
            # заставляем заново авторизоваться при следующем обращении
            self.login.reset()
            raise
        self.login.touch()
        return body

    # ───────────────────────── discovery ─────────────────────────
    def discover_devices(self) -> List[Sensor]:
        mode = self.sensor.discovery
        try:
            raw = discovery.scan(mode, self.request)
        except TransportError as e:
            raise TransportError(f"making {mode.name} request: {e}", body=e.body, status_code=e.status_code) from e
        if raw is None:
            return []

        device_itself = self.get_device_info()
        sensors = discovery.parse_discovery_result(raw, self.sensor, device_itself["mac"])
        log.debug(f"sensor {self.sensor.id}: {mode.name} scan found {len(sensors)} devices")
        return sensors

    # ───────────────────────── идентичность ─────────────────────────
    def get_device_id(self) -> Dict[str, str]:
        data = _json_object(self.request("GET", DEVICE_ID_PATH), "device id")
        return {"name": str(data.get("name", "")), "group": str(data.get("group", ""))}

    def get_device_info(self) -> Dict[str, str]:
        data = _json_object(self.request("GET", DEVICE_INFO_PATH), "device info")
        # у датчика поле serial содержит MAC
        return {"mac": str(data.get("serial", "")), "model": str(data.get("type", ""))}

    def get_device(self) -> PeopleCounter:
        ident = self.get_device_id()
        info = self.get_device_info()
        return PeopleCounter(
            name=ident["name"],
            group=ident["group"],
            mac=info["mac"],
            model=info["model"],
            config=self.sensor.config,
        )

    # ───────────────────────── счётчики ─────────────────────────
    def get_counters_raw(self) -> Logics:
        return decode_logics(self.request("GET", ALL_COUNTERS_PATH))

    def get_all_counters(self) -> Tuple[List[Line], List[Zone]]:
        info = self.get_device_info()
        logics = self.get_counters_raw()
        return decode_counters(logics, info["mac"], self.sensor.config)

    def reset_all_counters(self) -> None:
        self.request("POST", RESET_ALL_COUNTERS_PATH)
