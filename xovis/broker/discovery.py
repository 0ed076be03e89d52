# xovis/broker/discovery.py
"""
Поиск соседних датчиков с помощью уже известного (seed) датчика.

  Disabled  → пусто, не ошибка;
  LocalScan → GET  /discover/localnetwork;
  RangeScan → POST /discover/scan {first_ip, count}.

Найденные устройства наследуют учётку и конфигурацию seed, режим discovery
у них всегда Disabled (иначе каждый найденный снова сканировал бы ту же сеть).
Устройство с MAC самого seed получает его id → при сохранении это update, а не дубль.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Optional

from xovis.broker.http import API_PATH
from xovis.core.errors import DecodeError
from xovis.core.types import Disabled, LocalScan, RangeScan, DiscoveryMode, Sensor

log = logging.getLogger("discovery")

LOCAL_NETWORK_PATH = API_PATH + "/discover/localnetwork"
SCAN_PATH = API_PATH + "/discover/scan"

DEFAULT_HTTPS_PORT = 443

RequestFn = Callable[..., bytes]


def scan(mode: DiscoveryMode, request: RequestFn) -> Optional[bytes]:
    """Один запрос сканирования по режиму. None, если discovery выключен."""
    if isinstance(mode, Disabled):
        return None
    if isinstance(mode, LocalScan):
        return request("GET", LOCAL_NETWORK_PATH)
    if isinstance(mode, RangeScan):
        return request("POST", SCAN_PATH, json_body={"first_ip": mode.first_ip, "count": mode.count})
    raise TypeError(f"unsupported discovery mode: {mode!r}")


def _pick_port(ports: List[Dict[str, Any]]) -> int:
    port = DEFAULT_HTTPS_PORT
    for p in ports or []:
        if isinstance(p, dict) and p.get("service") == "https":
            try:
                port = int(p.get("number"))
            except (TypeError, ValueError):
                log.debug(f"bad https port entry: {p!r}")
    return port


def _pick_host(item: Dict[str, Any]) -> str:
    host = str(item.get("ip") or "")
    ipv6 = item.get("ipv6") or []
    if not host and ipv6:
        host = str(ipv6[0])
    return host


def parse_discovery_result(raw: bytes, seed: Sensor, seed_mac: str) -> List[Sensor]:
    """Ответ сканирования → список Sensor для сохранения."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"parsing discovery response: {e}") from e
    if not isinstance(data, dict):
        raise DecodeError("parsing discovery response: top-level JSON is not an object")

    sensors: List[Sensor] = []
    for item in data.get("sensors") or []:
        if not isinstance(item, dict):
            continue
        mac = str(item.get("mac") or "")
        host = _pick_host(item)
        if not host:
            log.warning(f"discovered device {mac or '?'} has no address, skipping")
            continue

        sensor = Sensor(
            config=seed.config,
            username=seed.username,
            password=seed.password,
            hostname=host,
            port=_pick_port(item.get("ports") or []),
            discovery=Disabled(),
            mac_address=mac or None,
        )
        # сам seed оставляем с его id, чтобы не затереть/не задублировать запись
        if mac and mac == seed_mac:
            sensor.id = seed.id
        sensors.append(sensor)

    return sensors
