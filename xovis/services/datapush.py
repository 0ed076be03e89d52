# xovis/services/datapush.py
"""
Разбор push-данных датчика (webhook /{configID}/datapush).

Событие COUNT несёт составной counter_id = logic_id * 1000 + индекс счётчика.
Тип логики (линия или зона) в событии не указан, поэтому ассет ищем
сначала как зону, при NotFound как линию. Порядок менять нельзя:
от него зависит, какой ассет получит значение.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from xovis.core.errors import DecodeError, NotFoundError, TransportError
from xovis.core.types import line_gai, zone_gai
from xovis.services.current_store import CurrentStore

_log = logging.getLogger("datapush")

CATEGORY_COUNT = "COUNT"

LINE_COUNTER_KEYS = {1: "forward", 2: "backward"}


def decompose(counter_id: int) -> Tuple[int, int]:
    """1008001 → (1008, 1)"""
    return counter_id // 1000, counter_id % 1000


def _iter_count_events(data: Dict[str, Any]):
    live = data.get("live_data") or {}
    frames = live.get("frames")
    for frame in frames if isinstance(frames, list) else []:
        if not isinstance(frame, dict):
            continue
        events = frame.get("events")
        for event in events if isinstance(events, list) else []:
            if not isinstance(event, dict) or event.get("category") != CATEGORY_COUNT:
                continue
            attrs = event.get("attributes")
            if not isinstance(attrs, dict):
                _log.warning(f"COUNT event without attributes object: {attrs!r}")
                continue
            yield attrs


def process_datapush(data: Dict[str, Any], config_id: Optional[int], store, sink,
                     current: Optional[CurrentStore] = None) -> int:
    """
    Обработать все COUNT-события пакета. Возвращает число записанных значений.
    Ошибки отдельных событий логируются, пакет дорабатывается до конца.
    """
    if not isinstance(data, dict):
        raise DecodeError("datapush body is not a JSON object")

    live = data.get("live_data") or {}
    if not isinstance(live, dict) or not isinstance(live.get("sensor_info") or {}, dict):
        raise DecodeError("datapush live_data is not a JSON object")
    serial = str((live.get("sensor_info") or {}).get("serial_number", ""))
    written = 0

    for attrs in _iter_count_events(data):
        try:
            raw_id = int(attrs.get("counter_id", 0))
            value = int(attrs.get("counter_value", 0))
        except (TypeError, ValueError):
            _log.warning(f"malformed COUNT event attributes: {attrs!r}")
            continue
        logic_id, counter_idx = decompose(raw_id)

        kind = "zone"
        gai = zone_gai(serial, logic_id)
        payload: Dict[str, int] = {"presence": value}
        try:
            asset = store.get_asset_by_gai(gai, config_id)
        except NotFoundError:
            kind = "line"
            gai = line_gai(serial, logic_id)
            try:
                asset = store.get_asset_by_gai(gai, config_id)
            except Exception as e:
                _log.error(f"getting asset by GAI {gai}: {e}")
                continue
            key = LINE_COUNTER_KEYS.get(counter_idx)
            if key is None:
                _log.warning(f"unknown counter ID {counter_idx} for logic {logic_id}, skipping")
                continue
            payload = {key: value}
        except Exception as e:
            _log.error(f"getting asset by GAI {gai}: {e}")
            continue

        try:
            sink.upsert_asset_data(asset, payload)
        except (TransportError, DecodeError) as e:
            _log.error(f"upserting data: {e}")
            continue
        written += 1
        _log.debug(f"set {asset.asset_id} data {payload}")
        if current is not None:
            current.apply_push(serial, kind, logic_id, payload)

    return written
