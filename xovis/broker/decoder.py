# xovis/broker/decoder.py
from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Tuple

from xovis.core.errors import DecodeError
from xovis.core.types import (
    NOT_REPORTED, Configuration, Count, Line, Logic, Logics, Zone,
)

log = logging.getLogger("broker")

INFO_TYPE_LINE_LEGACY = "XLT_4X_LINE_IN_OUT_COUNT"
INFO_TYPE_ZONE_LEGACY = "XLT_4X_ZONE_COUNT"
INFO_TYPE_LINE = "XLT_LINE_IN_OUT_COUNT"
INFO_TYPE_ZONE = "XLT_ZONE_OCCUPANCY_COUNT"

LINE_INFO_TYPES = (INFO_TYPE_LINE, INFO_TYPE_LINE_LEGACY)
ZONE_INFO_TYPES = (INFO_TYPE_ZONE, INFO_TYPE_ZONE_LEGACY)


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def decode_logics(raw: bytes) -> Logics:
    """JSON /singlesensor/data/live/logics → Logics. Битый JSON → DecodeError."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"decoding logics: {e}") from e
    if not isinstance(data, dict):
        raise DecodeError("decoding logics: top-level JSON is not an object")

    logics: List[Logic] = []
    for item in data.get("logics") or []:
        if not isinstance(item, dict):
            log.debug(f"skipping malformed logic entry: {item!r}")
            continue
        counts = [
            Count(id=_as_int(c.get("id")), name=str(c.get("name", "")), value=_as_int(c.get("value")))
            for c in (item.get("counts") or [])
            if isinstance(c, dict)
        ]
        logics.append(Logic(
            id=_as_int(item.get("id")),
            name=str(item.get("name", "")),
            info=str(item.get("info", "")),
            counts=counts,
        ))
    return Logics(time=str(data.get("time", "")), logics=logics)


def decode_counters(logics: Logics, device_mac: str,
                    config: Optional[Configuration] = None) -> Tuple[List[Line], List[Zone]]:
    """
    Разложить логики на линии и зоны.

    Неизвестный info, лишние имена счётчиков, зона не с одним "balance":
    пишем в debug и идём дальше; одна кривая логика пачку не роняет.
    """
    lines: List[Line] = []
    zones: List[Zone] = []

    for logic in logics.logics:
        if logic.info in LINE_INFO_TYPES:
            line = Line(id=logic.id, name=logic.name, device_mac=device_mac, config=config,
                        forward=NOT_REPORTED, backward=NOT_REPORTED)
            for count in logic.counts:
                if count.name == "fw":
                    line.forward = count.value
                elif count.name == "bw":
                    line.backward = count.value
                else:
                    log.debug(f"unknown counter type: {count.name}")
            lines.append(line)

        elif logic.info in ZONE_INFO_TYPES:
            if len(logic.counts) != 1 or logic.counts[0].name != "balance":
                log.debug(f"unknown counter fields in zone {logic.id}: {[c.name for c in logic.counts]}")
                continue
            zones.append(Zone(id=logic.id, name=logic.name, device_mac=device_mac,
                              presence=logic.counts[0].value, config=config))

        else:
            log.debug(f"unknown logic type: {logic.info}")

    return lines, zones
