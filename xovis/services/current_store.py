# xovis/services/current_store.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Tuple, List, Any, Optional
import threading

from xovis.core.types import NOT_REPORTED, Line, Zone


@dataclass
class CounterState:
    device_mac: str
    kind: str                  # "line" | "zone"
    logic_id: int
    name: str = ""

    values: Dict[str, int] = field(default_factory=dict)  # forward/backward или presence
    source: str = ""           # "poll" | "webhook"
    sensor_id: Optional[int] = None

    # время последнего обновления любого значения
    last_ts: Optional[datetime] = None


Key = Tuple[str, str, int]  # (device_mac, kind, logic_id)


class CurrentStore:
    """«Текущие» значения линий и зон, из опроса и из webhook."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._items: Dict[Key, CounterState] = {}

    def _get(self, mac: str, kind: str, logic_id: int) -> CounterState:
        key: Key = (mac, kind, int(logic_id))
        st = self._items.get(key)
        if not st:
            st = CounterState(device_mac=mac, kind=kind, logic_id=int(logic_id))
            self._items[key] = st
        return st

    def apply_poll(self, sensor_id: Optional[int], lines: List[Line], zones: List[Zone],
                   ts: Optional[datetime] = None) -> None:
        ts = ts or datetime.now(timezone.utc)
        with self._lock:
            for ln in lines:
                st = self._get(ln.device_mac, "line", ln.id)
                st.name = ln.name or st.name
                if ln.forward != NOT_REPORTED:
                    st.values["forward"] = ln.forward
                if ln.backward != NOT_REPORTED:
                    st.values["backward"] = ln.backward
                st.source, st.sensor_id, st.last_ts = "poll", sensor_id, ts
            for zn in zones:
                st = self._get(zn.device_mac, "zone", zn.id)
                st.name = zn.name or st.name
                st.values["presence"] = zn.presence
                st.source, st.sensor_id, st.last_ts = "poll", sensor_id, ts

    def apply_push(self, device_mac: str, kind: str, logic_id: int, data: Dict[str, int],
                   ts: Optional[datetime] = None) -> None:
        """Значение пришло через webhook (имя логики там неизвестно)."""
        ts = ts or datetime.now(timezone.utc)
        with self._lock:
            st = self._get(device_mac, kind, logic_id)
            st.values.update(data)
            st.source, st.last_ts = "webhook", ts

    def clear(self) -> None:
        with self._lock:
            self._items = {}

    def list(self) -> List[Dict[str, Any]]:
        now = datetime.now(timezone.utc)
        with self._lock:
            out: List[Dict[str, Any]] = []
            for st in sorted(self._items.values(), key=lambda s: (s.device_mac, s.kind, s.logic_id)):
                since = None
                if st.last_ts is not None:
                    since = max(0, int((now - st.last_ts).total_seconds()))
                out.append({
                    "device_mac": st.device_mac,
                    "kind": st.kind,
                    "logic_id": st.logic_id,
                    "name": st.name,
                    "sensor_id": st.sensor_id,
                    "source": st.source,
                    "forward": st.values.get("forward"),
                    "backward": st.values.get("backward"),
                    "presence": st.values.get("presence"),
                    "last_ts": st.last_ts.isoformat() if st.last_ts else None,
                    "since_last_s": since,
                })
            return out


current_store = CurrentStore()
