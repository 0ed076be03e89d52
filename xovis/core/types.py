# xovis/core/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

from xovis.core.errors import ValidationError


# ─────────────────────────────────────────────────────────────────────────────
# Конфигурация и датчики
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class Configuration:
    id: Optional[int] = None
    enable: bool = False
    active: bool = False              # состояние рантайма, управляет коллектор (не пользователь)
    refresh_interval: int = 60        # сек, период опроса
    request_timeout: int = 120        # сек, таймаут HTTP к датчику
    check_certificate: bool = False   # у датчиков обычно self-signed сертификаты
    project_ids: List[str] = field(default_factory=list)
    user_id: str = ""


# ─── режимы discovery ───

@dataclass(frozen=True)
class Disabled:
    name = "disabled"


@dataclass(frozen=True)
class LocalScan:
    """L2: поиск соседей в локальной подсети."""
    name = "L2"


@dataclass(frozen=True)
class RangeScan:
    """L3: явный диапазон адресов (first_ip + count)."""
    first_ip: str
    count: int
    name = "L3"


DiscoveryMode = Union[Disabled, LocalScan, RangeScan]


def parse_discovery_mode(mode: Optional[str], first_ip: Optional[str] = None,
                         count: Optional[int] = None) -> DiscoveryMode:
    """
    Строковый режим из БД/API → вариант. Все проверки здесь, чтобы дальше
    по коду «неизвестного режима» не существовало.
    """
    m = (mode or "disabled").strip()
    if m == "disabled":
        return Disabled()
    if m == "L2":
        return LocalScan()
    if m == "L3":
        if not first_ip or count is None:
            raise ValidationError("L3 discovery mode requires first_ip and count to be set")
        try:
            n = int(count)
        except (TypeError, ValueError):
            raise ValidationError(f"L3 discovery count must be an integer, got {count!r}")
        if n <= 0:
            raise ValidationError(f"L3 discovery count must be positive, got {n}")
        return RangeScan(first_ip=str(first_ip).strip(), count=n)
    raise ValidationError(f"unknown discovery mode: {m}")


@dataclass
class Sensor:
    config: Configuration
    username: str
    password: str
    hostname: str
    port: int = 443
    discovery: DiscoveryMode = field(default_factory=Disabled)
    mac_address: Optional[str] = None
    id: Optional[int] = None

    @property
    def l3_first_ip(self) -> Optional[str]:
        return self.discovery.first_ip if isinstance(self.discovery, RangeScan) else None

    @property
    def l3_count(self) -> Optional[int]:
        return self.discovery.count if isinstance(self.discovery, RangeScan) else None


@dataclass
class Asset:
    """Связка GAI → id ассета на платформе (строка таблицы asset)."""
    config: Configuration
    project_id: str
    global_asset_id: str
    asset_id: int
    provider_id: str = ""
    id: Optional[int] = None


# ─────────────────────────────────────────────────────────────────────────────
# Данные счётчиков (сырые «логики» датчика и декодированные линии/зоны)
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class Count:
    id: int
    name: str
    value: int


@dataclass
class Logic:
    id: int
    name: str
    info: str
    counts: List[Count] = field(default_factory=list)


@dataclass
class Logics:
    time: str
    logics: List[Logic] = field(default_factory=list)


NOT_REPORTED = -1


@dataclass
class Line:
    id: int
    name: str
    device_mac: str
    config: Optional[Configuration] = None
    forward: int = NOT_REPORTED
    backward: int = NOT_REPORTED

    @property
    def gai(self) -> str:
        return line_gai(self.device_mac, self.id)


@dataclass
class Zone:
    id: int
    name: str
    device_mac: str
    presence: int
    config: Optional[Configuration] = None

    @property
    def gai(self) -> str:
        return zone_gai(self.device_mac, self.id)


@dataclass
class PeopleCounter:
    """Идентичность устройства (/device/id + /device/info) и его линии/зоны."""
    name: str
    group: str
    mac: str
    model: str
    config: Optional[Configuration] = None
    lines: List[Line] = field(default_factory=list)
    zones: List[Zone] = field(default_factory=list)

    @property
    def gai(self) -> str:
        return f"{ASSET_TYPE_PEOPLE_COUNTER}_{self.mac}"


# ─────────────────────────────────────────────────────────────────────────────
# Типы ассетов и GAI (должны совпадать у опроса и у webhook)
# ─────────────────────────────────────────────────────────────────────────────

ASSET_TYPE_ROOT = "xovis_root"
ASSET_TYPE_GROUP = "xovis_group"
ASSET_TYPE_PEOPLE_COUNTER = "xovis_people_counter"
ASSET_TYPE_LINE = "xovis_line"
ASSET_TYPE_ZONE = "xovis_zone"


def line_gai(serial: str, logic_id: int) -> str:
    return f"{ASSET_TYPE_LINE}_{serial}_{logic_id}"


def zone_gai(serial: str, logic_id: int) -> str:
    return f"{ASSET_TYPE_ZONE}_{serial}_{logic_id}"


def group_gai(group: str) -> str:
    return f"{ASSET_TYPE_GROUP}_{group}"
