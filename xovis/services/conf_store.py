# xovis/services/conf_store.py
"""
Хранилище конфигураций, датчиков и связок ассетов (SQLAlchemy).

Коллектор и webhook работают только через этот объект; в тестах
подставляется ConfStore с in-memory SQLite.
"""
from __future__ import annotations

import logging
import threading
from typing import List, Optional, Set, Tuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from xovis.core.errors import NotFoundError, ValidationError
from xovis.core.types import Asset, Configuration, Disabled, DiscoveryMode, Sensor, parse_discovery_mode
from xovis.db.models import AssetRow, ConfigurationRow, SensorRow
from xovis.db.session import SessionLocal

log = logging.getLogger("conf")


# ─────────────────────────────────────────────────────────────────────────────
# row ↔ dataclass
# ─────────────────────────────────────────────────────────────────────────────

def _to_config(r: ConfigurationRow) -> Configuration:
    return Configuration(
        id=r.id,
        enable=bool(r.enable),
        active=bool(r.active),
        refresh_interval=int(r.refresh_interval),
        request_timeout=int(r.request_timeout),
        check_certificate=bool(r.check_certificate),
        project_ids=[str(p) for p in (r.project_ids or [])],
        user_id=r.user_id or "",
    )


def _to_sensor(r: SensorRow, config: Configuration, mode: DiscoveryMode) -> Sensor:
    return Sensor(
        id=r.id,
        config=config,
        username=r.username or "",
        password=r.password or "",
        hostname=r.hostname,
        port=int(r.port),
        discovery=mode,
        mac_address=r.mac_address,
    )


def _to_asset(r: AssetRow, config: Configuration) -> Asset:
    return Asset(
        id=r.id,
        config=config,
        project_id=r.project_id,
        global_asset_id=r.global_asset_id,
        provider_id=r.provider_id or "",
        asset_id=int(r.asset_id) if r.asset_id is not None else 0,
    )


class ConfStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._sf = session_factory
        # невалидные режимы discovery, о которых уже предупредили
        self._bad_modes: Set[Tuple] = set()
        self._bad_lock = threading.Lock()

    def _session(self) -> Session:
        return self._sf()

    def _sensor(self, r: SensorRow, config: Configuration) -> Sensor:
        """
        Строка → Sensor. Кривой режим discovery (записан внешним CRUD) не
        роняет остальные датчики: такой датчик опрашивается, но не сканирует.
        """
        try:
            mode = parse_discovery_mode(r.discovery_mode, r.l3_first_ip, r.l3_count)
        except ValidationError as e:
            sig = (r.id, r.discovery_mode, r.l3_first_ip, r.l3_count)
            with self._bad_lock:
                fresh = sig not in self._bad_modes
                self._bad_modes.add(sig)
            if fresh:
                log.warning(f"sensor {r.id}: {e}; discovery disabled for it")
            mode = Disabled()
        return _to_sensor(r, config, mode)

    # ───────────────────────── конфигурации ─────────────────────────
    def get_configs(self) -> List[Configuration]:
        with self._session() as s:
            rows = s.scalars(select(ConfigurationRow).order_by(ConfigurationRow.id)).all()
            return [_to_config(r) for r in rows]

    def get_config(self, config_id: int) -> Configuration:
        with self._session() as s:
            r = s.get(ConfigurationRow, config_id)
            if r is None:
                raise NotFoundError(f"configuration {config_id} not found")
            return _to_config(r)

    def insert_config(self, config: Configuration) -> Configuration:
        with self._session() as s:
            r = ConfigurationRow(
                id=config.id,
                enable=config.enable,
                active=config.active,
                refresh_interval=config.refresh_interval,
                request_timeout=config.request_timeout,
                check_certificate=config.check_certificate,
                project_ids=list(config.project_ids),
                user_id=config.user_id,
            )
            s.add(r)
            s.commit()
            return _to_config(r)

    def set_config_active_state(self, config: Configuration, state: bool) -> int:
        with self._session() as s:
            res = s.execute(
                update(ConfigurationRow).where(ConfigurationRow.id == config.id).values(active=state)
            )
            s.commit()
            return res.rowcount

    def set_all_configs_inactive(self) -> int:
        with self._session() as s:
            res = s.execute(update(ConfigurationRow).values(active=False))
            s.commit()
            return res.rowcount

    # ───────────────────────── датчики ─────────────────────────
    def get_sensors_of_config(self, config_id: int) -> List[Sensor]:
        with self._session() as s:
            cr = s.get(ConfigurationRow, config_id)
            if cr is None:
                raise NotFoundError(f"configuration {config_id} not found")
            config = _to_config(cr)
            rows = s.scalars(
                select(SensorRow).where(SensorRow.configuration_id == config_id).order_by(SensorRow.id)
            ).all()
            return [self._sensor(r, config) for r in rows]

    def get_sensor(self, sensor_id: int) -> Sensor:
        with self._session() as s:
            r = s.get(SensorRow, sensor_id)
            if r is None:
                raise NotFoundError(f"sensor {sensor_id} not found")
            return self._sensor(r, _to_config(r.config))

    def insert_sensor(self, sensor: Sensor) -> Sensor:
        with self._session() as s:
            r = SensorRow(configuration_id=sensor.config.id)
            self._fill_sensor_row(r, sensor)
            s.add(r)
            s.commit()
            return self._sensor(r, _to_config(r.config))

    @staticmethod
    def _fill_sensor_row(r: SensorRow, sensor: Sensor) -> None:
        r.username = sensor.username
        r.password = sensor.password
        r.hostname = sensor.hostname
        r.port = int(sensor.port)
        r.discovery_mode = sensor.discovery.name
        r.l3_first_ip = sensor.l3_first_ip
        r.l3_count = sensor.l3_count
        r.mac_address = sensor.mac_address

    def upsert_sensor_discovery(self, sensor: Sensor) -> Sensor:
        """
        Сохранить найденное discovery устройство.

        - sensor.id задан (это сам seed) → обновляем адрес и MAC, режим и учётку не трогаем;
        - есть датчик той же конфигурации с таким же MAC → обновляем адрес;
        - иначе: новая запись.
        """
        with self._session() as s:
            r: Optional[SensorRow] = None
            if sensor.id is not None:
                r = s.get(SensorRow, sensor.id)
            if r is None and sensor.mac_address:
                r = s.scalars(
                    select(SensorRow).where(
                        SensorRow.configuration_id == sensor.config.id,
                        SensorRow.mac_address == sensor.mac_address,
                    )
                ).first()

            if r is None:
                r = SensorRow(configuration_id=sensor.config.id)
                self._fill_sensor_row(r, sensor)
                s.add(r)
                log.info(f"new sensor discovered: {sensor.hostname}:{sensor.port} mac={sensor.mac_address}")
            else:
                r.hostname = sensor.hostname
                r.port = int(sensor.port)
                if sensor.mac_address:
                    r.mac_address = sensor.mac_address
            s.commit()
            return self._sensor(r, _to_config(r.config))

    # ───────────────────────── ассеты ─────────────────────────
    def get_asset_by_gai(self, gai: str, config_id: Optional[int] = None) -> Asset:
        with self._session() as s:
            q = select(AssetRow).where(AssetRow.global_asset_id == gai, AssetRow.asset_id.isnot(None))
            if config_id is not None:
                q = q.where(AssetRow.configuration_id == config_id)
            r = s.scalars(q.order_by(AssetRow.id)).first()
            if r is None:
                raise NotFoundError(f"asset {gai} not found")
            return _to_asset(r, _to_config(r.config))

    def get_asset_id(self, config: Configuration, project_id: str, gai: str) -> Optional[int]:
        with self._session() as s:
            r = s.scalars(
                select(AssetRow).where(
                    AssetRow.configuration_id == config.id,
                    AssetRow.project_id == project_id,
                    AssetRow.global_asset_id == gai,
                )
            ).first()
            if r is None or r.asset_id is None:
                return None
            return int(r.asset_id)

    def insert_asset(self, config: Configuration, project_id: str, gai: str,
                     asset_id: int, provider_id: str = "") -> None:
        with self._session() as s:
            s.add(AssetRow(
                configuration_id=config.id,
                project_id=project_id,
                global_asset_id=gai,
                asset_id=asset_id,
                provider_id=provider_id,
            ))
            s.commit()


conf_store = ConfStore()
