# xovis/services/collector.py
"""
Оркестратор сбора: сверка enable/active, задачи discovery и опроса.

  discovery <config id>: раз в refresh_interval × discovery_interval_factor;
  collect <sensor id>  : раз в refresh_interval, свой XovisConnector на задачу.

Ошибки изолированы по датчику: если упал опрос одного, остальные работают,
повтор будет в следующем цикле.
"""
from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Callable, Dict, Optional, Set, Tuple

from xovis.broker.connector import XovisConnector
from xovis.broker.decoder import decode_counters
from xovis.core.errors import DecodeError, NotFoundError, TransportError, ValidationError
from xovis.core.types import Configuration, Disabled, Sensor
from xovis.services.current_store import CurrentStore, current_store
from xovis.services.scheduler import TaskScheduler

_log = logging.getLogger("collector")

ConnectorFactory = Callable[[Sensor], XovisConnector]


def collect_key(sensor_id: int) -> str:
    return f"collect {sensor_id}"


def discovery_key(config_id: int) -> str:
    return f"discovery {config_id}"


def _conn_fingerprint(sensor: Sensor) -> Tuple:
    # всё, что влияет на HTTP-клиент; если поменялось, пересоздаём коннектор
    return (
        sensor.hostname, sensor.port, sensor.username, sensor.password,
        sensor.config.request_timeout, sensor.config.check_certificate,
    )


class Collector:
    def __init__(self, store, sink, connector_factory: ConnectorFactory = XovisConnector,
                 scheduler: Optional[TaskScheduler] = None, scan_interval_s: float = 1.0,
                 discovery_interval_factor: int = 100, current: Optional[CurrentStore] = None):
        self.store = store
        self.sink = sink
        self.connector_factory = connector_factory
        self.scheduler = scheduler or TaskScheduler()
        self.scan_interval_s = float(scan_interval_s)
        self.discovery_interval_factor = int(discovery_interval_factor)
        self.current = current if current is not None else current_store

        # «нет конфигураций» пишем в лог один раз, пока они не появятся
        self._empty_notice_logged = False

        # конфигурации, для которых запущены задачи (останавливаем их один раз)
        self._running_configs: Set[int] = set()

        # коннектор опроса принадлежит своей задаче collect <id>
        self._connectors: Dict[int, Tuple[Tuple, XovisConnector]] = {}
        self._conn_lock = threading.Lock()

    # ───────────────────────── сверка ─────────────────────────
    def scan(self) -> None:
        configs = self.store.get_configs()
        if not configs:
            if not self._empty_notice_logged:
                _log.info("no configurations yet, waiting")
                self._empty_notice_logged = True
            return
        self._empty_notice_logged = False

        for config in configs:
            try:
                self._reconcile(config)
            except (NotFoundError, ValidationError) as e:
                _log.error(f"configuration {config.id}: {e}")

    def _reconcile(self, config: Configuration) -> None:
        if not config.enable:
            if config.active:
                self.store.set_config_active_state(config, False)
                _log.info(f"collecting for configuration {config.id} stopped")
            if config.active or config.id in self._running_configs:
                self._stop_config(config)
            return

        if not config.active:
            self.store.set_config_active_state(config, True)
            _log.info(f"collecting for configuration {config.id} started")

        cid = config.id
        self._running_configs.add(cid)
        self.scheduler.ensure(
            discovery_key(cid),
            lambda: self._discovery_tick(cid),
            config.refresh_interval * self.discovery_interval_factor,
        )
        for sensor in self.store.get_sensors_of_config(cid):
            sid = sensor.id
            self.scheduler.ensure(collect_key(sid), lambda sid=sid: self.collect_sensor(sid), config.refresh_interval)

    def _stop_config(self, config: Configuration) -> None:
        self._running_configs.discard(config.id)
        self.scheduler.stop(discovery_key(config.id))
        for sensor in self.store.get_sensors_of_config(config.id):
            self.scheduler.stop(collect_key(sensor.id))
            self._drop_connector(sensor.id)

    # ───────────────────────── discovery ─────────────────────────
    def _discovery_tick(self, config_id: int) -> bool:
        try:
            config = self.store.get_config(config_id)
        except NotFoundError:
            _log.info(f"configuration {config_id} removed, discovery task ends")
            return False
        if not config.enable:
            return False
        self.discover_config(config)
        return True

    def discover_config(self, config: Configuration) -> int:
        """Discovery по всем датчикам конфигурации, результат пишется в хранилище. Возвращает число записей."""
        stored = 0
        for sensor in self.store.get_sensors_of_config(config.id):
            if isinstance(sensor.discovery, Disabled):
                continue
            # свой коннектор: сессию задачи опроса не трогаем
            connector = self.connector_factory(sensor)
            try:
                found = connector.discover_devices()
            except (TransportError, DecodeError) as e:
                _log.error(f"discovery from sensor {sensor.id} ({sensor.hostname}) failed: {e}")
                continue
            for s in found:
                try:
                    self.store.upsert_sensor_discovery(s)
                    stored += 1
                except (NotFoundError, ValidationError) as e:
                    _log.error(f"storing discovered sensor {s.hostname}: {e}")
            _log.info(f"sensor {sensor.id}: discovered {len(found)} devices ({sensor.discovery.name})")
        return stored

    # ───────────────────────── опрос ─────────────────────────
    def _connector(self, sensor: Sensor) -> XovisConnector:
        fp = _conn_fingerprint(sensor)
        with self._conn_lock:
            cached = self._connectors.get(sensor.id)
            if cached is not None and cached[0] == fp:
                return cached[1]
            connector = self.connector_factory(sensor)
            self._connectors[sensor.id] = (fp, connector)
            return connector

    def _drop_connector(self, sensor_id: int) -> None:
        with self._conn_lock:
            self._connectors.pop(sensor_id, None)

    def collect_sensor(self, sensor_id: int) -> bool:
        """Один цикл опроса. Вернёт False, если задача больше не нужна (датчик удалён или конфигурация выключена)."""
        try:
            sensor = self.store.get_sensor(sensor_id)
        except NotFoundError:
            _log.info(f"sensor {sensor_id} removed, collect task ends")
            self._drop_connector(sensor_id)
            return False
        if not sensor.config.enable:
            return False

        connector = self._connector(sensor)
        try:
            device = connector.get_device()
            logics = connector.get_counters_raw()
        except (TransportError, DecodeError) as e:
            _log.error(f"polling sensor {sensor_id} ({sensor.hostname}:{sensor.port}) failed: {e}")
            return True

        device.lines, device.zones = decode_counters(logics, device.mac, sensor.config)
        self.current.apply_poll(sensor.id, device.lines, device.zones)

        if device.mac and device.mac != sensor.mac_address:
            self.store.upsert_sensor_discovery(dataclasses.replace(sensor, mac_address=device.mac))

        try:
            n = self.sink.create_assets_and_upsert_data(sensor.config, device)
            _log.debug(f"sensor {sensor_id}: {len(device.lines)} lines, {len(device.zones)} zones, {n} upserts")
        except (TransportError, DecodeError) as e:
            _log.error(f"forwarding data of sensor {sensor_id} failed: {e}")
        return True

    # ───────────────────────── жизненный цикл ─────────────────────────
    def start(self) -> None:
        # active это состояние рантайма, после рестарта его надо набрать заново
        self.store.set_all_configs_inactive()
        self.scheduler.ensure("scan", self._scan_tick, self.scan_interval_s)
        _log.info("collector started")

    def _scan_tick(self) -> bool:
        self.scan()
        return True

    def stop(self) -> None:
        self.scheduler.stop_all()
        self._running_configs = set()
        with self._conn_lock:
            self._connectors = {}
        _log.info("collector stopped")


# ─────────────────────────────────────────────────────────────────────────────
# Рантайм-синглтон (старт/стоп из main)
# ─────────────────────────────────────────────────────────────────────────────
_LOCK = threading.Lock()
_COLLECTOR: Optional[Collector] = None


def ensure_started(factory: Callable[[], Collector]) -> Collector:
    """Гарантированно запускает коллектор один раз и возвращает инстанс."""
    global _COLLECTOR
    with _LOCK:
        if _COLLECTOR is None:
            c = factory()
            c.start()
            _COLLECTOR = c
    return _COLLECTOR


def instance() -> Optional[Collector]:
    return _COLLECTOR


def stop_if_running() -> None:
    global _COLLECTOR
    with _LOCK:
        if _COLLECTOR is not None:
            try:
                _COLLECTOR.stop()
            finally:
                _COLLECTOR = None
