# tests/test_collector.py
from unittest.mock import Mock

from xovis.core.errors import TransportError
from xovis.core.types import Configuration, Count, Disabled, Logic, Logics, PeopleCounter, Sensor
from xovis.db.models import ConfigurationRow, SensorRow
from xovis.services.collector import Collector, collect_key, discovery_key
from xovis.services.current_store import CurrentStore


class StubScheduler:
    def __init__(self):
        self.started = {}
        self.stopped = []

    def ensure(self, key, fn, interval_s):
        if key in self.started:
            # как у TaskScheduler: живой задаче обновляется только период
            self.started[key] = (self.started[key][0], interval_s)
            return False
        self.started[key] = (fn, interval_s)
        return True

    def stop(self, key):
        self.stopped.append(key)
        return self.started.pop(key, None) is not None

    def stop_all(self):
        self.started = {}


class StubConnector:
    """Датчик без сети: фиксированная идентичность и счётчики."""

    found = []
    fail = False

    def __init__(self, sensor):
        self.sensor = sensor

    def get_device(self):
        if self.fail:
            raise TransportError("sensor offline")
        return PeopleCounter(name="Door", group="Lobby", mac="AA:01", model="PC2SE", config=self.sensor.config)

    def get_counters_raw(self):
        return Logics(time="t", logics=[
            Logic(id=1, name="Entrance", info="XLT_LINE_IN_OUT_COUNT",
                  counts=[Count(id=0, name="fw", value=3), Count(id=1, name="bw", value=2)]),
        ])

    def discover_devices(self):
        return list(self.found)


def _update_config(store, config_id, **values):
    with store._session() as s:
        row = s.get(ConfigurationRow, config_id)
        for k, v in values.items():
            setattr(row, k, v)
        s.commit()


def _collector(store, sink=None, connector=StubConnector):
    return Collector(store, sink or Mock(), connector_factory=connector,
                     scheduler=StubScheduler(), discovery_interval_factor=100, current=CurrentStore())


def test_scan_activates_and_schedules(store, config, seed):
    c = _collector(store)
    c.scan()
    assert store.get_config(config.id).active is True
    started = c.scheduler.started
    assert started[discovery_key(config.id)][1] == 60 * 100
    assert started[collect_key(seed.id)][1] == 60

    # повторная сверка ничего не дублирует
    c.scan()
    assert len(started) == 2


def test_disabled_config_is_deactivated_and_stopped(store, config, seed):
    c = _collector(store)
    c.scan()

    disabled = store.insert_config(Configuration(enable=False, active=True))
    _update_config(store, config.id, enable=False)

    c.scan()
    assert store.get_config(config.id).active is False
    assert store.get_config(disabled.id).active is False
    assert collect_key(seed.id) in c.scheduler.stopped
    assert discovery_key(config.id) in c.scheduler.stopped

    # дальше выключенная конфигурация не трогает планировщик на каждой сверке
    stops = len(c.scheduler.stopped)
    c.scan()
    c.scan()
    assert len(c.scheduler.stopped) == stops


def test_empty_notice_flag_is_per_instance(store):
    a = _collector(store)
    a.scan()
    assert a._empty_notice_logged is True
    b = _collector(store)
    assert b._empty_notice_logged is False


def test_collect_sensor_forwards_and_learns_mac(store, config, seed):
    sink = Mock()
    c = _collector(store, sink)
    assert c.collect_sensor(seed.id) is True

    cfg_arg, device = sink.create_assets_and_upsert_data.call_args.args
    assert cfg_arg.id == config.id
    assert [(l.id, l.forward, l.backward) for l in device.lines] == [(1, 3, 2)]
    assert store.get_sensor(seed.id).mac_address == "AA:01"

    rows = c.current.list()
    assert rows[0]["device_mac"] == "AA:01" and rows[0]["forward"] == 3


def test_collect_sensor_failure_is_isolated(store, seed):
    class Offline(StubConnector):
        fail = True

    sink = Mock()
    c = _collector(store, sink, Offline)
    assert c.collect_sensor(seed.id) is True
    sink.create_assets_and_upsert_data.assert_not_called()


def test_collect_task_ends_for_removed_sensor(store):
    assert _collector(store).collect_sensor(999) is False


def test_connector_is_reused_per_sensor(store, seed):
    factory = Mock(side_effect=StubConnector)
    c = _collector(store, connector=factory)
    c.collect_sensor(seed.id)
    c.collect_sensor(seed.id)
    assert factory.call_count == 1


def test_discover_config_upserts(store, config, seed):
    class Finder(StubConnector):
        found = [
            Sensor(config=config, username="admin", password="pass", hostname="10.0.0.5",
                   discovery=Disabled(), mac_address="AA:01", id=seed.id),
            Sensor(config=config, username="admin", password="pass", hostname="10.0.0.9",
                   discovery=Disabled(), mac_address="AA:09"),
        ]

    c = _collector(store, connector=Finder)
    assert c.discover_config(config) == 2
    sensors = store.get_sensors_of_config(config.id)
    assert sorted(s.hostname for s in sensors) == ["10.0.0.5", "10.0.0.9"]
    # seed остаётся seed-ом, у найденного discovery выключен
    by_host = {s.hostname: s for s in sensors}
    assert by_host["10.0.0.5"].id == seed.id
    assert by_host["10.0.0.5"].discovery.name == "L2"
    assert isinstance(by_host["10.0.0.9"].discovery, Disabled)


def test_start_marks_all_inactive(store, config):
    store.set_config_active_state(config, True)
    c = _collector(store)
    c.start()
    assert store.get_config(config.id).active is False
    assert "scan" in c.scheduler.started
    c.stop()


def test_refresh_interval_change_reaches_running_tasks(store, config, seed):
    c = _collector(store)
    c.scan()
    _update_config(store, config.id, refresh_interval=5)

    c.scan()
    started = c.scheduler.started
    assert started[collect_key(seed.id)][1] == 5
    assert started[discovery_key(config.id)][1] == 5 * 100


def test_bad_discovery_row_does_not_block_config(store, config, seed, caplog):
    # строку пишет внешний CRUD: L3 без first_ip/count
    with store._session() as s:
        bad = SensorRow(configuration_id=config.id, hostname="10.0.0.8", port=443,
                        discovery_mode="L3", l3_first_ip=None, l3_count=None)
        s.add(bad)
        s.commit()
        bad_id = bad.id

    sink = Mock()
    c = _collector(store, sink)
    with caplog.at_level("WARNING", logger="conf"):
        c.scan()
        c.scan()

    started = c.scheduler.started
    assert collect_key(seed.id) in started
    assert collect_key(bad_id) in started
    assert discovery_key(config.id) in started
    assert isinstance(store.get_sensor(bad_id).discovery, Disabled)
    assert len([r for r in caplog.records if f"sensor {bad_id}" in r.getMessage()]) == 1

    assert c.collect_sensor(seed.id) is True
    sink.create_assets_and_upsert_data.assert_called_once()
