# tests/test_conf_store.py
import pytest

from xovis.core.errors import NotFoundError
from xovis.core.types import Configuration, Disabled, LocalScan, RangeScan, Sensor
from xovis.db.models import SensorRow


def test_config_crud_and_active_state(store, config):
    assert store.get_config(config.id).project_ids == ["99"]
    store.set_config_active_state(config, True)
    assert store.get_config(config.id).active is True
    store.set_all_configs_inactive()
    assert store.get_config(config.id).active is False
    with pytest.raises(NotFoundError):
        store.get_config(12345)


def test_sensor_round_trip_keeps_range_mode(store, config):
    s = store.insert_sensor(Sensor(
        config=config, username="u", password="p", hostname="10.1.0.1",
        discovery=RangeScan(first_ip="10.1.0.1", count=50),
    ))
    again = store.get_sensor(s.id)
    assert again.discovery == RangeScan(first_ip="10.1.0.1", count=50)
    assert [x.id for x in store.get_sensors_of_config(config.id)] == [s.id]


def test_missing_sensor_and_config(store):
    with pytest.raises(NotFoundError):
        store.get_sensor(1)
    with pytest.raises(NotFoundError):
        store.get_sensors_of_config(1)


def test_seed_update_keeps_mode_and_credentials(store, config, seed):
    found = Sensor(config=config, username="other", password="other", hostname="10.0.0.50",
                   port=8443, discovery=Disabled(), mac_address="AA:01", id=seed.id)
    stored = store.upsert_sensor_discovery(found)
    assert stored.id == seed.id
    assert (stored.hostname, stored.port, stored.mac_address) == ("10.0.0.50", 8443, "AA:01")
    assert isinstance(stored.discovery, LocalScan)
    assert (stored.username, stored.password) == ("admin", "pass")
    assert len(store.get_sensors_of_config(config.id)) == 1


def test_match_by_mac_then_insert(store, config, seed):
    first = store.upsert_sensor_discovery(Sensor(
        config=config, username="admin", password="pass", hostname="10.0.0.6", mac_address="AA:02",
    ))
    assert first.id != seed.id

    # тот же MAC, другой адрес → обновление, а не дубль
    moved = store.upsert_sensor_discovery(Sensor(
        config=config, username="admin", password="pass", hostname="10.0.0.7", mac_address="AA:02",
    ))
    assert moved.id == first.id
    assert moved.hostname == "10.0.0.7"
    assert len(store.get_sensors_of_config(config.id)) == 2


def test_asset_mapping(store, config):
    assert store.get_asset_id(config, "99", "xovis_root") is None
    store.insert_asset(config, "99", "xovis_root", 501)
    assert store.get_asset_id(config, "99", "xovis_root") == 501

    asset = store.get_asset_by_gai("xovis_root", config.id)
    assert asset.asset_id == 501
    assert asset.config.id == config.id
    with pytest.raises(NotFoundError):
        store.get_asset_by_gai("xovis_root", config.id + 1)
    with pytest.raises(NotFoundError):
        store.get_asset_by_gai("xovis_zone_X_1")


def test_invalid_discovery_row_is_kept_without_discovery(store, config, seed):
    with store._session() as s:
        bad = SensorRow(configuration_id=config.id, hostname="10.0.0.8", port=443,
                        discovery_mode="L3", l3_first_ip="10.0.0.1", l3_count=None)
        s.add(bad)
        s.commit()
        bad_id = bad.id

    sensors = {s.id: s for s in store.get_sensors_of_config(config.id)}
    assert set(sensors) == {seed.id, bad_id}
    assert isinstance(sensors[seed.id].discovery, LocalScan)
    assert isinstance(sensors[bad_id].discovery, Disabled)
    assert store.get_sensor(bad_id).hostname == "10.0.0.8"
