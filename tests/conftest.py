# tests/conftest.py
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from xovis.core.types import Configuration, LocalScan, Sensor
from xovis.db.models import Base
from xovis.services.conf_store import ConfStore


class FakeResponse:
    """Ответ в стиле requests.Response: status_code, content, json()."""

    def __init__(self, status_code=200, content=b"", json_data=None):
        self.status_code = status_code
        self.content = content
        self._json = json_data

    def json(self):
        return self._json


@pytest.fixture
def store():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    sf = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
    yield ConfStore(sf)
    engine.dispose()


@pytest.fixture
def config(store):
    return store.insert_config(Configuration(
        enable=True, refresh_interval=60, request_timeout=5, project_ids=["99"],
    ))


@pytest.fixture
def seed(store, config):
    return store.insert_sensor(Sensor(
        config=config, username="admin", password="pass", hostname="10.0.0.5",
        port=443, discovery=LocalScan(),
    ))
