# xovis/db/models.py
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, JSON, UniqueConstraint

Base = declarative_base()


class ConfigurationRow(Base):
    __tablename__ = "configuration"
    id = Column(Integer, primary_key=True)
    enable = Column(Boolean, default=False, nullable=False)
    active = Column(Boolean, default=False, nullable=False)      # управляет коллектор
    refresh_interval = Column(Integer, default=60, nullable=False)
    request_timeout = Column(Integer, default=120, nullable=False)
    check_certificate = Column(Boolean, default=False, nullable=False)
    project_ids = Column(JSON, default=list)
    user_id = Column(String(128), default="")

    sensors = relationship("SensorRow", back_populates="config", cascade="all, delete-orphan")
    assets = relationship("AssetRow", back_populates="config", cascade="all, delete-orphan")


class SensorRow(Base):
    __tablename__ = "sensor"
    id = Column(Integer, primary_key=True)
    configuration_id = Column(Integer, ForeignKey("configuration.id"), index=True, nullable=False)
    username = Column(String(128), default="")
    password = Column(String(256), default="")
    hostname = Column(String(255), nullable=False)
    port = Column(Integer, default=443, nullable=False)
    discovery_mode = Column(String(16), default="disabled", nullable=False)  # disabled | L2 | L3
    l3_first_ip = Column(String(64), nullable=True)
    l3_count = Column(Integer, nullable=True)
    mac_address = Column(String(64), nullable=True, index=True)

    config = relationship("ConfigurationRow", back_populates="sensors")


class AssetRow(Base):
    __tablename__ = "asset"
    __table_args__ = (
        UniqueConstraint("configuration_id", "project_id", "global_asset_id", name="uq_asset_gai"),
    )
    id = Column(Integer, primary_key=True)
    configuration_id = Column(Integer, ForeignKey("configuration.id"), index=True, nullable=False)
    project_id = Column(String(64), nullable=False)
    global_asset_id = Column(String(255), index=True, nullable=False)
    provider_id = Column(String(255), default="")
    asset_id = Column(Integer, nullable=True)

    config = relationship("ConfigurationRow", back_populates="assets")
