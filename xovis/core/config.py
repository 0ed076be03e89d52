# xovis/core/config.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings

from xovis.core.validate_cfg import validate_cfg


class Settings(BaseSettings):
    # путь к основному YAML (можно переопределить переменной окружения CONFIG_FILE)
    config_file: str = Field(default="config.yaml", validation_alias="CONFIG_FILE")

    # API платформы (переменные окружения важнее YAML)
    api_endpoint: Optional[str] = Field(default=None, validation_alias="API_ENDPOINT")
    api_token: Optional[str] = Field(default=None, validation_alias="API_TOKEN")

    # порт HTTP-сервера (API + webhook)
    api_server_port: int = Field(default=3030, validation_alias="API_SERVER_PORT")

    # подставляются при сборке образа
    build_timestamp: str = Field(default="", validation_alias="BUILD_TIMESTAMP")
    git_commit: str = Field(default="", validation_alias="GIT_COMMIT")

    # внутреннее хранилище загруженного YAML
    _cfg: Dict[str, Any] = PrivateAttr(default_factory=dict)
    _config_path: Path | None = PrivateAttr(default=None)

    # ───────── пути ─────────
    @property
    def config_path(self) -> Path:
        if self._config_path is None:
            p = Path(self.config_file)
            if not p.is_absolute():
                p = Path.cwd() / p
            self._config_path = p
        return self._config_path

    # ───────── YAML cfg ─────────
    @property
    def cfg(self) -> Dict[str, Any]:
        return self._cfg

    def get_cfg(self) -> Dict[str, Any]:
        return self._cfg

    def set_cfg(self, data: Dict[str, Any]) -> None:
        validate_cfg(data or {})
        self._cfg = data or {}

    def load_yaml_config(self) -> None:
        p = self.config_path
        if p.exists():
            with open(p, "r", encoding="utf-8") as f:
                self._cfg = yaml.safe_load(f) or {}
                validate_cfg(self._cfg)  # выбросит ValueError, если что-то не так
        else:
            self._cfg = {}

    # ───────── удобные секции ─────────
    @property
    def db_url(self) -> str:
        return (self._cfg.get("db") or {}).get("url", "sqlite:///./data/xovis.db")

    @property
    def platform(self) -> Dict[str, Any]:
        sec = dict(self._cfg.get("platform") or {})
        if self.api_endpoint:
            sec["endpoint"] = self.api_endpoint
        if self.api_token:
            sec["token"] = self.api_token
        sec.setdefault("endpoint", "http://localhost:3000/v2")
        sec.setdefault("token", "")
        sec.setdefault("timeout_s", 10)
        sec.setdefault("verify_tls", True)
        return sec

    @property
    def collector(self) -> Dict[str, Any]:
        sec = dict(self._cfg.get("collector") or {})
        sec.setdefault("scan_interval_s", 1.0)
        sec.setdefault("discovery_interval_factor", 100)
        return sec

    @property
    def webhook(self) -> Dict[str, Any]:
        sec = dict(self._cfg.get("webhook") or {})
        sec.setdefault("enabled", True)
        return sec

    @property
    def logging(self) -> Dict[str, Any]:
        return self._cfg.get("logging", {}) or {}


settings = Settings()
