# xovis/services/platform.py
"""
Связь с платформой здания: создание ассетов и запись данных.

  PlatformClient: тонкий HTTP-клиент (PUT /assets, PUT /data);
  AssetSink     : иерархия root → group → people counter → lines/zones
                   и запись значений, с кешем GAI → asset_id в таблице asset.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import certifi
import requests

from xovis.core.errors import DecodeError, TransportError
from xovis.core.types import (
    ASSET_TYPE_GROUP, ASSET_TYPE_LINE, ASSET_TYPE_PEOPLE_COUNTER, ASSET_TYPE_ROOT, ASSET_TYPE_ZONE,
    NOT_REPORTED, Asset, Configuration, PeopleCounter, group_gai,
)

log = logging.getLogger("platform")

CLIENT_REFERENCE = "xovis"

SUBTYPE_INPUT = "input"
SUBTYPE_INFO = "info"


class PlatformClient:
    def __init__(self, endpoint: str, token: str, timeout: float = 10.0, verify_tls: bool = True):
        self.endpoint = endpoint.rstrip("/")
        self.token = token
        self.timeout = float(timeout)
        # certifi надёжнее системного хранилища на «голых» образах
        self.verify = certifi.where() if verify_tls else False

    @classmethod
    def from_settings(cls, sec: Dict[str, Any]) -> "PlatformClient":
        return cls(
            endpoint=str(sec.get("endpoint", "")),
            token=str(sec.get("token", "")),
            timeout=float(sec.get("timeout_s", 10)),
            verify_tls=bool(sec.get("verify_tls", True)),
        )

    def _put(self, path: str, payload: Dict[str, Any]) -> requests.Response:
        url = self.endpoint + path
        try:
            r = requests.put(
                url,
                json=payload,
                headers={"X-API-Key": self.token, "Accept": "application/json"},
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"platform request to {url}: {e}") from e
        if r.status_code not in (200, 201, 202, 204):
            raise TransportError(
                f"platform {url} not ok: status code: {r.status_code}",
                body=r.content,
                status_code=r.status_code,
            )
        return r

    def upsert_asset(self, *, project_id: str, gai: str, asset_type: str, name: str,
                     parent_id: Optional[int] = None, description: str = "") -> int:
        payload: Dict[str, Any] = {
            "projectId": project_id,
            "globalAssetIdentifier": gai,
            "assetType": asset_type,
            "name": name,
            "description": description,
        }
        if parent_id is not None:
            payload["parentFunctionalAssetId"] = parent_id
            payload["parentLocationalAssetId"] = parent_id
        r = self._put("/assets", payload)
        try:
            return int(r.json()["id"])
        except (ValueError, KeyError, TypeError) as e:
            raise DecodeError(f"parsing created asset {gai}: {e}") from e

    def upsert_data(self, asset_id: int, data: Dict[str, Any], subtype: str = SUBTYPE_INPUT) -> None:
        self._put("/data", {
            "assetId": int(asset_id),
            "subtype": subtype,
            "data": data,
            "clientReference": CLIENT_REFERENCE,
        })


class AssetSink:
    """Куда уходят декодированные значения: ассеты платформы."""

    def __init__(self, client: PlatformClient, store) -> None:
        self.client = client
        self.store = store

    def _ensure_asset(self, config: Configuration, project_id: str, gai: str, asset_type: str,
                      name: str, parent_id: Optional[int], provider_id: str = "") -> int:
        asset_id = self.store.get_asset_id(config, project_id, gai)
        if asset_id is not None:
            return asset_id
        asset_id = self.client.upsert_asset(
            project_id=project_id, gai=gai, asset_type=asset_type, name=name, parent_id=parent_id,
        )
        self.store.insert_asset(config, project_id, gai, asset_id, provider_id)
        log.info(f"created asset {gai} -> {asset_id} (project {project_id})")
        return asset_id

    def create_assets_and_upsert_data(self, config: Configuration, counter: PeopleCounter) -> int:
        """Создать недостающие ассеты устройства во всех проектах конфигурации и записать данные."""
        written = 0
        for project_id in config.project_ids:
            root_id = self._ensure_asset(config, project_id, ASSET_TYPE_ROOT, ASSET_TYPE_ROOT,
                                         "Xovis", None)
            group_name = counter.group or "default"
            group_id = self._ensure_asset(config, project_id, group_gai(group_name), ASSET_TYPE_GROUP,
                                          group_name, root_id)
            device_id = self._ensure_asset(config, project_id, counter.gai, ASSET_TYPE_PEOPLE_COUNTER,
                                           counter.name or counter.mac, group_id, counter.mac)
            self.client.upsert_data(device_id, {
                "name": counter.name,
                "group": counter.group,
                "mac": counter.mac,
                "model": counter.model,
            }, subtype=SUBTYPE_INFO)
            written += 1

            for line in counter.lines:
                line_id = self._ensure_asset(config, project_id, line.gai, ASSET_TYPE_LINE,
                                             line.name or f"line {line.id}", device_id, str(line.id))
                # -1 = «датчик не прислал», такое значение не пишем
                data = {k: v for k, v in (("forward", line.forward), ("backward", line.backward))
                        if v != NOT_REPORTED}
                if data:
                    self.client.upsert_data(line_id, data)
                    written += 1

            for zone in counter.zones:
                zone_id = self._ensure_asset(config, project_id, zone.gai, ASSET_TYPE_ZONE,
                                             zone.name or f"zone {zone.id}", device_id, str(zone.id))
                self.client.upsert_data(zone_id, {"presence": zone.presence})
                written += 1
        return written

    def upsert_asset_data(self, asset: Asset, data: Dict[str, Any]) -> None:
        self.client.upsert_data(asset.asset_id, data)
