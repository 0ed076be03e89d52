# xovis/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Response

from xovis.core.config import settings

# Роутеры API
from xovis.api.routes.current import router as current_router
from xovis.api.routes.service import router as service_router
from xovis.api.routes.version import router as version_router
from xovis.api.routes.webhook import router as webhook_router

# Сервисы
from xovis.services.collector import Collector, ensure_started, stop_if_running
from xovis.services.conf_store import conf_store
from xovis.services.platform import AssetSink, PlatformClient

# БД
from xovis.db.session import init_db


# ─────────────────────────────────────────────────────────────────────────────
# Приложение
# ─────────────────────────────────────────────────────────────────────────────
app = FastAPI(title="Xovis")

app.include_router(webhook_router, tags=["webhook"])
app.include_router(current_router, tags=["current"])
app.include_router(service_router, tags=["service"])
app.include_router(version_router, tags=["version"])


# ─────────────────────────────────────────────────────────────────────────────
# Старт сервисов на поднятии приложения
# ─────────────────────────────────────────────────────────────────────────────
@app.on_event("startup")
def _startup():
    # 1) грузим YAML
    settings.load_yaml_config()

    # 2) создаём таблицы БД
    init_db(settings.db_url)

    # 3) клиент платформы и приёмник данных (нужен и webhook, и коллектору)
    sink = AssetSink(PlatformClient.from_settings(settings.platform), conf_store)
    app.state.store = conf_store
    app.state.sink = sink

    # 4) коллектор: сверка конфигураций, discovery и опрос датчиков
    col = settings.collector
    ensure_started(lambda: Collector(
        conf_store,
        sink,
        scan_interval_s=float(col["scan_interval_s"]),
        discovery_interval_factor=int(col["discovery_interval_factor"]),
    ))
    logging.getLogger("web").info(f"xovis api ready on port {settings.api_server_port}")


@app.on_event("shutdown")
def _shutdown():
    stop_if_running()


@app.get("/.well-known/appspecific/com.chrome.devtools.json")
def _chrome_devtools_probe():
    # Глушим «пинг» от Chrome DevTools, чтобы не мусорил в логах
    return Response(status_code=204)
