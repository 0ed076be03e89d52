# xovis/api/routes/service.py
from fastapi import APIRouter, HTTPException, Request

from xovis.core.errors import NotFoundError
from xovis.services import collector as collector_runtime
from xovis.services.conf_store import conf_store

router = APIRouter(prefix="/api")


def _collector():
    c = collector_runtime.instance()
    if c is None:
        raise HTTPException(503, "collector is not running")
    return c


@router.get("/status")
def status():
    c = collector_runtime.instance()
    return {
        "running": c is not None,
        "tasks": c.scheduler.status() if c is not None else [],
    }


@router.post("/configurations/{config_id}/discovery")
def run_discovery(config_id: int, request: Request):
    """Discovery по требованию (например, после создания/изменения конфигурации)."""
    store = getattr(request.app.state, "store", conf_store)
    try:
        config = store.get_config(config_id)
    except NotFoundError:
        raise HTTPException(404, f"configuration {config_id} not found")
    if not config.enable:
        raise HTTPException(409, f"configuration {config_id} is disabled")

    discovered = _collector().discover_config(config)
    return {"ok": True, "configuration": config_id, "discovered": discovered}
