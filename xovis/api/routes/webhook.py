# xovis/api/routes/webhook.py
"""
Приём push-данных от датчиков.

Датчик настраивается на URL вида /webhook/{configID}/datapush;
первый сегмент (id конфигурации) срезаем и по остатку пути
выбираем обработчик:
  400: нет числового id в начале пути;
  404: неизвестный путь после id;
  500: тело не читается или это не JSON-объект;
  200: пакет разобран (даже если часть событий пропущена).
"""
from __future__ import annotations

import json
import logging
import re
from typing import Awaitable, Callable, Dict

from fastapi import APIRouter, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from xovis.core.config import settings
from xovis.core.errors import DecodeError
from xovis.services.conf_store import conf_store
from xovis.services.current_store import current_store
from xovis.services.datapush import process_datapush

router = APIRouter()
_log = logging.getLogger("datapush")

_CONFIG_ID_RE = re.compile(r"^/?(\d+)(/.*)?$")

Handler = Callable[[Request, int], Awaitable[PlainTextResponse]]


def parse_config_id(path: str) -> int:
    m = _CONFIG_ID_RE.match(path)
    if not m:
        raise ValueError(f"missing or invalid config ID in path: {path}")
    return int(m.group(1))


def strip_config_id(path: str) -> str:
    m = _CONFIG_ID_RE.match(path)
    if not m:
        return path
    return m.group(2) or "/"


async def _handle_datapush(request: Request, config_id: int) -> PlainTextResponse:
    try:
        body = await request.body()
    except Exception as e:
        _log.error(f"reading datapush body: {e}")
        raise HTTPException(500, "Failed to read request body")

    _log.debug(f"raw datapush: {body[:2000]!r}")
    try:
        data = json.loads(body)
        store = getattr(request.app.state, "store", conf_store)
        sink = request.app.state.sink
        # поиск ассетов и запись на платформу блокирующие, уводим их с event loop
        await run_in_threadpool(process_datapush, data, config_id, store, sink, current_store)
    except (ValueError, DecodeError) as e:
        _log.error(f"parsing datapush body: {e}")
        raise HTTPException(500, "Failed to parse request body")
    return PlainTextResponse("ok")


_HANDLERS: Dict[str, Handler] = {
    "/datapush": _handle_datapush,
}


@router.api_route("/webhook/{rest:path}", methods=["POST", "PUT"])
async def webhook(rest: str, request: Request):
    if not settings.webhook.get("enabled", True):
        raise HTTPException(404, "webhook is disabled")

    path = "/" + rest
    _log.debug(f"received request for URL: {path}, method: {request.method}")
    try:
        config_id = parse_config_id(path)
    except ValueError:
        _log.warning(f"invalid URL path, missing or invalid config ID: {path}")
        raise HTTPException(400, "Invalid URL path, missing or invalid config ID")

    handler = _HANDLERS.get(strip_config_id(path).rstrip("/") or "/")
    if handler is None:
        _log.error(f"error response: status=404, URL={path}, method={request.method}")
        raise HTTPException(404, "Not found")
    return await handler(request, config_id)
