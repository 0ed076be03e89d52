# xovis/api/routes/current.py
from fastapi import APIRouter
from xovis.services.current_store import current_store
import io
from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from datetime import datetime, timezone

router = APIRouter()


@router.get("/api/current")
def current():
    return current_store.list()


def _loc(ts: str) -> str:
    if not ts:
        return ""
    try:
        dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone().isoformat(timespec="seconds")
    except ValueError:
        return str(ts)


@router.get("/api/current/export")
def export_current_xlsx():
    data = current_store.list()

    headers = [
        "Устройство (MAC)", "Тип", "Логика", "Название",
        "Вперёд", "Назад", "Присутствие",
        "Источник", "Время", "Сек. назад",
    ]

    wb = Workbook()
    ws = wb.active
    ws.title = "current"
    ws.append(headers)

    for x in data:
        ws.append([
            x.get("device_mac", ""),
            "линия" if x.get("kind") == "line" else "зона",
            x.get("logic_id"),
            x.get("name", "") or "",

            x.get("forward"),
            x.get("backward"),
            x.get("presence"),

            x.get("source", ""),
            _loc(x.get("last_ts", "") or ""),
            x.get("since_last_s"),
        ])

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": 'attachment; filename="current.xlsx"'},
    )
