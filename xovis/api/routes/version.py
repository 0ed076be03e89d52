# xovis/api/routes/version.py
from fastapi import APIRouter

from xovis.core.config import settings

router = APIRouter()


@router.get("/version")
def version():
    return {
        "timestamp": settings.build_timestamp,
        "commit": settings.git_commit,
    }
