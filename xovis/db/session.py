# xovis/db/session.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from xovis.db.models import Base  # важно, чтобы модели были импортированы


def _ensure_sqlite_dir(db_url: str) -> None:
    # sqlite:///./data/xovis.db  → ./data
    prefix = "sqlite:///"
    if db_url.startswith(prefix):
        fs_path = db_url[len(prefix):]
        # для :memory: ничего не делаем
        if fs_path == ":memory:":
            return
        d = Path(fs_path).resolve().parent
        d.mkdir(parents=True, exist_ok=True)


# фабрика сессий; engine привязывается в init_db() после загрузки YAML
SessionLocal = sessionmaker(autocommit=False, autoflush=False, future=True)
engine: Optional[Engine] = None


def init_db(db_url: str) -> Engine:
    """Создать engine по URL из конфига, привязать SessionLocal и создать таблицы."""
    global engine
    _ensure_sqlite_dir(db_url)
    engine = create_engine(db_url, future=True)
    SessionLocal.configure(bind=engine)
    Base.metadata.create_all(bind=engine)
    return engine


