# xovis/core/validate_cfg.py
from __future__ import annotations
from typing import Dict, Any, Optional

ALLOWED_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _as_int(v, name, min_: Optional[int] = None, max_: Optional[int] = None) -> int:
    try:
        iv = int(v)
    except Exception:
        raise ValueError(f"{name}: expected integer, got {v!r}")
    if min_ is not None and iv < min_:
        raise ValueError(f"{name}: must be >= {min_} (got {iv})")
    if max_ is not None and iv > max_:
        raise ValueError(f"{name}: must be <= {max_} (got {iv})")
    return iv


def _as_float(v, name, min_: Optional[float] = None) -> float:
    try:
        fv = float(v)
    except Exception:
        raise ValueError(f"{name}: expected number, got {v!r}")
    if min_ is not None and fv < min_:
        raise ValueError(f"{name}: must be >= {min_} (got {fv})")
    return fv


def _as_bool(v, name) -> bool:
    if isinstance(v, bool):
        return v
    # допускаем 'true'/'false'/1/0 из yaml
    if isinstance(v, (int, float)) and v in (0, 1):
        return bool(v)
    if isinstance(v, str) and v.lower() in ("true", "false"):
        return v.lower() == "true"
    raise ValueError(f"{name}: must be true/false")


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    sec = cfg.get(name, {})
    if sec is None:
        return {}
    if not isinstance(sec, dict):
        raise ValueError(f"{name}: must be a mapping")
    return sec


def validate_cfg(cfg: Dict[str, Any]) -> None:
    """Бросает ValueError с понятным текстом, если конфиг некорректен."""
    if not isinstance(cfg, dict):
        raise ValueError("YAML root must be a mapping")

    # ─── db ───
    db = _section(cfg, "db")
    if "url" in db and not str(db.get("url") or "").strip():
        raise ValueError("db.url: must not be empty (e.g. sqlite:///./data/xovis.db)")

    # ─── platform ───
    pl = _section(cfg, "platform")
    if "endpoint" in pl:
        ep = str(pl.get("endpoint") or "").strip()
        if not ep.startswith(("http://", "https://")):
            raise ValueError("platform.endpoint: must start with http:// or https://")
    if "token" in pl and not isinstance(pl["token"], str):
        raise ValueError("platform.token: must be a string")
    if "timeout_s" in pl:
        _as_float(pl["timeout_s"], "platform.timeout_s", 0.1)
    if "verify_tls" in pl:
        _as_bool(pl["verify_tls"], "platform.verify_tls")

    # ─── collector ───
    col = _section(cfg, "collector")
    if "scan_interval_s" in col:
        _as_float(col["scan_interval_s"], "collector.scan_interval_s", 0.1)
    if "discovery_interval_factor" in col:
        _as_int(col["discovery_interval_factor"], "collector.discovery_interval_factor", 1)

    # ─── webhook ───
    wh = _section(cfg, "webhook")
    if "enabled" in wh:
        _as_bool(wh["enabled"], "webhook.enabled")

    # ─── logging ───
    lg = _section(cfg, "logging")
    if "level" in lg and str(lg["level"]).upper() not in ALLOWED_LOG_LEVELS:
        raise ValueError(f"logging.level: one of {sorted(ALLOWED_LOG_LEVELS)}")
    loggers = lg.get("loggers", {}) or {}
    if not isinstance(loggers, dict):
        raise ValueError("logging.loggers: must be a mapping name -> level")
    for name, level in loggers.items():
        if str(level).upper() not in ALLOWED_LOG_LEVELS:
            raise ValueError(f"logging.loggers.{name}: unknown level {level!r}")
