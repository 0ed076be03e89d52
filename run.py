# run.py
import uvicorn
import logging

from xovis.core.config import settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# уровни логгеров из YAML (logging.level / logging.loggers)
settings.load_yaml_config()
log_cfg = settings.logging
logging.getLogger().setLevel(str(log_cfg.get("level", "INFO")).upper())
for name, level in (log_cfg.get("loggers") or {}).items():
    logging.getLogger(name).setLevel(str(level).upper())

uvicorn.run("xovis.main:app", host="0.0.0.0", port=settings.api_server_port, reload=False)
