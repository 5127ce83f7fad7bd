# src/SKMS/app_logger.py
from __future__ import annotations

import logging
import logging.config
import os

JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(process)d %(module)s"
_DEFAULT_LEVEL = os.getenv("SKMS_LOG_LEVEL", os.getenv("LOG_LEVEL", "INFO")).upper()


def logging_config(level: str | None = None) -> dict:
    lvl = (level or _DEFAULT_LEVEL).upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "fmt": JSON_FORMAT,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "":               {"handlers": ["console"], "level": lvl},
            "SKMS":           {"handlers": ["console"], "level": lvl, "propagate": False},
            "uvicorn":        {"handlers": ["console"], "level": "INFO", "propagate": False},
            "uvicorn.error":  {"handlers": ["console"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["console"], "level": "INFO", "propagate": False},
            # engine echo is controlled by DB_ECHO, keep the logger itself quiet
            "sqlalchemy.engine": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        },
    }


def setup_logging(level: str | None = None) -> logging.Logger:
    logging.config.dictConfig(logging_config(level))
    return logging.getLogger("SKMS")


def get_logger(name: str | None = None) -> logging.Logger:
    base = logging.getLogger("SKMS")
    return base.getChild(name) if name else base
