"""Central logging configuration for surveyflow.

Installs a single stdout handler on the root logger so every module logger
emits through the same format. Streamlit re-runs scripts on each interaction,
so the configuration is applied once and skipped when handlers already exist.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig

from surveyflow.core.config import settings


def _dict_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
    }


def configure_logging(level: str | None = None) -> None:
    """Configure application-wide logging once.

    If the root logger already has handlers, return to prevent duplicate output.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    dictConfig(_dict_config(level or settings.log_level))
