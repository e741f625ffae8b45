from __future__ import annotations

import logging
import os
from typing import Optional, Union

from pythonjsonlogger import jsonlogger

LOG_FORMATS = ("json", "plain")

_PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_JSON_FIELDS = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        level = os.getenv("TEAL_DASH_LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(
        level: Union[int, str, None] = None,
        force_format: Optional[str] = None,
        app_name: str = "teal_dash",
) -> None:
    """
    Route all app logs through a single root handler.

    The format is taken from `force_format`, then TEAL_DASH_LOG_FORMAT, then
    defaults to "json". The level is taken from `level`, then
    TEAL_DASH_LOG_LEVEL, then INFO. In JSON mode every record carries an
    "app" key and any extra={...} fields (session_id, ns, module, ...).
    """
    format_mode = (force_format or os.getenv("TEAL_DASH_LOG_FORMAT", "json")).lower()
    if format_mode not in LOG_FORMATS:
        raise ValueError(f"Unknown log format {format_mode!r}, expected one of {LOG_FORMATS}")

    resolved_level = _resolve_level(level)
    root = logging.getLogger()
    root.setLevel(resolved_level)

    if format_mode == "plain":
        formatter: logging.Formatter = logging.Formatter(_PLAIN_FORMAT)
    else:
        formatter = jsonlogger.JsonFormatter(_JSON_FIELDS, static_fields={"app": app_name})

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root.handlers.clear()
    root.addHandler(handler)

    # werkzeug logs every callback POST at INFO
    logging.getLogger("werkzeug").setLevel(max(resolved_level, logging.WARNING))
