"""File-only logging for the hub process.

Everything goes to a timestamped file under ``logs/``. Nothing is written
to stdout, which the stdio transport owns.
"""

import logging
import logging.config
import os
import sys
from datetime import datetime
from typing import Any, Dict, Tuple

from mcp_hub.constants import LOG_DIR

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Loggers that follow the requested level; everything else stays at WARNING.
_HUB_LOGGERS = (
    "mcp_hub",
    "mcp",
    "uvicorn",
    "uvicorn.error",
    "starlette",
)

_LINE_FORMAT = "%(asctime)s - %(name)25s:%(lineno)-4d - %(levelname)-7s - %(message)s"


def build_log_config(log_lvl: str, log_fpath: str) -> Dict[str, Any]:
    """``dictConfig`` payload routing every hub logger to *log_fpath*."""
    debug = log_lvl == "DEBUG"

    def to_file(level: str) -> Dict[str, Any]:
        return {"handlers": ["hub_file"], "propagate": False, "level": level}

    loggers = {name: to_file(log_lvl) for name in _HUB_LOGGERS}
    loggers["uvicorn.access"] = to_file("INFO" if debug else "WARNING")

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"hub_line": {"format": _LINE_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"}},
        "handlers": {
            "hub_file": {
                "class": "logging.FileHandler",
                "formatter": "hub_line",
                "filename": log_fpath,
                "encoding": "utf-8",
                "level": "DEBUG",
            },
        },
        "loggers": loggers,
        "root": {"handlers": ["hub_file"], "level": log_lvl if debug else "WARNING"},
    }


def _notice(message: str, quiet: bool) -> None:
    if not quiet:
        print(message, file=sys.stderr)


def setup_logging(log_lvl_str: str, *, quiet: bool = False) -> Tuple[str, str]:
    """Route logging to a new file under ``logs/``.

    Args:
        log_lvl_str: Requested level name, case-insensitive. Unknown names
            fall back to ``INFO``.
        quiet: Print no notices at all (stdio transport).

    Returns:
        ``(log_file_path, level)``.
    """
    level = log_lvl_str.upper()
    if level not in _LEVELS:
        _notice(f"Warning: unknown log level '{log_lvl_str}', using INFO.", quiet)
        level = "INFO"

    os.makedirs(LOG_DIR, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_fpath = os.path.join(LOG_DIR, f"hub_{stamp}_{level}.log")

    try:
        logging.config.dictConfig(build_log_config(level, log_fpath))
    except (ValueError, TypeError, AttributeError, ImportError, OSError) as exc:
        _notice(f"Could not apply logging configuration: {exc}", quiet)
    else:
        _notice(f"Logging to {log_fpath} at {level}.", quiet)
    return log_fpath, level
