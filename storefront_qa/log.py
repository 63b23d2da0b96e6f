"""Logging setup for suite runs.

Console output plus three files under the log directory:
- error.log: ERROR and above
- combined.log: everything at the configured level
- app-YYYY-MM-DD.log: the same, one file per day

Structured metadata is passed as `extra={"meta": {...}}` and rendered as a
JSON suffix so both humans and log scrapers can read it.
"""
from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s%(meta_suffix)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Marker attribute so repeated configure calls replace our handlers only.
_HANDLER_TAG = "_storefront_qa_handler"


class MetaFormatter(logging.Formatter):
    """Formatter that appends the record's `meta` mapping as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        meta = getattr(record, "meta", None)
        record.meta_suffix = f" {json.dumps(meta, default=str, sort_keys=True)}" if meta else ""
        return super().format(record)


def _tagged(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(MetaFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    setattr(handler, _HANDLER_TAG, True)
    return handler


def configure_logging(log_dir: Path | str = "logs", level: str = "INFO") -> List[logging.Handler]:
    """Install console and file handlers on the root logger.

    Safe to call more than once: handlers installed by an earlier call are
    closed and replaced.

    Returns:
        The handlers that were installed.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root_logger.removeHandler(handler)
            handler.close()

    handlers = [
        _tagged(logging.StreamHandler(), numeric_level),
        _tagged(logging.FileHandler(log_path / "error.log", mode="a", encoding="utf-8"), logging.ERROR),
        _tagged(logging.FileHandler(log_path / "combined.log", mode="a", encoding="utf-8"), numeric_level),
        _tagged(
            logging.FileHandler(log_path / f"app-{date.today().isoformat()}.log", mode="a", encoding="utf-8"),
            numeric_level,
        ),
    ]
    root_logger.setLevel(numeric_level)
    for handler in handlers:
        root_logger.addHandler(handler)

    logging.getLogger(__name__).info("Logging initialized to %s at level %s", log_path, level.upper())
    return handlers


def meta(**fields: Any) -> Dict[str, Any]:
    """Shorthand for the `extra` mapping carrying structured metadata."""
    return {"meta": fields}
