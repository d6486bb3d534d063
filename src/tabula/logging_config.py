"""Structured logging setup (JSONL format) on top of loguru."""

from __future__ import annotations

import json
import sys
import traceback
from pathlib import Path

import platformdirs
from loguru import logger

APP_NAME = "tabula"


def json_sink(message):
    """JSONL sink - writes one machine-readable record per line to stderr."""
    record = message.record
    log_entry = {
        "timestamp": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
        "level": record["level"].name.lower(),
        "component": record["function"],
        "operation": record["extra"].get("operation", "unknown"),
        "operation_status": record["extra"].get("status", None),
        "trace_id": record["extra"].get("trace_id"),
        "message": record["message"],
        "context": {k: v for k, v in record["extra"].items()
                   if k not in ("operation", "status", "trace_id", "metrics")},
        "metrics": record["extra"].get("metrics", {}),
        "error": None
    }

    if record["exception"]:
        exc_type, exc_value, exc_tb = record["exception"]
        tb_lines = []
        if exc_tb:
            tb_lines = traceback.format_tb(exc_tb)

        log_entry["error"] = {
            "type": exc_type.__name__ if exc_type else "Unknown",
            "message": str(exc_value) if exc_value else "Unknown error",
            "traceback_lines": tb_lines
        }

    sys.stderr.write(json.dumps(log_entry, default=str) + "\n")


def setup_logger(level: str = "INFO", log_to_file: bool = True):
    """Configure loguru for JSONL output on stderr and an optional rotating file.

    Args:
        level: Minimum level for the stderr sink.
        log_to_file: Also write DEBUG-level records to the user log directory.

    Returns:
        The configured loguru logger.
    """
    logger.remove()

    logger.add(
        json_sink,
        level=level.upper()
    )

    if log_to_file:
        # Linux: ~/.local/state/tabula/log/
        # macOS: ~/Library/Logs/tabula/
        log_dir = Path(platformdirs.user_log_dir(
            appname=APP_NAME,
            ensure_exists=True
        ))

        logger.add(
            str(log_dir / "tabula.jsonl"),
            format="{message}",
            serialize=True,
            rotation="10 MB",
            retention="7 days",
            compression="gz",
            level="DEBUG"
        )

    return logger
