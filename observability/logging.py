"""Log formatting for the node documentation index.

Log calls attach the node being processed, the page URL and the storage
backend through ``extra``:

    logger.warning(f"Skipping {node_type}: {e}", extra={"node_type": node_type, "url": link})

Both formatters surface those context fields; the JSON one as top-level
keys, the console one as a ``[node_type]`` prefix and trailing tags.
"""

from __future__ import annotations
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Context attached by crawler, cache, vector store and service log calls
CONTEXT_FIELDS = ("node_type", "url", "backend")

# Chatty dependency loggers capped at WARNING
QUIET_LOGGERS = ("asyncio", "aiohttp", "asyncpg")

_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Context fields set on ``record``, in CONTEXT_FIELDS order."""
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if getattr(record, name, None) is not None}


def record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    """Other ``extra`` values that are not context fields."""
    return {
        key: value for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and key not in CONTEXT_FIELDS
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log files and ``--json-logs``."""

    def __init__(self, service_name: str = "node-docs"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.lineno}",
        }
        entry.update(record_context(record))

        extras = record_extras(record)
        if extras:
            entry["extra"] = extras
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Console lines: ``time | LEVEL | logger | [node_type] message (url=..., backend=...)``."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')
        context = record_context(record)

        message = record.getMessage()
        node_type = context.pop("node_type", None)
        if node_type:
            message = f"[{node_type}] {message}"
        if context:
            message += " (" + ", ".join(f"{k}={v}" for k, v in context.items()) + ")"

        level = record.levelname
        if self.use_colors and level in self.COLORS:
            level = f"{self.COLORS[level]}{level:8}{self.RESET}"
        line = f"{timestamp} | {level:8} | {record.name} | {message}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    service_name: str = "node-docs",
    log_file: Optional[str] = None,
    use_json: bool = False,
    use_colors: bool = True
) -> None:
    """Configure the root logger for the CLI.

    Args:
        level: Log level name; unknown names mean INFO
        service_name: ``service`` value in JSON lines
        log_file: Also write JSON lines to this file
        use_json: JSON lines on the console too
        use_colors: Color console levels when stderr is a terminal
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(numeric_level)

    # stdout carries command output
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JSONFormatter(service_name) if use_json
                         else ColoredFormatter(use_colors and sys.stderr.isatty()))
    root_logger.addHandler(console)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(JSONFormatter(service_name))
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))
