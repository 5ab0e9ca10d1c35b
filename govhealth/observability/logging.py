"""
Structured JSON logging with evaluation ID propagation.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from govhealth import config

from .context import current_evaluation, get_evaluation_id

# LogRecord attributes that are not user-supplied `extra` fields
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Output format:
    {
        "timestamp": "2026-02-01T10:30:00.000Z",
        "level": "DEBUG",
        "logger": "govhealth.intelligence.health",
        "message": "Health score 70 (Healthy) over 5 proposals",
        "evaluation_id": "eval-3f9a1c0b2d4e5f60",
        "inputs": {"proposals": 5, "agents": 4, "snapshots": 8},
        ...
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        evaluation = current_evaluation()
        if evaluation is not None:
            log_obj["evaluation_id"] = evaluation.evaluation_id
            log_obj["inputs"] = evaluation.inputs

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        # Extra fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_obj[key] = value

        return json.dumps(log_obj, default=str)


class HumanFormatter(logging.Formatter):
    """Human-readable formatter for local development."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        evaluation_id = get_evaluation_id()
        eid_str = f"[{evaluation_id[:13]}] " if evaluation_id else ""
        line = f"{timestamp} [{record.levelname}] {record.name}: {eid_str}{record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: str | None = None,
    json_format: bool | None = None,
) -> None:
    """
    Configure logging for a host process embedding the engine.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Defaults to GOVHEALTH_LOG_LEVEL.
        json_format: Use JSON format. If None, GOVHEALTH_LOG_JSON decides,
            falling back to auto-detection (JSON when stderr is not a TTY).
    """
    level = level or config.LOG_LEVEL
    if json_format is None:
        json_format = config.LOG_JSON
    if json_format is None:
        json_format = not sys.stderr.isatty()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_format else HumanFormatter())
    root_logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.debug("Scored proposals", extra={"count": 42})
    """
    return logging.getLogger(name)
