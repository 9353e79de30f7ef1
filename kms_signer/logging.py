"""Loguru logging configuration for kms-signer."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

from loguru import logger


CONTEXT_FIELDS = ("backend", "key_id", "operation")


def serialize_log(record: dict[str, Any]) -> str:
    """Serialize log record to JSON for structured logging.

    Args:
        record: Log record from loguru

    Returns:
        JSON string
    """
    subset = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
        "message": record["message"],
    }

    for field in CONTEXT_FIELDS:
        if field in record["extra"]:
            subset[field] = record["extra"][field]

    if record["exception"]:
        subset["exception"] = {
            "type": record["exception"].type.__name__,
            "value": str(record["exception"].value),
        }

    subset["extra"] = {
        k: v
        for k, v in record["extra"].items()
        if k not in CONTEXT_FIELDS and not k.startswith("_")
    }

    return json.dumps(subset, default=str)


def _json_sink_format(record: dict[str, Any]) -> str:
    # loguru treats the return value as a format template
    record["extra"]["_serialized"] = serialize_log(record)
    return "{extra[_serialized]}\n"


def configure_logging(
    level: str = "INFO",
    structured: bool = False,
    log_file: Path | None = None,
) -> None:
    """Configure loguru sinks.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        structured: Use JSON structured logging
        log_file: Optional file path for logs
    """
    logger.remove()

    if structured:
        logger.add(
            sys.stderr, format=_json_sink_format, level=level, backtrace=False, diagnose=False
        )
    else:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<level>{message}</level> | "
                "{extra}"
            ),
            level=level,
            colorize=True,
            backtrace=True,
            diagnose=False,
        )

    if log_file:
        logger.add(
            log_file,
            format=_json_sink_format if structured else "{time} | {level} | {message} | {extra}",
            level=level,
            rotation="100 MB",
            retention="30 days",
            backtrace=False,
            diagnose=False,
        )


def get_logger(name: str) -> Any:
    """Get a logger instance with the specified name.

    Args:
        name: Logger name

    Returns:
        Configured logger instance
    """
    return logger.bind(logger_name=name)
