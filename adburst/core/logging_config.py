"""Structured logging configuration."""

import sys
from pathlib import Path
from typing import Any, Optional, Union

from loguru import logger

# Bound fields shown in every line, in this order
CONTEXT_FIELDS = ("run_id", "segment", "provider")

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>{context} | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line}{context} | {message}"


def _context_tag(extra: dict) -> str:
    """' [run_id=... segment=...]' for whichever context fields are bound, else ''."""
    parts = [f"{key}={extra[key]}" for key in CONTEXT_FIELDS if extra.get(key) is not None]
    return f" [{' '.join(parts)}]" if parts else ""


def _formatter(template: str):
    def format_record(record: dict) -> str:
        # Bound values must not be parsed as format fields or color tags
        context = _context_tag(record["extra"]).replace("{", "{{").replace("}", "}}").replace("<", r"\<")
        fmt = template.replace("{context}", context) + "\n"
        if record["exception"] is not None:
            fmt += "{exception}"
        return fmt

    return format_record


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """
    Configure structured logging with console and file output.

    Lines logged through a logger bound with run_id, segment or provider
    carry those fields, so concurrent runs and segments can be told apart.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path to log file
        rotation: Log rotation size
        retention: Log retention period
    """
    logger.remove()

    logger.add(
        sys.stderr,
        format=_formatter(CONSOLE_FORMAT),
        level=log_level,
        colorize=True,
    )

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=_formatter(FILE_FORMAT),
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            enqueue=True,
        )


def get_logger(name: str, **context: Any) -> Any:
    """
    Get a logger instance with optional context.

    Args:
        name: Logger name (typically __name__)
        **context: Additional context fields (run_id, segment, provider, etc.)

    Returns:
        Logger instance with bound context
    """
    return logger.bind(name=name, **context)


# Initialize logging on import
setup_logging()
