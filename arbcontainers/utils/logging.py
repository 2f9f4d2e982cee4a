"""Logging configuration for arbcontainers."""

# Standard library imports
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, List

# Third-party imports
import structlog

# Local application imports
from .._version import __version__
from ..config import settings


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structured logging.

    ``level`` and ``log_format`` override the configured values so the operator
    CLI can switch to debug output from a flag.
    """
    config = settings.logging
    level = (level or config.level).upper()
    log_format = (log_format or config.format).lower()

    # stdout carries command output; logs go to stderr
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level, logging.INFO),
        force=True,
    )

    structlog.configure(
        processors=build_processors(log_format),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if config.file:
        setup_file_logging(level, log_format)

    configure_third_party_loggers()


def build_processors(log_format: str) -> List[Any]:
    """Processor chain ending in a JSON or console renderer."""
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_service_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return processors


def setup_file_logging(level: str, log_format: str) -> None:
    """Mirror log records into a size-rotated file."""
    config = settings.logging
    if not config.file:
        return

    path = Path(config.file)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=config.max_size_mb * 1024 * 1024,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    # Records are already rendered by structlog
    if log_format == "json":
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    handler.setLevel(getattr(logging, level, logging.INFO))

    logging.getLogger().addHandler(handler)


def configure_third_party_loggers() -> None:
    for name in ("httpx", "httpcore", "docker", "urllib3", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)


def add_service_context(logger, method_name, event_dict):
    """Tag every entry with the package name and version."""
    event_dict["service"] = "arbcontainers"
    event_dict["version"] = __version__
    return event_dict


def get_logger(name: str = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)
