"""Centralised logging setup for brewpy."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.types import FilteringBoundLogger

_CONFIGURED = False
_HANDLERS: list[logging.Handler] = []

DEFAULT_LOG_DIR = Path.home() / ".brewpy" / "logs"


def sanitise_context(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Drop None values from the event so renderers never see them.

    Args:
        logger: The logger instance.
        method_name: The name of the method called on the logger.
        event_dict: The event dictionary to sanitise.

    Returns:
        The sanitised event dictionary.
    """
    return {k: v for k, v in event_dict.items() if v is not None}


def configure_logging(
    level: str | None = None,
    log_file: Path | None = None,
    enable_console: bool = False,
    force: bool = False,
) -> None:
    """Configure structlog and the stdlib root logger.

    Only the first call has any effect unless ``force`` is set, which
    replaces the handlers installed by the previous call.

    Args:
        level: The logging level name. Defaults to ``BREWPY_LOG_LEVEL`` or INFO.
        log_file: Path of the rotating log file. Defaults to
            ``$BREWPY_LOG_DIR/brewpy.log``.
        enable_console: Also render events to stderr.
        force: Reconfigure even if logging was already set up.
    """
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    for handler in _HANDLERS:
        logging.root.removeHandler(handler)
        handler.close()
    _HANDLERS.clear()

    level = (level or os.environ.get("BREWPY_LOG_LEVEL") or "INFO").upper()
    numeric_level = getattr(logging, level, logging.INFO)

    if log_file is None:
        log_dir = Path(os.environ.get("BREWPY_LOG_DIR") or DEFAULT_LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / "brewpy.log"

    file_handler = RotatingFileHandler(log_file, maxBytes=2_000_000, backupCount=2)
    file_handler.setLevel(numeric_level)

    shared_processors = [
        sanitise_context,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        logging.root.addHandler(console_handler)
        _HANDLERS.append(console_handler)
        renderers = [
            structlog.processors.ExceptionRenderer(),
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=shared_processors + renderers,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.root.setLevel(numeric_level)
    logging.root.addHandler(file_handler)
    _HANDLERS.append(file_handler)

    _CONFIGURED = True


def get_logger(name: str = "brewpy") -> FilteringBoundLogger:
    """Get a structlog logger instance.

    Args:
        name: Optional name for the logger, typically the module name.

    Returns:
        A structlog FilteringBoundLogger instance.

    Usage:
        log = get_logger(__name__)
        log.info("formula_info_complete", package="wget", duration_ms=123)

    Standard context keys:
        - package (str): Formula name or cask token
        - kind (str): "formula" or "cask"
        - command (str): The rendered brew invocation
        - returncode (int): Exit status of brew
        - duration_ms (int): Operation duration in milliseconds
        - error (str): Error message if applicable
    """
    if not _CONFIGURED:
        configure_logging()
    return structlog.get_logger(name)
