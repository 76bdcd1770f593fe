"""
Logging configuration.

Harness modules log through the standard library
(``logging.getLogger(__name__)``) with dotted event names and ``extra=``
fields. This module routes those records through structlog's
``ProcessorFormatter`` so they render as key/value console lines or JSON.

Configuration is read from environment variables:
- BROWSERCHECK_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default: WARNING)
- BROWSERCHECK_LOG_FORMAT: json | console (default: console)

Logs always go to stderr; the reporter owns stdout.

Usage:
    from browsercheck.logging import configure_logging
    configure_logging(level="DEBUG")
"""

import logging
import os
import sys
from typing import Literal

import structlog
from structlog.types import Processor

# Track if logging has been configured
_configured = False


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
    format: Literal["json", "console"] | None = None,
    force: bool = False,
) -> None:
    """
    Configure structured logging for the harness.

    Should be called once at startup (CLI entry). Subsequent calls are
    no-ops unless force=True.

    Args:
        level: Log level (overrides BROWSERCHECK_LOG_LEVEL env var)
        format: Output format (overrides BROWSERCHECK_LOG_FORMAT env var)
        force: Reconfigure even if already configured
    """
    global _configured

    if _configured and not force:
        return

    log_level = (level or os.environ.get("BROWSERCHECK_LOG_LEVEL", "WARNING")).upper()
    log_format = (format or os.environ.get("BROWSERCHECK_LOG_FORMAT", "console")).lower()

    # Applied to stdlib records before rendering
    pre_chain: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level, logging.WARNING))

    # Loggers obtained via structlog.get_logger() share the same pipeline
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain[:2],
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("browsercheck").setLevel(getattr(logging, log_level, logging.WARNING))

    _configured = True
