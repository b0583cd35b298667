"""Logging configuration for kubeone-e2e.

Scenario runs take tens of minutes and mostly wait on subprocesses, so every
event carries its context (scenario, infra, step, version) as key/values.
Human-readable output is the default; CI jobs switch to JSON lines and keep
a copy in a log file collected as an artifact.
"""

import logging
import sys
from pathlib import Path

import structlog

# Libraries that log every request (each proxy probe) at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(
    level: str = "info",
    log_file: str | Path | None = None,
    json_output: bool = False,
) -> None:
    """Configure logging for the application.

    Called once by the CLI. Events always go to stderr, so generated
    sources written to stdout stay clean.

    Args:
        level: Log level (debug, info, warning, error)
        log_file: Optional file receiving a copy of every event
        json_output: If True, render JSON lines (for CI)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(str(log_file)))
    for handler in handlers:
        handler.setLevel(log_level)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        format="%(message)s",
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance.

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name)


def bound_run_context(**values):
    """Context manager adding key/values to every event logged inside it.

    Example:
        with bound_run_context(scenario="upgrade_containerd", infra="aws_default"):
            ...
    """
    return structlog.contextvars.bound_contextvars(**values)
