"""Structured logging configuration."""

import logging
import sys

import structlog

_PACKAGE_PREFIX = "listing_sync."


def configure_logging(*, json_output: bool = False, level: int = logging.INFO) -> None:
    """Configure structlog for the sync engine.

    Every event carries a ``component`` key naming the module that emitted
    it (``sync.scheduler``, ``metrics.aggregator``, ...). Events logged while
    a poll cycle runs also carry the ``poll_cycle`` number the engine binds.

    Args:
        json_output: If True, emit one JSON object per line (for log shipping).
            Otherwise, pretty console output.
        level: Minimum logging level (default: INFO).
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_output:
        processors += [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def component_name(module: str) -> str:
    """Short component label for a module path (``listing_sync.engine`` -> ``engine``)."""
    return module.removeprefix(_PACKAGE_PREFIX)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger tagged with the component it belongs to."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(
        name, component=component_name(name)
    )
    return logger
