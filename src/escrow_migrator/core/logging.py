"""
Structured logging setup using structlog.

Log lines go to stderr so the run summary on stdout stays machine-readable.
"""
import logging
import sys
from typing import Any, Optional

import structlog

# Largest integer a JSON consumer using IEEE doubles reads back exactly.
JSON_SAFE_INT = 2**53


def stringify_large_ints(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Render base-unit amounts beyond double precision as decimal strings."""
    for key, value in event_dict.items():
        if isinstance(value, int) and not isinstance(value, bool) and abs(value) > JSON_SAFE_INT:
            event_dict[key] = str(value)
    return event_dict


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> structlog.stdlib.BoundLogger:
    """Configure structlog on top of stdlib logging.

    Args:
        level: Log level name; unknown names fall back to INFO
        json_output: One JSON object per line instead of console rendering
        log_file: Also append log lines to this file
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setLevel(log_level)

    logging.basicConfig(format="%(message)s", level=log_level, handlers=handlers, force=True)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [
            stringify_large_ints,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty() and not log_file,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger("escrow_migrator")


def bind_run_context(network: str, dry_run: bool, started_at: Optional[int] = None) -> None:
    """Attach the run's identity to every later log line."""
    context: dict[str, Any] = {"network": network, "dry_run": dry_run}
    if started_at is not None:
        context["run"] = started_at
    structlog.contextvars.bind_contextvars(**context)
