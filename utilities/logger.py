"""
Structured logging for the tracker using structlog.
Provides JSON or console output, an optional log file, and a per-tick logger.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[Union[str, Path]] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging with configurable output formats.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Add call-site information to every event
    """
    level = getattr(logging, log_level.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )
    logging.getLogger().setLevel(level)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        logging.getLogger().addHandler(file_handler)

    structlog.get_logger(__name__).info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class TickLogger:
    """
    Specialized logger for a single observation tick.
    """

    def __init__(self, tick_id: str, name: str = "tracker"):
        self.logger = structlog.get_logger(name).bind(tick_id=tick_id)

    def log_tick_start(self, known_items: int) -> None:
        """Log tick start with the size of the current baseline."""
        self.logger.debug("Tick started", known_items=known_items)

    def log_classification(self, classification: str, observed_items: int) -> None:
        """Log how the observation compared to the baseline."""
        self.logger.debug(
            "Observation classified",
            classification=classification,
            observed_items=observed_items
        )

    def log_failure(self, reason: str, report_outcome: str) -> None:
        """Log a failed tick and what the failure reporter did with it."""
        self.logger.warning(
            "Tick failed",
            reason=reason,
            report_outcome=report_outcome
        )

    def log_tick_complete(self, outcome: str, duration_seconds: float) -> None:
        """Log tick completion."""
        self.logger.info(
            "Tick completed",
            outcome=outcome,
            duration_seconds=round(duration_seconds, 3)
        )
