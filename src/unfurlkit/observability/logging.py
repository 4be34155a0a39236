"""
structlog setup: one processor chain for both structlog and stdlib records.
"""
from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any, Dict, List

import structlog

if TYPE_CHECKING:
    from unfurlkit.config.config import MonitoringConfig


def drop_duplicate_url(logger: logging.Logger, method_name: str, event_dict: Dict[Any, Any]) -> Dict[Any, Any]:
    """
    Removes the bound ``scrape_url`` when the event already logs the same ``url``.
    ``scraper`` binds it with ``structlog.contextvars.bound_contextvars``.
    """
    if "scrape_url" in event_dict and event_dict.get("url") == event_dict["scrape_url"]:
        del event_dict["scrape_url"]
    return event_dict


def configure_logging(config: MonitoringConfig) -> None:
    """
    Route structlog and stdlib logging through one handler.

    JSON lines go to ``log_file`` when set, plain console lines to stderr
    otherwise.
    """
    shared_processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        drop_duplicate_url,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    log_renderer: Any
    if config.log_file:
        log_renderer = structlog.processors.JSONRenderer()
        handler: logging.Handler = logging.FileHandler(config.log_file)
    else:
        # stdout carries snippet JSON
        log_renderer = structlog.dev.ConsoleRenderer(colors=False)
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=log_renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    logging.basicConfig(
        format="%(message)s",
        level=config.log_level.upper(),
        handlers=[handler],
        force=True,
    )

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logger = structlog.get_logger("unfurlkit.logging")
    logger.debug("Logging configured", level=config.log_level, output=config.log_file or "stderr")
