"""
structlog setup for delivery area services.

Production renders one JSON object per line; development renders coloured
console output. Modules log with keyword context:

    logger = get_logger(__name__)
    logger.info("Delivery zone saved", zone_id=zone.id, area_type=zone.area_type)
"""
import logging
import sys
from typing import Any, List, Optional

import structlog

_SHARED_PROCESSORS: List[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]


def _renderer(json_format: bool) -> Any:
    if json_format:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def setup_logging(log_level: Optional[str] = None, json_format: Optional[bool] = None) -> None:
    """
    Configure stdlib logging and structlog.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL; defaults to Settings.LOG_LEVEL
        json_format: JSON lines if True, console output if False;
                     defaults to JSON in production
    """
    if log_level is None or json_format is None:
        from delivery_areas.app.core.settings import get_settings

        settings = get_settings()
        log_level = log_level or settings.LOG_LEVEL
        json_format = settings.is_production if json_format is None else json_format

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=_SHARED_PROCESSORS + [_renderer(json_format)],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Structured logger for a module (pass __name__)."""
    return structlog.get_logger(name)
