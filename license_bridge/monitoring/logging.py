"""
Logging setup for the license bridge.

structlog events go through the stdlib root logger, which writes one JSON
object per line to stdout. With ``debug`` enabled, events render as console
text instead.
"""
import logging
import sys
from typing import Any, List, Optional

import structlog
from pythonjsonlogger.json import JsonFormatter

from license_bridge.config import Settings, get_settings

# Third-party loggers held back to WARNING regardless of the app log level.
QUIET_LOGGERS = ("httpx", "httpcore", "stripe")


def _app_context(settings: Settings) -> Any:
    def add_app_context(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict.setdefault("app_name", settings.app_name)
        event_dict.setdefault("app_env", settings.app_env)
        return event_dict

    return add_app_context


def build_processors(settings: Settings) -> List[Any]:
    renderer: Any = (
        structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        _app_context(settings),
        renderer,
    ]


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure structlog and the root handler. Safe to call more than once."""
    settings = settings or get_settings()

    structlog.configure(
        processors=build_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JsonFormatter("%(levelname)s %(name)s %(message)s", rename_fields={"levelname": "level"})
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(settings.log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.get_logger(__name__).info(
        "logging_configured",
        log_level=settings.log_level,
        renderer="console" if settings.debug else "json",
    )
