"""
Structured logging for DIDATTIKA.

structlog renders events as JSON in production and as coloured console lines
with ``DEBUG`` on. Standard library loggers used by the services share the
same stdout handler. Two files under ``settings.log_dir`` receive INFO and
above and errors only.
"""
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional
import structlog
from structlog.stdlib import LoggerFactory
from didattika.config.settings import settings

# Third-party loggers that drown out request and processing events at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "multipart", "PyPDF2")

_HANDLER_MARK = "_didattika"


def setup_logging() -> None:
    """Configure structlog and the stdlib root logger; safe to call on every startup."""

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if not settings.debug
            else structlog.dev.ConsoleRenderer(colors=True)
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger = logging.getLogger()
    if any(getattr(h, _HANDLER_MARK, False) for h in root_logger.handlers):
        return

    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    for filename, level in (("didattika.log", logging.INFO), ("didattika-error.log", logging.ERROR)):
        handler = logging.FileHandler(log_dir / filename, encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(file_formatter)
        setattr(handler, _HANDLER_MARK, True)
        root_logger.addHandler(handler)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class LoggerMixin:
    """Adds a structlog logger named after the service class."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        return get_logger(self.__class__.__name__)


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
    """Record a failure that was handled at an API or service boundary."""
    get_logger("didattika.errors").error(
        "operation_failed",
        error_type=type(error).__name__,
        error_message=str(error),
        context=context or {}
    )


def log_performance(operation: str, duration: float, **kwargs: Any) -> None:
    get_logger("didattika.performance").info(
        "operation_timed",
        operation=operation,
        duration_seconds=round(duration, 4),
        **kwargs
    )
