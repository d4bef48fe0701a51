"""
Logging Configuration and Utilities

Structured logging for the governance core: structlog processors for
context and redaction, JSON output through python-json-logger, and a
small adapter that carries bound context into every record.
"""

import sys
import logging
from typing import Any, Dict, Iterator, Optional
from datetime import datetime, timezone
from contextlib import contextmanager
from contextvars import ContextVar

import structlog
from pythonjsonlogger import jsonlogger

from mdm.config.settings import Settings, get_settings

# Acting principal for the current command, attached to every log line
acting_user_id: ContextVar[Optional[str]] = ContextVar('acting_user_id', default=None)

_configured = False


class GovernanceContextProcessor:
    """Add acting user and service information to log records"""

    def __init__(self, settings: Settings):
        self.settings = settings

    def __call__(self, logger, method_name, event_dict):
        uid = acting_user_id.get()
        if uid:
            event_dict['acting_user_id'] = uid

        event_dict['timestamp'] = datetime.now(timezone.utc).isoformat()
        event_dict['service'] = 'mdm-governance'
        event_dict['environment'] = self.settings.ENVIRONMENT

        return event_dict


class SensitiveDataProcessor:
    """Mask contact details and secrets before they reach a handler"""

    sensitive_keys = ('password', 'token', 'secret', 'email', 'phone')

    def __call__(self, logger, method_name, event_dict):
        self._sanitize_event_dict(event_dict)
        return event_dict

    def _sanitize_event_dict(self, event_dict: Dict[str, Any]):
        for key in list(event_dict.keys()):
            if any(sensitive in key.lower() for sensitive in self.sensitive_keys):
                event_dict[key] = '[REDACTED]'
            elif isinstance(event_dict[key], dict):
                self._sanitize_event_dict(event_dict[key])


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter for structured logging"""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)


class LoggingConfig:
    """Centralized logging configuration"""

    @staticmethod
    def configure_structured_logging(settings: Settings):
        """Configure structured logging with structlog"""

        processors = [
            GovernanceContextProcessor(settings),
            SensitiveDataProcessor(),
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
        ]

        if settings.LOG_FORMAT == "json":
            processors.append(structlog.processors.JSONRenderer())
        else:
            processors.append(structlog.processors.KeyValueRenderer())

        structlog.configure(
            processors=processors,
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            context_class=dict,
            cache_logger_on_first_use=True,
        )

    @staticmethod
    def configure_standard_logging(settings: Settings):
        """Configure the `mdm` logger tree"""

        package_logger = logging.getLogger("mdm")
        package_logger.setLevel(getattr(logging, settings.LOG_LEVEL, logging.INFO))

        for handler in list(package_logger.handlers):
            if getattr(handler, '_mdm_handler', False):
                package_logger.removeHandler(handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler._mdm_handler = True

        if settings.LOG_FORMAT == "json":
            formatter = CustomJsonFormatter(
                '%(asctime)s %(name)s %(levelname)s %(message)s'
            )
        else:
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )

        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

        if settings.DATABASE_ECHO:
            logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
        else:
            logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


class LoggerAdapter:
    """Logger adapter that stamps the acting user onto every record"""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _log(self, level: int, message: str, *args, **kwargs):
        extra = dict(kwargs.get('extra') or {})
        uid = acting_user_id.get()
        if uid and 'acting_user_id' not in extra:
            extra['acting_user_id'] = uid
        kwargs['extra'] = extra

        self.logger.log(level, message, *args, **kwargs)

    def debug(self, message: str, *args, **kwargs):
        self._log(logging.DEBUG, message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs):
        self._log(logging.INFO, message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs):
        self._log(logging.WARNING, message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs):
        self._log(logging.ERROR, message, *args, **kwargs)


def get_logger(name: Optional[str] = None) -> LoggerAdapter:
    """
    Get configured logger instance.

    Args:
        name: Logger name, defaults to the package logger

    Returns:
        Logger adapter
    """
    return LoggerAdapter(logging.getLogger(name or "mdm"))


@contextmanager
def bind_acting_user(user_id: Optional[str]) -> Iterator[None]:
    """Attach `user_id` to every log line emitted inside the block"""
    token = acting_user_id.set(user_id)
    try:
        yield
    finally:
        acting_user_id.reset(token)


def get_event_logger(name: str = "mdm.audit"):
    """Key-value structlog logger for the audit event stream"""
    return structlog.get_logger(name)


def setup_logging(settings: Optional[Settings] = None, force: bool = False):
    """Initialize logging configuration once per process"""
    global _configured
    if _configured and not force:
        return

    settings = settings or get_settings()
    if settings.ENABLE_STRUCTURED_LOGGING:
        LoggingConfig.configure_structured_logging(settings)

    LoggingConfig.configure_standard_logging(settings)
    _configured = True

    get_logger(__name__).debug("Logging system initialized", extra={
        'log_level': settings.LOG_LEVEL,
        'log_format': settings.LOG_FORMAT,
        'structured_logging': settings.ENABLE_STRUCTURED_LOGGING,
    })


# Initialize logging when module is imported
setup_logging()

__all__ = [
    'get_logger',
    'get_event_logger',
    'bind_acting_user',
    'setup_logging',
    'LoggerAdapter',
    'LoggingConfig',
    'acting_user_id',
]
