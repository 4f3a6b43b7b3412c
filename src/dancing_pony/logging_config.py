"""Structured logging configuration.

structlog renders through the stdlib root logger: JSON lines in
production, colored console everywhere else. ``configure_logging()`` is
called once from the FastAPI lifespan.

Request identifiers (``request_id``, ``tenant_id``, ``user_id``) are bound
with ``structlog.contextvars`` by the middleware, the tenant resolver and
the authorization pipeline, and merged into every event. Events carry
ids only: credentials are masked and emails are dropped before rendering.
"""

import logging
import re
import sys

import structlog

SERVICE_NAME = "dancing-pony"

REDACTED = "***REDACTED***"

# Masked wherever they appear as event keys.
SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "password_hash",
        "secret",
        "jwt_secret",
        "token",
        "authorization",
    }
)

# Personal data never rendered, even masked.
PII_KEYS: frozenset[str] = frozenset({"email"})

_BEARER_RE = re.compile(r"(?i)\bbearer\s+\S+")
_JWT_RE = re.compile(r"\beyJ[\w-]+\.[\w-]+\.[\w-]*")

NOISY_LOGGERS: dict[str, int] = {
    "uvicorn.access": logging.WARNING,
    "aiobotocore": logging.WARNING,
    "botocore": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def _scrub_credentials(
    logger: logging.Logger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Mask sensitive keys, drop PII keys, and mask tokens inside strings."""
    for key in list(event_dict):
        lowered = key.lower()
        if lowered in PII_KEYS:
            del event_dict[key]
        elif lowered in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(event_dict[key], str) and key != "event":
            value = _BEARER_RE.sub(f"Bearer {REDACTED}", event_dict[key])
            event_dict[key] = _JWT_RE.sub(REDACTED, value)
    return event_dict


def _service_stamper(environment: str) -> structlog.types.Processor:
    def _stamp(
        logger: logging.Logger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("environment", environment)
        return event_dict

    return _stamp


def _renderer(environment: str) -> structlog.types.Processor:
    if environment == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(
    environment: str = "development",
    log_level: str = "INFO",
) -> None:
    """Configure the structlog processor chain and the stdlib root logger.

    Args:
        environment: 'production' for JSON output, anything else
            for console output.
        log_level: Python log level name (DEBUG, INFO, WARNING, etc.).
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _service_stamper(environment),
        _scrub_credentials,
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        # Records from plain stdlib loggers (uvicorn, alembic) get the
        # same chain before rendering.
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(environment),
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
