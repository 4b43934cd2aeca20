"""Structured logging (structlog).

Events are dotted ``<component>.<what>`` names (``gateway.attempt_failed``,
``rate_limiter.waiting``). Output goes to stderr so CLI results on stdout stay
machine-readable. Credentials never reach the renderer: values under
``_SECRET_KEYS`` are masked by ``redact_secrets``.
"""

import logging
import sys

import structlog

_SECRET_KEYS = frozenset({"api_key", "token", "authorization", "secret"})
_MASK = "***"


def redact_secrets(logger, method_name: str, event_dict: dict) -> dict:
    for key in _SECRET_KEYS & event_dict.keys():
        if event_dict[key]:
            event_dict[key] = _MASK
    return event_dict


def _processors(json_output: bool) -> list:
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        renderer,
    ]


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Apply the runtime config; *level* defaults to ``settings.log_level``."""
    from cra_assistant.config import settings

    if json_output is None:
        json_output = not sys.stderr.isatty()
    threshold = logging.getLevelName((level or settings.log_level).upper())
    if not isinstance(threshold, int):
        threshold = logging.INFO

    structlog.configure(
        processors=_processors(json_output),
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# Import-time default so `log` is usable in library code and tests.
# Not cached: configure_logging() may replace it later.
structlog.configure(
    processors=_processors(json_output=not sys.stderr.isatty()),
    wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    cache_logger_on_first_use=False,
)

log = structlog.get_logger()
