import logging

import structlog


def setup_logging(level: int | None = logging.INFO) -> None:
    """
    Configure structured logging for pipeline stages.

    Log output goes to stderr so stdout stays free for artifact JSON.

    Args:
        level: The logging level to use. Defaults to INFO.
    """
    logging.basicConfig(level=level, format="%(message)s")

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(
            colors=False,
            exception_formatter=structlog.dev.plain_traceback,
            pad_event=40,
        ),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def level_from_name(name: str | None) -> int:
    """Map a level name such as "DEBUG" to its logging constant, INFO if unknown"""
    if not name:
        return logging.INFO
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO
