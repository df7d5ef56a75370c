"""
Structured debug logging for the resolution engine.

Every module asks for its logger through get_logger(__name__). Loggers are
structlog BoundLoggers wrapped around the standard library logger of the same
name, so the host application decides where (and whether) events go through
its regular logging configuration. The library itself never installs handlers
beyond the customary NullHandler on the package logger.

Events are snake_case with key/value context, for example:

    logger.debug("fault_recorded", code=11112, index=3, command="build")
"""
import logging

import structlog
from structlog.stdlib import BoundLogger

logging.getLogger("sextant").addHandler(logging.NullHandler())


def get_logger(name: str) -> BoundLogger:
    """Return a structlog logger bound to the stdlib logger *name*.

    Args:
        name: dotted logger name, usually the caller's __name__.

    Returns:
        A BoundLogger whose events are filtered by the stdlib level of *name*
        and rendered as ``event key=value ...`` messages.
    """
    return structlog.wrap_logger(
        logging.getLogger(name),
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.KeyValueRenderer(key_order=["event"], sort_keys=True),
        ],
        wrapper_class=BoundLogger,
    )


__all__ = (
    "get_logger",
)
