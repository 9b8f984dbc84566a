"""
Logging Configuration
Configures the 'universalequation' logger namespace for the CLI and for
embedding applications.

The engine fans work out to a thread pool, so every record carries the thread
name. Python warnings (e.g. numpy overflow RuntimeWarnings) are routed into
the same handlers, so numeric trouble shows up next to the engine's own
substitution warnings.
"""
import logging
import sys
from typing import Optional, Union

NAMESPACE = "universalequation"
LOG_FORMAT = '%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%H:%M:%S'

_WARNINGS_LOGGER = "py.warnings"


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level '{level}'.")
    return resolved


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach console (stdout) and optional file handlers to the package logger.

    Args:
        level: Level as a number or a name ("DEBUG", "info", ...).
        log_file: Optional path; the file is truncated on every setup.

    Returns:
        The configured package logger.

    Raises:
        ValueError: For an unknown level name.
    """
    level = _resolve_level(level)
    teardown_logging()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w', encoding='utf-8'))

    for name in (NAMESPACE, _WARNINGS_LOGGER):
        target = logging.getLogger(name)
        target.setLevel(level)
        target.propagate = False
        for handler in handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
            target.addHandler(handler)
    logging.captureWarnings(True)

    logger = logging.getLogger(NAMESPACE)
    logger.info(f"Logging initialized at {logging.getLevelName(level)}"
                + (f", writing to {log_file}." if log_file else "."))
    return logger


def teardown_logging() -> None:
    """Close the handlers installed by :func:`setup_logging` and restore propagation."""
    logging.captureWarnings(False)
    closed = set()
    for name in (NAMESPACE, _WARNINGS_LOGGER):
        target = logging.getLogger(name)
        for handler in list(target.handlers):
            target.removeHandler(handler)
            if id(handler) not in closed:
                handler.close()
                closed.add(id(handler))
        target.setLevel(logging.NOTSET)
        target.propagate = True
