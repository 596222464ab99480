"""
Logging setup shared by the cleaner modules.

Every module logs through a child of the "depot_cleaner" logger. The level comes
from (in priority order) an explicit argument, the LOG_LEVEL environment
variable, or INFO. HTTP client chatter stays at WARNING unless DEBUG is asked for.
"""

import logging
import os
import traceback
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
ROOT_LOGGER_NAME = "depot_cleaner"
NOISY_LOGGERS = ("urllib3", "requests")


def resolve_log_level(level: Union[int, str, None]) -> int:
    """Turn a level name ("debug", "INFO") or number into a logging level.

    Raises:
        ValueError: If the name is not a known logging level
    """
    if level is None or level == "":
        level = os.environ.get("LOG_LEVEL") or logging.INFO
    if isinstance(level, int):
        return level
    text = str(level).strip()
    if text.isdigit():
        return int(text)
    resolved = logging.getLevelName(text.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def setup_logging(level: Union[int, str, None] = None, fmt: Optional[str] = None) -> None:
    """Configure root logging and apply the requested level.

    Handlers are installed only once; later calls just change the level, so an
    entry point can raise verbosity after modules have already created loggers.
    """
    resolved = resolve_log_level(level)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=resolved, format=fmt or DEFAULT_FORMAT)
    else:
        root.setLevel(resolved)

    noisy_level = logging.DEBUG if resolved <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger for a module or class, nested under "depot_cleaner"."""
    if not name or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def log_exception(logger: logging.Logger, message: str = "An error occurred", exc_info: Exception = None) -> None:
    """Log an error with its type, any HTTP status it carries, and the traceback at DEBUG.

    Args:
        logger: Logger instance to use
        message: Summary line logged at ERROR
        exc_info: Exception instance (if None, uses current exception context)
    """
    logger.error(message)
    if exc_info is not None:
        details = type(exc_info).__name__
        status = getattr(exc_info, "status_code", None)
        if status is not None:
            details += f" (HTTP {status})"
        logger.error(f"   {details}: {exc_info}")
    logger.debug("Full traceback:\n" + traceback.format_exc())
