"""
Logging configuration for the VIAF reconciliation service.

Console output with coloured level names for development, plain output
when logs are redirected to a file or collected by a process manager.
"""

import logging
import sys

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(threadName)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

#libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "asyncio")

#colour codes for console output
class LogColours:
    RESET = "\033[0m"
    RED = "\033[91m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    GRAY = "\033[90m"


class ColouredFormatter(logging.Formatter):
    """Formatter that colours the level name of each record."""

    COLOURS = {
        logging.DEBUG: LogColours.GRAY,
        logging.INFO: LogColours.BLUE,
        logging.WARNING: LogColours.YELLOW,
        logging.ERROR: LogColours.RED,
        logging.CRITICAL: LogColours.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        colour = self.COLOURS.get(record.levelno)
        if colour:
            record.levelname = f"{colour}{levelname}{LogColours.RESET}"
        try:
            return super().format(record)
        finally:
            #the record is reused by any later handler
            record.levelname = levelname


def setup_logging(level: str = "INFO", use_colours: bool = True) -> None:
    """
    Configure the root logger for the service.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Unknown names fall back to INFO.
        use_colours: Colour the level names; disable when stderr is not
            a terminal.

    Example:
        >>> setup_logging("DEBUG")  # dispatcher timings and worker outcomes
        >>> setup_logging("WARNING", use_colours=False)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)

    if use_colours:
        formatter = ColouredFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    else:
        formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    console_handler.setFormatter(formatter)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.basicConfig(
        level=log_level,
        handlers=[console_handler],
        force=True  #override existing config (uvicorn, etc.)
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Args:
        name: Usually __name__ of the module

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Dispatching 4 queries")
    """
    return logging.getLogger(name)
