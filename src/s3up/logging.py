"""
Logging setup for the command line interface.

Console output goes through tqdm so log records do not tear progress bars.
"""

from __future__ import annotations

import logging
import sys
from os import PathLike
from pathlib import Path

from tqdm.auto import tqdm

log = logging.getLogger(__name__)

LOGGING_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOGGING_DATEFMT = "%Y-%m-%d %I:%M %p"


class TqdmLoggingHandler(logging.Handler):
    """
    A logging handler that outputs to stderr via tqdm.write().
    """

    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
            self.flush()
        except Exception:
            self.handleError(record)


def add_filelogger(file_path: str | PathLike, level: str = "INFO", logger_name: str | None = None) -> None:
    """
    Add a file handler to a logger.

    :param file_path: the path to the log file
    :param level: the logging level name, e.g. 'DEBUG' or 'INFO'
    :param logger_name: the logger to attach the handler to, the root logger by default
    """
    logger = logging.getLogger(logger_name)

    file_path = Path(file_path)

    file_handler = logging.FileHandler(file_path)
    file_handler.setLevel(level.upper())
    file_handler.setFormatter(logging.Formatter(fmt=LOGGING_FORMAT, datefmt=LOGGING_DATEFMT))
    logger.addHandler(file_handler)
    log.info(
        "File logger added for %s at %s with level %s.",
        logger.name,
        file_path,
        level.upper(),
    )


def setup_cli_logging(log_file: str | PathLike | None, log_level: str, quiet: bool = False) -> None:
    """
    Setup logging for the CLI.

    In quiet mode only errors reach the console; the file logger keeps the requested level.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level.upper())

    formatter = logging.Formatter(fmt=LOGGING_FORMAT, datefmt=LOGGING_DATEFMT)

    # replace the console handler of an earlier setup, keep handlers installed by others
    for handler in root_logger.handlers[:]:
        if isinstance(handler, TqdmLoggingHandler):
            root_logger.removeHandler(handler)

    console_handler = TqdmLoggingHandler()
    console_handler.setFormatter(formatter)
    if quiet:
        console_handler.setLevel(logging.ERROR)
    root_logger.addHandler(console_handler)

    if log_file:
        add_filelogger(log_file, log_level.upper())

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(max(root_logger.level, logging.INFO))

    log.debug("Logging setup complete.")
