"""Logging configuration for tutorial runs.

Tutorials narrate their progress through standard logging. The console shows
plain messages, while the log file keeps timestamps, logger names and the JSON
audit trail, the same split the shell tutorials achieved with ``tee -a``.
"""

import logging
import sys
from pathlib import Path
from typing import Final

CONSOLE_FORMAT: Final[str] = "%(message)s"
FILE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
AUDIT_LOGGER_NAME: Final[str] = "tutorial_runner.utils.audit_logger"

# Marker attribute so repeated configuration replaces only our own handlers
_HANDLER_MARKER: Final[str] = "_tutorial_runner_handler"


class ExcludeLoggerFilter(logging.Filter):
    """Drop records emitted by a logger (and its children)."""

    def __init__(self, logger_name: str) -> None:
        super().__init__()
        self.logger_name = logger_name

    def filter(self, record: logging.LogRecord) -> bool:
        return not (
            record.name == self.logger_name or record.name.startswith(f"{self.logger_name}.")
        )


def configure_logging(level: str = "INFO", log_file: str | Path | None = None) -> logging.Logger:
    """Configure console and optional file logging.

    Safe to call more than once: handlers installed by a previous call are
    closed and replaced.

    Args:
        level: Log level name for the console. Defaults to "INFO".
        log_file: Path of the log file. Parent directories are created.
            Defaults to None (console only).

    Returns:
        The configured root logger.

    Example:
        >>> configure_logging("DEBUG", "neptune-gs.log")
    """
    root = logging.getLogger()

    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    console.addFilter(ExcludeLoggerFilter(AUDIT_LOGGER_NAME))
    setattr(console, _HANDLER_MARKER, True)
    root.addHandler(console)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        setattr(file_handler, _HANDLER_MARKER, True)
        root.addHandler(file_handler)

    root.setLevel(logging.DEBUG if log_file is not None else level)

    # boto3/botocore are very chatty at DEBUG
    for noisy in ("botocore", "boto3", "urllib3", "s3transfer"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root
