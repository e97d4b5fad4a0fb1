"""Logging configuration for newslingo."""

import logging
import sys

DEFAULT_LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: int | str = logging.WARNING) -> None:
    """Send log records to stderr, replacing any handlers already installed.

    stdout is left to the CLI's own output.
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    root.setLevel(level)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT, datefmt=DEFAULT_DATE_FORMAT))
    root.addHandler(handler)

    # HTTP client libraries are chatty at INFO
    for name in ("httpx", "httpcore", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)
