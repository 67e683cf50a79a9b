"""
log_utils.py: Logging setup for the exporter.
This module contains:
- setup_logging: Installs the console (and optional file) handler.
- MapContextFilter: Tags records with the map being exported by the
  current thread.
- LogFormatter: Colored, aligned single-line console output.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

PROJECT_NAME = "terrain_export"

_context = threading.local()


@contextmanager
def map_context(map_name: str) -> Iterator[None]:
    """Attach ``map_name`` to every record logged by this thread inside the block."""
    previous = getattr(_context, "map_name", "")
    _context.map_name = map_name
    try:
        yield
    finally:
        _context.map_name = previous


class MapContextFilter(logging.Filter):
    def filter(self, record):
        record.context = getattr(_context, "map_name", "")
        return True


def setup_logging(
    level=logging.INFO,
    color_logs: bool = False,
    log_file: Optional[str] = None,
):
    """Configures logging for the application."""
    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        for h in root_logger.handlers[:]:
            root_logger.removeHandler(h)
            h.close()

    context_filter = MapContextFilter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(LogFormatter(use_color=color_logs))
    console_handler.addFilter(context_filter)
    root_logger.addHandler(console_handler)
    root_logger.setLevel(level)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="w")
            file_handler.setFormatter(LogFormatter(use_color=False))
            file_handler.addFilter(context_filter)
            root_logger.addHandler(file_handler)
            logging.getLogger(PROJECT_NAME).info("Logging to file: %s", log_file)
        except OSError as e:
            logging.getLogger(PROJECT_NAME).error(
                "Could not open log file %s: %s", log_file, e
            )

    logging.getLogger("PIL").setLevel(logging.WARNING)


class LogFormatter(logging.Formatter):
    """Level and topic prefixed formatter with optional ANSI colors.

    The topic is the module part of the logger name (``terrain_export.atlas``
    -> ``atlas``); the map context, when set, follows it in brackets.
    """

    COLOR_CODES = {
        logging.DEBUG: "\033[38;5;252m",
        logging.INFO: "\033[38;5;111m",
        logging.WARNING: "\033[38;5;229m",
        logging.ERROR: "\033[38;5;210m",
        logging.CRITICAL: "\033[38;5;217m",
    }

    def __init__(self, use_color: bool = False):
        super().__init__()
        self.use_color = use_color
        self.BOLD = "\033[1m" if use_color else ""
        self.RESET = "\033[0m" if use_color else ""

    def format(self, record):
        color = self.COLOR_CODES.get(record.levelno, "") if self.use_color else ""
        level_name = record.levelname[:5]

        name_parts = record.name.split(".")
        topic = name_parts[-1][:8] if len(name_parts) > 1 else record.name[:8]

        context = getattr(record, "context", "")
        context_str = f"[{context}]" if context else ""

        prefix = (
            f"{color}{level_name:<5}{self.RESET}:"
            f"{self.BOLD}{topic:<8}{self.RESET}{context_str}: "
        )
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return "\n".join(f"{prefix}{line}" for line in message.split("\n"))
