import logging
import os

from rich.logging import RichHandler


class CenteredFormatter(logging.Formatter):
    longest_name_length = 14  # grows as longer logger names show up

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(record.name)
        )
        width = CenteredFormatter.longest_name_length
        record.name = record.name.center(width)
        return super().format(record)


def _resolve_level() -> int:
    if os.getenv("DEBUG"):
        return logging.DEBUG
    level_name = os.getenv("STOREFRONT_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else logging.INFO


def _build_handler() -> logging.Handler:
    """
    Textual owns the terminal while the app runs, so a log file takes
    precedence over the rich console handler when one is configured.
    """
    log_file = os.getenv("STOREFRONT_LOG_FILE")
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(
            CenteredFormatter("%(asctime)s %(levelname)-7s [%(name)s]  %(message)s")
        )
        return handler

    handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        log_time_format="[%X]",
    )
    handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
    return handler


def get_logger(name=None) -> logging.Logger:
    """
    Return a logger wired to the storefront's handler (rich console or log file).
    """
    if name is None:
        name = "storefront"
    logger = logging.getLogger(name)
    log_level = _resolve_level()
    logger.setLevel(log_level)

    if not logger.handlers:
        handler = _build_handler()
        handler.setLevel(log_level)
        logger.addHandler(handler)

        logger.propagate = False
        logger.debug(f"Logger for '{name}' initialized.")

    return logger
