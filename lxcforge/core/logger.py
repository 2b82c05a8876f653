"""Logging for lxcforge: one Rich console handler on the package logger.

Modules call ``get_logger(__name__)`` and inherit level and handlers from
the ``lxcforge`` logger, so a single ``configure_logging`` call from the
CLI switches every module to DEBUG or adds a log file.
"""
import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

PACKAGE = "lxcforge"

# Log lines go to stderr so stdout only carries the final report
console = Console(stderr=True)

# Used when the requested log directory cannot be created
FALLBACK_LOG_FILE = Path("/tmp/lxcforge.log")

FILE_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def _package_logger() -> logging.Logger:
    logger = logging.getLogger(PACKAGE)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False, show_time=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def _file_handlers(logger: logging.Logger):
    return [h for h in logger.handlers if isinstance(h, logging.FileHandler)]


def configure_logging(verbose: bool = False, log_file: Union[str, Path, None] = None) -> Optional[Path]:
    """Set the level for all lxcforge loggers and optionally tee to a file.

    Args:
        verbose: Log at DEBUG instead of INFO
        log_file: Where to append log records; falls back to /tmp when its
            directory cannot be created

    Returns:
        The file actually written to, or None without ``log_file``

    Note:
        Calling again replaces the previous file handler.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = _package_logger()
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)

    for handler in _file_handlers(logger):
        logger.removeHandler(handler)
        handler.close()

    if not log_file:
        return None

    target = Path(log_file)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        target = FALLBACK_LOG_FILE

    file_handler = logging.FileHandler(target)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(file_handler)
    logger.info(f"lxcforge logging initialized: {target}")
    return target


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, attached below the package logger."""
    _package_logger()
    if name != PACKAGE and not name.startswith(PACKAGE + "."):
        name = f"{PACKAGE}.{name}"
    return logging.getLogger(name)
