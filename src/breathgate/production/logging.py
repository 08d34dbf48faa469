"""
Production Logging

Colourised console output plus optional rotating log files for the
breathgate logger hierarchy.
"""

import logging
import sys
from typing import Optional, Union
from pathlib import Path
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "breathgate"

CONSOLE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"


class Color:
    """ANSI escape sequences"""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    GRAY = "\033[90m"
    WHITE = "\033[97m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    GREEN = "\033[92m"


class ProductionFormatter(logging.Formatter):
    """Formatter that colours console lines by level"""

    LEVEL_COLORS = {
        logging.DEBUG: Color.GRAY,
        logging.INFO: Color.WHITE,
        logging.WARNING: Color.YELLOW,
        logging.ERROR: Color.RED,
        logging.CRITICAL: Color.RED + Color.BOLD,
    }

    def __init__(self, fmt: str = CONSOLE_FORMAT, include_colors: bool = True, stream=None):
        super().__init__(fmt, datefmt="%H:%M:%S")
        stream = stream or sys.stdout
        self.include_colors = include_colors and hasattr(stream, 'isatty') and stream.isatty()

    def format(self, record):
        formatted = super().format(record)
        if self.include_colors:
            color = self.LEVEL_COLORS.get(record.levelno, Color.WHITE)
            formatted = f"{color}{formatted}{Color.RESET}"
        return formatted


class ProductionLogger:
    """Owns the handlers attached to one logger"""

    def __init__(self, name: str = LOGGER_NAME, log_file: Optional[Path] = None,
                 level: int = logging.INFO, max_file_size: int = 10 * 1024 * 1024,
                 backup_count: int = 5, stream=None):
        self.name = name
        self.max_file_size = max_file_size
        self.backup_count = backup_count

        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        # Re-running setup must not stack duplicate handlers
        for handler in list(self.logger.handlers):
            if getattr(handler, '_breathgate_handler', False):
                self.logger.removeHandler(handler)
                handler.close()

        self._setup_console_handler(stream or sys.stdout)
        if log_file:
            self._setup_file_handler(Path(log_file))

    def _setup_console_handler(self, stream):
        handler = logging.StreamHandler(stream)
        handler.setFormatter(ProductionFormatter(include_colors=True, stream=stream))
        handler._breathgate_handler = True
        self.logger.addHandler(handler)

    def _setup_file_handler(self, log_file: Path):
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                log_file,
                maxBytes=self.max_file_size,
                backupCount=self.backup_count,
                encoding='utf-8'
            )
        except OSError as e:
            self.logger.warning(f"Failed to setup file logging: {e}")
            return

        handler.setFormatter(ProductionFormatter(FILE_FORMAT, include_colors=False))
        handler._breathgate_handler = True
        self.logger.addHandler(handler)


def parse_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def setup_production_logging(verbose: bool = False, log_file: Optional[Path] = None,
                             level: Union[str, int] = logging.INFO) -> logging.Logger:
    """
    Setup logging for the whole package

    Args:
        verbose: Force DEBUG level
        log_file: Optional rotating log file path
        level: Level name or number when not verbose

    Returns:
        The configured package logger
    """
    production_logger = ProductionLogger(
        LOGGER_NAME,
        log_file=log_file,
        level=logging.DEBUG if verbose else parse_level(level),
    )
    return production_logger.logger
