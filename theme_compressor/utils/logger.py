"""
Logging configuration and utilities for theme-compressor
Provides colored console output and rotating file logging for the HTTP service
"""

import logging
import logging.handlers
import re
import sys
import time
from pathlib import Path
from typing import Optional

import colorama
from colorama import Fore, Back, Style


# Initialize colorama for Windows compatibility
colorama.init()


CONSOLE_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'
FILE_FORMAT = '%(asctime)s | %(name)-30s | %(levelname)-8s | %(funcName)-20s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Third-party loggers that are too chatty at INFO
EXTERNAL_LIBS = ['aiohttp.access', 'urllib3', 'PIL', 'asyncio']


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colored level names for console output"""

    # Color mapping for log levels
    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Back.WHITE + Style.BRIGHT,
    }

    def __init__(self, fmt: Optional[str] = None, use_colors: bool = True):
        """
        Initialize colored formatter

        Args:
            fmt: Log format string
            use_colors: Whether to use colored output
        """
        super().__init__(fmt or CONSOLE_FORMAT, datefmt=DATE_FORMAT)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors"""
        if self.use_colors and record.levelname in self.COLORS:
            # Copy the record so other handlers see the plain level name
            record_copy = logging.makeLogRecord(record.__dict__)
            record_copy.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{Style.RESET_ALL}"
            return super().format(record_copy)
        return super().format(record)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    console_output: bool = True,
    colored_output: bool = True,
    max_size: str = "10MB",
    backup_count: int = 3
) -> None:
    """
    Setup application logging with console and optional rotating file output

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (None to disable file logging)
        console_output: Enable console logging
        colored_output: Enable colored console output
        max_size: Maximum log file size before rotation
        backup_count: Number of backup log files to keep
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(ColoredFormatter(use_colors=colored_output))
        root_logger.addHandler(console_handler)

    # File handler with full detail logging
    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=parse_size(max_size),
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)
        # The file captures everything, handlers filter on their own level
        root_logger.setLevel(logging.DEBUG)

    for lib in EXTERNAL_LIBS:
        logging.getLogger(lib).setLevel(logging.WARNING)

    logging.getLogger('theme-compressor').info(
        f"Logging initialized - Level: {level}, Console: {console_output}, File: {log_file}"
    )


def get_current_log_file() -> Optional[Path]:
    """
    Get the current log file path from active file handlers

    Returns:
        Path to current log file or None if no file logging
    """
    for handler in logging.getLogger().handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            return Path(handler.baseFilename)
    return None


def parse_size(size_str: str) -> int:
    """
    Parse size string to bytes

    Args:
        size_str: Size string like "10MB", "1GB", "500KB"

    Returns:
        Size in bytes
    """
    size_str = size_str.upper().strip()

    multipliers = {
        'B': 1,
        'KB': 1024,
        'MB': 1024 ** 2,
        'GB': 1024 ** 3,
        'TB': 1024 ** 4,
    }

    match = re.match(r'^(\d+(?:\.\d+)?)\s*([KMGT]?B)$', size_str)
    if not match:
        raise ValueError(f"Invalid size format: {size_str}")

    number, unit = match.groups()
    return int(float(number) * multipliers[unit])


def get_logger(name: str) -> logging.Logger:
    """
    Get logger instance for a module

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def configure_from_settings(settings=None) -> None:
    """Configure logging from application settings"""
    if settings is None:
        from ..config.settings import get_settings
        settings = get_settings()

    log_file_path = None
    if settings.logging.file:
        if Path(settings.logging.file).expanduser().is_absolute():
            log_file_path = Path(settings.logging.file).expanduser()
        else:
            log_file_path = settings.get_config_directory() / settings.logging.file

    setup_logging(
        level=settings.logging.level,
        log_file=str(log_file_path) if log_file_path else None,
        console_output=settings.logging.console_output,
        colored_output=settings.logging.colored_output,
        max_size=settings.logging.max_size,
        backup_count=settings.logging.backup_count
    )


class OperationLogger:
    """Logger for tracking one job from start to its terminal state"""

    def __init__(self, logger: logging.Logger, operation_name: str):
        """
        Initialize operation logger

        Args:
            logger: Base logger instance
            operation_name: Name of the operation, e.g. "job 1a2b3c4d"
        """
        self.logger = logger
        self.operation_name = operation_name
        self.start_time: Optional[float] = None

    def start(self, message: Optional[str] = None) -> None:
        """Start tracking operation"""
        self.start_time = time.monotonic()
        self.logger.info(message or f"Operation started: {self.operation_name}")

    def progress(self, message: str) -> None:
        """Log a stage transition"""
        self.logger.info(f"{self.operation_name}: {message}")

    def complete(self, message: Optional[str] = None) -> None:
        """Mark operation as complete"""
        suffix = ""
        if self.start_time is not None:
            suffix = f" in {time.monotonic() - self.start_time:.2f}s"
        self.logger.info(f"{message or f'{self.operation_name} completed'}{suffix}")

    def error(self, message: str, exception: Optional[BaseException] = None) -> None:
        """Log operation failure, with traceback when an exception is given"""
        if exception:
            self.logger.error(f"Operation failed: {self.operation_name} - {message}", exc_info=exception)
        else:
            self.logger.error(f"Operation failed: {self.operation_name} - {message}")

    def warning(self, message: str) -> None:
        """Log a recoverable problem"""
        self.logger.warning(f"{self.operation_name}: {message}")


def create_operation_logger(name: str, operation: str) -> OperationLogger:
    """
    Create operation logger for tracking one job

    Args:
        name: Logger name
        operation: Operation description

    Returns:
        OperationLogger instance
    """
    return OperationLogger(get_logger(name), operation)
