"""
Centralized logging setup and configuration.

Provides structured, colored logging for the control-plane certificate
bootstrap.
"""

import logging
import sys
from typing import Optional


DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(origin)s: %(message)s"

# Origin shown for records emitted on the main (startup) thread.
STARTUP_ORIGIN = "bootstrap"


class BootstrapFormatter(logging.Formatter):
    """
    Formatter that tags each record with the pipeline it came from.

    Startup work runs on the main thread and is tagged "bootstrap"; the
    rotation controller's run loop logs under its thread name
    ("rotation-controller").
    """

    def __init__(self, fmt: str = None):
        super().__init__(fmt or DEFAULT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        if record.threadName == "MainThread":
            record.origin = STARTUP_ORIGIN
        else:
            record.origin = record.threadName
        return super().format(record)


class ColoredFormatter(BootstrapFormatter):
    """
    Formatter that colors the level name (and warning/error messages).

    Colors are only applied when output is to a terminal.
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str = None, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)

        original_levelname = record.levelname
        original_msg = record.msg
        color = self.COLORS.get(original_levelname, "")

        record.levelname = f"{color}{original_levelname}{self.RESET}"
        if record.levelno >= logging.WARNING:
            record.msg = f"{color}{original_msg}{self.RESET}"

        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname
            record.msg = original_msg


class StructuredLogger(logging.Logger):
    """
    Logger with helpers for the bootstrap's startup report.
    """

    def section(self, title: str) -> None:
        """Log a section header."""
        self.info("")
        self.info("=" * 60)
        self.info(title)
        self.info("=" * 60)

    def subsection(self, title: str) -> None:
        """Log a subsection header."""
        self.info(f"--- {title} ---")

    def success(self, message: str) -> None:
        """Log a success message (INFO level, prefixed with [OK])."""
        self.info(f"[OK] {message}")

    def failure(self, message: str) -> None:
        """Log a failure message (ERROR level, prefixed with [FAIL])."""
        self.error(f"[FAIL] {message}")


# Global logger instance
_logger: Optional[StructuredLogger] = None


def setup_logger(
    name: str = "CertBootstrap",
    verbose: bool = False,
    use_colors: bool = True,
    log_file: Optional[str] = None,
) -> StructuredLogger:
    """
    Setup and configure the global logger.

    Args:
        name: Logger name
        verbose: Enable debug-level logging
        use_colors: Enable colored console output
        log_file: Optional file path for log output

    Returns:
        Configured StructuredLogger instance
    """
    global _logger

    logging.setLoggerClass(StructuredLogger)
    logger = logging.getLogger(name)
    logger.__class__ = StructuredLogger

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(use_colors=use_colors))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(BootstrapFormatter())
        logger.addHandler(file_handler)

    _logger = logger
    return logger


def get_logger() -> StructuredLogger:
    """
    Get the global logger instance, creating a default one on first use.

    Returns:
        The configured StructuredLogger instance
    """
    global _logger

    if _logger is None:
        _logger = setup_logger()

    return _logger
