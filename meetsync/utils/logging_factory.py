"""Centralized logging factory for consistent logger creation across the application.

The factory configures the root logger once (file + console handlers) and
hands out module loggers. Calling ``initialize`` is optional; the first
``get_logger`` call initializes with defaults.

Usage:
    LoggingFactory.initialize(log_dir=Path("logs"), level=logging.INFO)
    logger = LoggingFactory.get_logger(__name__)
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Loggers that get their own level when verbosity changes
COMPONENT_LOGGERS = ("meetsync", "meetsync.orchestration", "meetsync.providers")


class LoggingFactory:
    """Factory for creating and configuring loggers consistently.

    Class Attributes:
        _initialized: Flag to ensure single initialization
        _log_dir: Directory where ``meetsync.log`` is written
    """

    _initialized = False
    _log_dir = Path("logs")
    _handlers: List[logging.Handler] = []

    @classmethod
    def initialize(
        cls,
        log_dir: Optional[Path] = None,
        level: int = logging.INFO,
        format_string: Optional[str] = None,
        console: bool = True,
    ) -> None:
        """Initialize the logging system once for the entire application.

        Subsequent calls are ignored.

        Args:
            log_dir: Directory for log files. If None, uses "logs" in current directory.
            level: Default logging level for the root logger
            format_string: Custom format string for log messages
            console: Whether to attach a plain console handler. The CLI turns
                this off and installs its own Rich handler instead.
        """
        if cls._initialized:
            return

        if log_dir:
            cls._log_dir = Path(log_dir)
        cls._log_dir.mkdir(parents=True, exist_ok=True)

        handlers: List[logging.Handler] = [logging.FileHandler(cls._log_dir / "meetsync.log")]
        if console:
            handlers.append(logging.StreamHandler())

        formatter = logging.Formatter(format_string or DEFAULT_FORMAT)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        for handler in handlers:
            handler.setFormatter(formatter)
            root_logger.addHandler(handler)
        cls._handlers = handlers

        # Third-party HTTP clients are noisy at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger for the given module name, initializing with defaults if needed."""
        if not cls._initialized:
            cls.initialize()

        return logging.getLogger(name)

    @classmethod
    def set_level(cls, name: str, level: int) -> None:
        """Set the logging level for a specific logger."""
        logging.getLogger(name).setLevel(level)

    @classmethod
    def configure_verbose(cls, verbose: bool = False) -> None:
        """Switch the root and component loggers between DEBUG and INFO."""
        level = logging.DEBUG if verbose else logging.INFO

        logging.getLogger().setLevel(level)
        for name in COMPONENT_LOGGERS:
            logging.getLogger(name).setLevel(level)

    @classmethod
    def reset(cls) -> None:
        """Detach the installed handlers and forget the initialization state."""
        root_logger = logging.getLogger()
        for handler in cls._handlers:
            root_logger.removeHandler(handler)
            handler.close()
        cls._handlers = []
        cls._initialized = False


def get_logger(name: str) -> logging.Logger:
    """Convenience wrapper around ``LoggingFactory.get_logger``."""
    return LoggingFactory.get_logger(name)
