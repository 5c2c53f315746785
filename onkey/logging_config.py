"""Centralized logging configuration for onkey.

This module provides a consistent way to configure logging across the application.
Modules obtain their loggers with ``onkey.logger.get_logger(__name__)``; loggers
that are not listed below propagate to their closest configured parent.
"""

import logging
import sys
from typing import Optional

# Log levels for different modules
MODULE_LOG_LEVELS = {
    # Core modules
    "onkey": logging.INFO,
    "onkey.cli": logging.INFO,
    "onkey.core": logging.INFO,
    # Signal path; DEBUG here prints one line per analysed frame
    "onkey.audio": logging.INFO,
    "onkey.audio.pitch_detector": logging.INFO,
    # Tuning procedure and persistence
    "onkey.tuning": logging.INFO,
    "onkey.app": logging.INFO,
    "onkey.ui": logging.WARNING,  # UI modules often noisy, keep at WARNING
    # Libraries/third-party
    "aubio": logging.ERROR,
    "PIL": logging.ERROR,
    # Root logger
    "": logging.ERROR,
}

# Shared console handler
_console_handler: Optional[logging.Handler] = None


def setup_logging(level: Optional[str] = None) -> None:
    """Set up logging configuration for the application.

    Args:
        level: If provided, override all 'onkey' log levels with this level (e.g., "DEBUG").
    """
    global _console_handler

    # Create a single, shared console handler if it doesn't exist
    if _console_handler is None:
        _console_handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        _console_handler.setFormatter(formatter)

    # Determine log levels
    log_levels = MODULE_LOG_LEVELS.copy()
    if level:
        numeric_level = logging.getLevelName(level.upper())
        if isinstance(numeric_level, int):
            for module_name in log_levels:
                if module_name.startswith("onkey"):
                    log_levels[module_name] = numeric_level
        else:
            logging.getLogger(__name__).error(f"Invalid log level: {level}")

    # Apply module-specific levels
    for module_name, module_level in log_levels.items():
        logger = logging.getLogger(module_name if module_name else "")
        logger.setLevel(module_level)

        # Clear existing handlers and attach the shared one to top-level names only;
        # children propagate up to it
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        if module_name in ("onkey", ""):
            logger.addHandler(_console_handler)
            logger.propagate = False

    logging.getLogger("onkey").debug("Logging configuration complete")
