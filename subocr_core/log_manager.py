# subocr_core/log_manager.py
"""
Log management.

Library modules only create loggers; the command line entry point
attaches handlers here.
"""

import logging
import sys
from pathlib import Path

ROOT_LOGGER = "subocr_core"


class LogManager:
    """Manages logging setup and cleanup for a conversion run."""

    @staticmethod
    def setup_logging(
        level: str = "INFO", log_file: Path | None = None
    ) -> tuple[logging.Logger, list[logging.Handler]]:
        """
        Sets up logging for the package.

        Args:
            level: Log level name for console and file output
            log_file: Optional path of a log file written alongside the console

        Returns:
            Tuple of (logger, handlers) - handlers are needed for cleanup
        """
        logger = logging.getLogger(ROOT_LOGGER)
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))

        # Remove any existing handlers
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

        handlers: list[logging.Handler] = []

        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        handlers.append(console)

        if log_file is not None:
            file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
            file_handler.setFormatter(
                logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s", "%H:%M:%S")
            )
            handlers.append(file_handler)

        for handler in handlers:
            logger.addHandler(handler)
        logger.propagate = False

        return logger, handlers

    @staticmethod
    def cleanup_logging(logger: logging.Logger, handlers: list[logging.Handler]):
        """
        Cleans up logger and handler resources.

        Args:
            logger: Logger instance to clean up
            handlers: Handlers returned by setup_logging
        """
        for handler in handlers:
            handler.close()
            logger.removeHandler(handler)
        logger.propagate = True
