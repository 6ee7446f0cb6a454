"""Logging configuration for gamelist runs."""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog


# Third-party loggers that are chatty at INFO while models load
NOISY_LOGGERS: tuple[str, ...] = (
    "diffusers",
    "transformers",
    "huggingface_hub",
    "urllib3",
    "PIL",
)


class LoggingService:
    """Service for configuring and managing run logging."""

    def __init__(
        self,
        log_level: str = "INFO",
        log_dir: Path | None = None,
    ) -> None:
        """Initialize the logging service.

        Args:
            log_level: The minimum log level to capture
            log_dir: Directory for log files (None for console only)
        """
        self.log_level = log_level.upper()
        self.log_dir = log_dir
        self.is_development = os.getenv("ENVIRONMENT", "development") == "development"

    @property
    def numeric_level(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)

    def configure(self) -> None:
        """Configure structlog on top of standard library logging."""
        self._configure_stdlib_logging()

        structlog.configure(
            processors=self._get_processors(),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def _configure_stdlib_logging(self) -> None:
        """Configure standard library logging handlers."""
        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.setLevel(self.numeric_level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.numeric_level)
        if self.is_development:
            console_formatter = logging.Formatter(
                fmt="%(asctime)s [%(levelname)8s] %(name)s: %(message)s",
                datefmt="%H:%M:%S"
            )
        else:
            console_formatter = logging.Formatter("%(message)s")
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

        if self.log_dir:
            self._setup_file_logging(root_logger)

        # Model libraries only get through with warnings unless debugging
        if self.numeric_level > logging.DEBUG:
            for name in NOISY_LOGGERS:
                logging.getLogger(name).setLevel(logging.WARNING)

    def _setup_file_logging(self, root_logger: logging.Logger) -> None:
        """Set up rotating run and error logs."""
        if not self.log_dir:
            return

        self.log_dir.mkdir(parents=True, exist_ok=True)
        file_formatter = logging.Formatter("%(message)s")

        run_handler = logging.handlers.RotatingFileHandler(
            filename=self.log_dir / "app.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8"
        )
        run_handler.setLevel(self.numeric_level)
        run_handler.setFormatter(file_formatter)
        root_logger.addHandler(run_handler)

        # Failed items and fatal errors only
        error_handler = logging.handlers.RotatingFileHandler(
            filename=self.log_dir / "error.log",
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
            encoding="utf-8"
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_formatter)
        root_logger.addHandler(error_handler)

    def _get_processors(self) -> list[Any]:
        """Get the structlog processors for the environment."""
        common_processors = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
        ]

        if self.is_development and not self.log_dir:
            return common_processors + [structlog.dev.ConsoleRenderer(colors=True)]
        # Files always get JSON, and so does production console output
        return common_processors + [structlog.processors.JSONRenderer()]

    def get_logger(self, name: str | None = None) -> structlog.stdlib.BoundLogger:
        """Get a configured logger instance."""
        return structlog.stdlib.get_logger(name)


def setup_logging(
    log_level: str = "INFO",
    log_dir: Path | None = None,
    environment: str | None = None,
) -> LoggingService:
    """Set up logging for a run.

    Args:
        log_level: Minimum log level to capture
        log_dir: Directory for log files (None for console only)
        environment: Environment name (development/production)

    Returns:
        Configured LoggingService instance
    """
    if environment:
        os.environ["ENVIRONMENT"] = environment

    service = LoggingService(log_level=log_level, log_dir=log_dir)
    service.configure()
    return service
