"""
Logging service

Structured logging on top of loguru
"""
import sys
from pathlib import Path
from typing import Any

from loguru import logger


class LoggerService:
    """
    Logging service

    Usage:
        from protpipe.core.logger import get_logger

        logger = get_logger(__name__)
        logger.info("stage started")
        logger.error("stage failed: {}", err)
    """

    _configured: bool = False

    @classmethod
    def configure(
        cls,
        level: str = "INFO",
        log_dir: str = "./logs",
        log_format: str | None = None,
        file_enabled: bool = False,
        rotation: str = "10 MB",
        retention: str = "7 days",
    ) -> None:
        """
        Configure the logger

        Args:
            level: log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: directory for log files
            log_format: log format (None uses the default)
            file_enabled: write log files in addition to stderr
            rotation: log file rotation size
            retention: how long rotated log files are kept
        """
        if cls._configured:
            return

        logger.remove()

        if log_format is None:
            log_format = (
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<level>{message}</level>"
            )

        # console
        logger.add(
            sys.stderr,
            format=log_format,
            level=level,
            colorize=True,
        )

        if file_enabled:
            log_path = Path(log_dir)
            log_path.mkdir(parents=True, exist_ok=True)

            logger.add(
                log_path / "protpipe.log",
                format=log_format,
                level=level,
                rotation=rotation,
                retention=retention,
                compression="zip",
                encoding="utf-8",
            )

            # errors only
            logger.add(
                log_path / "error.log",
                format=log_format,
                level="ERROR",
                rotation=rotation,
                retention=retention,
                compression="zip",
                encoding="utf-8",
            )

        cls._configured = True

    @classmethod
    def reset(cls) -> None:
        """Reset configuration (for tests)"""
        logger.remove()
        cls._configured = False


def get_logger(name: str) -> Any:
    """
    Return a logger bound to a module or class name

    Args:
        name: module name (usually __name__)

    Returns:
        loguru logger instance
    """
    return logger.bind(name=name)


def setup_logger_from_config() -> None:
    """
    Initialize the logger from the settings file

    Raises:
        ConfigError: settings cannot be loaded (the caller reports it)
    """
    from protpipe.core.config import get_config

    config = get_config()
    logging_config = config.get_section("logging")
    file_config = logging_config.get("file") or {}

    LoggerService.configure(
        level=logging_config.get("level", "INFO"),
        log_dir=logging_config.get("log_dir", "./logs"),
        log_format=logging_config.get("format"),
        file_enabled=file_config.get("enabled", False),
        rotation=file_config.get("rotation", "10 MB"),
        retention=file_config.get("retention", "7 days"),
    )
