#!/usr/bin/env python3
"""
Structured Logging Module

Provides centralized logging for the OAuth flow with:
- Log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
- Console output and optional daily file rotation
- Structured JSON logging option
"""
import os
import sys
import json
import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from datetime import datetime
from typing import Any, Dict, Optional

# =============================================================================
# CONFIGURATION
# =============================================================================

LOG_DIR = Path(os.environ.get("LOG_DIR", Path.cwd() / "logs"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.environ.get("LOG_FORMAT", "simple")  # "structured" or "simple"
LOG_TO_FILE = os.environ.get("LOG_TO_FILE", "false").lower() == "true"
LOG_TO_CONSOLE = os.environ.get("LOG_TO_CONSOLE", "true").lower() == "true"
LOG_ROTATE_WHEN = os.environ.get("LOG_ROTATE_WHEN", "midnight")  # midnight, D, H
LOG_INTERVAL = int(os.environ.get("LOG_INTERVAL", "1"))  # days

ROOT_LOGGER_NAME = "oauthgate"

# Attributes every LogRecord carries; anything else came in through `extra=`
_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

# =============================================================================
# LOGGER SETUP
# =============================================================================

def setup_logger(name: str = ROOT_LOGGER_NAME, level: Optional[str] = None) -> logging.Logger:
    """
    Set up a logger with console output and optional file rotation.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    # Don't add handlers if already configured
    if logger.handlers:
        return logger

    log_level = getattr(logging, level or LOG_LEVEL, logging.INFO)
    logger.setLevel(log_level)

    if LOG_FORMAT == "structured":
        formatter = StructuredFormatter()
    else:
        formatter = SimpleFormatter()

    if LOG_TO_FILE:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=LOG_DIR / f"{name}.log",
            when=LOG_ROTATE_WHEN,
            interval=LOG_INTERVAL,
            backupCount=30,
            encoding='utf-8',
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if LOG_TO_CONSOLE:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(SimpleFormatter())
        logger.addHandler(console_handler)

    logger.propagate = False

    return logger


# =============================================================================
# FORMATTERS
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """JSON-structured log formatter for better parsing."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class SimpleFormatter(logging.Formatter):
    """Simple human-readable log formatter."""

    def __init__(self):
        super().__init__(
            fmt='[%(asctime)s] %(levelname)-8s %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger under the package root.

    The root logger is configured on first use; child loggers
    (``oauthgate.<name>``) propagate to it.
    """
    root = setup_logger(ROOT_LOGGER_NAME)
    if not name or name == ROOT_LOGGER_NAME:
        return root
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
