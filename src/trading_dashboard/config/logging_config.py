"""
Structured logging configuration for the trading dashboard.

This module sets up consistent logging across all components with proper
formatting, levels, and structured data support for following a job from
submission to its terminal state.
"""

import json
import logging
import logging.config
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "trading_dashboard"


def setup_logging(
    level: str = "INFO",
    log_to_file: bool = False,
    log_file_path: str = "logs/trading_dashboard.log",
    enable_structured_logging: bool = False
) -> None:
    """
    Configure logging for the trading dashboard.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_to_file: Whether to write logs to file
        log_file_path: Path to log file
        enable_structured_logging: Whether to also write structured JSON logs
    """

    # Create logs directory if it doesn't exist
    if log_to_file:
        log_path = Path(log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

    config = get_logging_config(level, log_to_file, log_file_path, enable_structured_logging)
    logging.config.dictConfig(config)

    # Transport libraries are chatty at DEBUG
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logging_config(
    level: str,
    log_to_file: bool,
    log_file_path: str,
    enable_structured_logging: bool
) -> Dict[str, Any]:
    """Get logging configuration dictionary."""

    formatters = {
        "standard": {
            "format": "%(asctime)s [%(levelname)8s] %(name)s: %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S"
        },
        "detailed": {
            "format": "%(asctime)s [%(levelname)8s] %(name)s:%(lineno)d - %(funcName)s(): %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S"
        }
    }

    if enable_structured_logging:
        formatters["structured"] = {
            "()": StructuredFormatter,
            "datefmt": "%Y-%m-%d %H:%M:%S"
        }

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "standard",
            "stream": sys.stdout
        }
    }

    if log_to_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "DEBUG",
            "formatter": "detailed",
            "filename": log_file_path,
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5
        }

        if enable_structured_logging:
            handlers["structured_file"] = {
                "class": "logging.handlers.RotatingFileHandler",
                "level": "DEBUG",
                "formatter": "structured",
                "filename": log_file_path.replace('.log', '_structured.log'),
                "maxBytes": 10485760,  # 10MB
                "backupCount": 5
            }

    root_handlers = ["console"]
    if log_to_file:
        root_handlers.extend(["file", "structured_file"] if enable_structured_logging else ["file"])

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "handlers": handlers,
        "root": {
            "level": "WARNING",
            "handlers": ["console"]
        },
        "loggers": {
            ROOT_LOGGER_NAME: {
                "level": level,
                "handlers": root_handlers,
                "propagate": False
            }
        }
    }


class StructuredFormatter(logging.Formatter):
    """
    Custom formatter that outputs structured JSON logs.

    Every job event carries slot and job_id in ``extra`` so a run can be
    followed across polls by filtering the structured log.
    """

    RESERVED_ATTRS = frozenset([
        'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
        'filename', 'module', 'lineno', 'funcName', 'created', 'msecs',
        'relativeCreated', 'thread', 'threadName', 'processName', 'process',
        'getMessage', 'exc_info', 'exc_text', 'stack_info', 'taskName',
    ])

    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage()
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        for key, value in record.__dict__.items():
            if key not in self.RESERVED_ATTRS:
                log_entry.setdefault("extra", {})[key] = value

        return json.dumps(log_entry, default=str)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger under the trading_dashboard namespace
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


# Convenience functions for common logging patterns

def log_job_event(logger: logging.Logger, event: str, slot: str,
                  job_id: Optional[str], **kwargs):
    """Log a job lifecycle transition (submitted, completed, cancelled...)."""
    logger.info(
        f"Job {event}: slot={slot} job_id={job_id}",
        extra={
            "operation": "job_event",
            "event": event,
            "slot": slot,
            "job_id": job_id,
            **kwargs
        }
    )


def log_poll_result(logger: logging.Logger, slot: str, job_id: Optional[str],
                    status: str, progress: int, **kwargs):
    """Log a single applied status poll."""
    logger.debug(
        f"Poll {slot}/{job_id}: {status} {progress}%",
        extra={
            "operation": "poll",
            "slot": slot,
            "job_id": job_id,
            "status": status,
            "progress": progress,
            **kwargs
        }
    )
