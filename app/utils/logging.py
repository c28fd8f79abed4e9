"""
Structured logging for the matching system.
"""

import logging
import json
from datetime import datetime
from typing import Optional
from app.config import get_config


config = get_config()


class StructuredFormatter(logging.Formatter):
    """Formats log records as structured JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "extra"):
            log_obj.update(record.extra)

        return json.dumps(log_obj, default=str)


def setup_logging(name: str = __name__) -> logging.Logger:
    """Setup and return a configured logger."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, config.LOG_LEVEL))

    # Avoid duplicate handlers on re-import
    if logger.handlers:
        return logger

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, config.LOG_LEVEL))
    console_formatter = logging.Formatter(config.LOG_FORMAT)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    # File handler with structured JSON
    file_handler = logging.FileHandler(config.LOG_FILE)
    file_handler.setLevel(getattr(logging, config.LOG_LEVEL))
    file_handler.setFormatter(StructuredFormatter())
    logger.addHandler(file_handler)

    return logger


def log_agent_action(
    logger: logging.Logger,
    agent_name: str,
    action: str,
    details: Optional[dict] = None,
    confidence: Optional[float] = None,
) -> None:
    """Log an agent action with context."""
    extra = {
        "agent": agent_name,
        "action": action,
    }
    if confidence is not None:
        extra["confidence"] = confidence
    if details:
        extra.update(details)

    logger.info(
        f"[{agent_name}] {action}",
        extra={"extra": extra}
    )


def log_exception_raised(
    logger: logging.Logger,
    po_number: str,
    scenario: str,
    exception_type: str,
    severity: str,
    description: str,
    confidence: float,
) -> None:
    """Log a synthesized invoice exception."""
    extra = {
        "type": "invoice_exception",
        "po_number": po_number,
        "scenario": scenario,
        "exception_type": exception_type,
        "severity": severity,
        "description": description,
        "confidence": confidence,
    }
    logger.warning(
        f"Exception raised for {po_number}: {exception_type} ({severity})",
        extra={"extra": extra}
    )


def log_unit_skipped(
    logger: logging.Logger,
    po_number: str,
    scenario: str,
    error_type: str,
    error: str,
) -> None:
    """Log a (purchase order, scenario) unit the batch could not build."""
    extra = {
        "type": "unit_skipped",
        "po_number": po_number,
        "scenario": scenario,
        "error_type": error_type,
        "error": error,
    }
    logger.error(
        f"Skipping {po_number} ({scenario}): {error_type}: {error}",
        extra={"extra": extra}
    )
