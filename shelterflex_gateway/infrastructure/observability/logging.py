"""Structured JSON logging for production observability"""

import logging
import sys
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from shelterflex_gateway.config import settings
from shelterflex_gateway.utils.date_utils import utc_now

# Keys whose values never reach the log output
REDACTED_KEYS = ("secret", "password", "authorization", "api_key", "access_token", "private_key")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp, service metadata and secret redaction"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = utc_now().isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name

        for key in list(log_record):
            if any(marker in key.lower() for marker in REDACTED_KEYS):
                log_record[key] = "[REDACTED]"


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_outbox_attempt(
    outbox_id: str,
    tx_id: str,
    tx_type: str,
    sent: bool,
    attempts: int,
    error: Optional[str] = None,
) -> None:
    """Log structured outcome of one ledger write attempt"""
    fields = {
        "outbox_id": outbox_id,
        "tx_id": tx_id,
        "tx_type": tx_type,
        "step": "outbox_send",
        "outcome": "sent" if sent else "failed",
        "attempts": attempts,
    }
    if sent:
        logging.info("Outbox item sent to ledger", extra=fields)
    else:
        logging.warning("Outbox item send failed", extra={**fields, "error": error})


def log_request(request_id: str, method: str, path: str, status_code: int, duration_ms: float) -> None:
    """Log one completed HTTP request"""
    logging.info(
        "Request completed",
        extra={
            "request_id": request_id,
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
        },
    )
