"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger
from collector_gateway.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


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


def log_route_computed(
    request_id: str,
    collector_id: str,
    route_date: str,
    entries: int,
    outstanding_cents: int,
    duration_ms: float,
) -> None:
    """Log a computed worklist for field-operations analysis"""
    logging.info(
        "Route computed",
        extra={
            "request_id": request_id,
            "collector_id": collector_id,
            "route_date": route_date,
            "step": "route_computed",
            "entries": entries,
            "outstanding_cents": outstanding_cents,
            "duration_ms": duration_ms,
        },
    )


def log_payment_recorded(
    request_id: str,
    payment_id: str,
    collector_id: str,
    client_id: str,
    amount_cents: int,
    duplicate: bool,
) -> None:
    """Log a ledger append or an idempotent replay"""
    logging.info(
        "Payment replayed" if duplicate else "Payment recorded",
        extra={
            "request_id": request_id,
            "payment_id": payment_id,
            "collector_id": collector_id,
            "client_id": client_id,
            "step": "payment_duplicate" if duplicate else "payment_recorded",
            "amount_cents": amount_cents,
        },
    )


def log_access_denied(request_id: str, user_id: str, operation: str, reason: str) -> None:
    logging.warning(
        "Access denied",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "operation": operation,
            "step": "access_denied",
            "reason": reason,
        },
    )
