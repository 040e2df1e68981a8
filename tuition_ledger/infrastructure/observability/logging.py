"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from tuition_ledger.config import settings
from tuition_ledger.domain.models import BatchResult

logger = logging.getLogger("tuition_ledger")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)


def log_batch_result(
    request_id: str,
    result: BatchResult,
    duration_ms: float,
) -> None:
    """Log structured bulk-operation outcome ("N records updated, M errors")"""
    logger.info(
        result.summary(),
        extra={
            "request_id": request_id,
            "step": result.operation,
            "session_id": result.session_id,
            "term_id": result.term_id,
            "written": result.written,
            "error_count": result.error_count,
            "duration_ms": duration_ms,
        },
    )


def log_student_skipped(operation: str, student_id: str, reason: str) -> None:
    logger.warning(
        "Student skipped",
        extra={"step": operation, "student_id": student_id, "reason": reason},
    )
