"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.utcnow().isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "creditchain-gateway"


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_scoring_run(
    request_id: str,
    user_id: str,
    state: str,
    credit_score: Optional[int],
    analyzed: int,
    skipped: int,
    anomalous: int,
    ledger_ref: Optional[str],
    duration_ms: float,
) -> None:
    """Log structured scoring outcome for analysis"""
    logging.info(
        "Scoring run completed",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "step": "scoring_complete",
            "terminal_state": state,
            "credit_score": credit_score,
            "anomalies_analyzed": analyzed,
            "anomalies_skipped": skipped,
            "anomalies_detected": anomalous,
            "anchored": ledger_ref is not None,
            "ledger_ref": ledger_ref,
            "duration_ms": duration_ms,
        },
    )
