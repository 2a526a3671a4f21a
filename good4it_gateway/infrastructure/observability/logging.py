"""Structured JSON logging for production observability"""

import logging
import sys
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from good4it_gateway.config import settings
from good4it_gateway.utils.date_utils import utc_now


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = utc_now().isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    logger.addHandler(handler)


def log_transition(
    request_id: Optional[str],
    entity: str,
    entity_id: Any,
    action: str,
    actor_id: str,
    status: str,
    **fields: Any,
) -> None:
    """Log a committed lifecycle transition (request, transaction, task or dispute)"""
    logging.info(
        "Transition committed",
        extra={
            "request_id": request_id,
            "entity": entity,
            "entity_id": str(entity_id),
            "action": action,
            "actor_id": actor_id,
            "status": status,
            **fields,
        },
    )


def log_side_effect_failure(request_id: Optional[str], effect: str, error: Exception, **fields: Any) -> None:
    """Best-effort side effect (score, notification) failed after commit"""
    logging.error(
        "Side effect failed",
        extra={
            "request_id": request_id,
            "effect": effect,
            "error": str(error),
            "error_type": type(error).__name__,
            **fields,
        },
    )
