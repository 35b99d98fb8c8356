"""Audit trail and value events.

Both kinds land in ``full_audit_events``. Writes are fire-and-forget: a
failure is logged and never aborts the caller's transaction.
"""
import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.database.orm import AuditEvent
from app.models.enums import ValueEvent
from app.services.repository import DiagnosticRepository

logger = logging.getLogger(__name__)

KIND_AUDIT = "audit"
KIND_VALUE = "value"


class AuditService:
    """Append audit and value events through the repository's session."""

    def __init__(self, repo: DiagnosticRepository):
        self.repo = repo

    def _write(
        self,
        kind: str,
        event: str,
        assessment_id: Optional[str],
        company_id: Optional[str],
        payload: dict[str, Any],
    ) -> None:
        try:
            self.repo.add_audit_event(AuditEvent(
                event=event,
                kind=kind,
                assessment_id=assessment_id,
                company_id=company_id,
                payload=payload,
            ))
        except SQLAlchemyError as e:
            logger.warning(f"Audit write failed for {kind}:{event}: {e}")

    def log_event(
        self,
        event: str,
        assessment_id: Optional[str] = None,
        company_id: Optional[str] = None,
        **payload: Any,
    ) -> None:
        logger.info(f"audit {event} assessment={assessment_id} {payload}")
        self._write(KIND_AUDIT, event, assessment_id, company_id, payload)

    def emit_value_event(
        self,
        event: ValueEvent,
        assessment_id: str,
        company_id: Optional[str] = None,
        **payload: Any,
    ) -> None:
        logger.info(f"value_event {event.value} assessment={assessment_id}")
        self._write(KIND_VALUE, event.value, assessment_id, company_id, payload)
