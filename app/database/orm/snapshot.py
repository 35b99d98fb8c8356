"""Diagnostic snapshot and audit event ORM models."""
from sqlalchemy import String, Integer, DateTime, ForeignKey, UniqueConstraint, JSON
from sqlalchemy.orm import Mapped, mapped_column
from typing import Optional
from datetime import datetime
import uuid

from app.database.base import Base
from app.database.orm.assessment import utcnow


class DiagnosticSnapshot(Base):
    """Point-in-time projection of a submitted/closed cycle; never deleted."""
    __tablename__ = "full_diagnostic_snapshots"
    __table_args__ = (
        UniqueConstraint("assessment_id", "full_version", name="uq_full_snapshots_version"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    assessment_id: Mapped[str] = mapped_column(ForeignKey("full_assessments.id"), index=True)
    company_id: Mapped[str] = mapped_column(String(36), index=True)
    full_version: Mapped[int] = mapped_column(Integer)
    cycle_no: Mapped[int] = mapped_column(Integer, default=1)
    segment: Mapped[str] = mapped_column(String(1))
    processes: Mapped[list] = mapped_column(JSON, default=list)
    raios_x: Mapped[dict] = mapped_column(JSON, default=dict)
    recommendations: Mapped[list] = mapped_column(JSON, default=list)
    plan: Mapped[list] = mapped_column(JSON, default=list)
    evidence_summary: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    def __repr__(self):
        return f"<DiagnosticSnapshot({self.assessment_id} v{self.full_version})>"


class AuditEvent(Base):
    """Audit trail and value events (append-only)."""
    __tablename__ = "full_audit_events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    event: Mapped[str] = mapped_column(String(60), index=True)
    kind: Mapped[str] = mapped_column(String(20), default="audit")  # audit | value
    assessment_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    company_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )

    def __repr__(self):
        return f"<AuditEvent({self.kind}:{self.event})>"
