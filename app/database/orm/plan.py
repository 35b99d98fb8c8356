"""Plan lifecycle ORM models."""
from sqlalchemy import String, Integer, Date, DateTime, Text, ForeignKey, UniqueConstraint, JSON
from sqlalchemy.orm import Mapped, mapped_column
from typing import Optional
from datetime import datetime, date
import uuid

from app.database.base import Base
from app.database.orm.assessment import utcnow


class SelectedAction(Base):
    """Action chosen for the current cycle's plan."""
    __tablename__ = "full_selected_actions"
    __table_args__ = (
        UniqueConstraint("assessment_id", "action_key", name="uq_full_selected_actions_key"),
        UniqueConstraint("assessment_id", "position", name="uq_full_selected_actions_position"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    assessment_id: Mapped[str] = mapped_column(ForeignKey("full_assessments.id"), index=True)
    action_key: Mapped[str] = mapped_column(String(100))
    position: Mapped[int] = mapped_column(Integer)
    owner_name: Mapped[str] = mapped_column(String(255))
    metric_text: Mapped[str] = mapped_column(String(500))
    checkpoint_date: Mapped[date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), default="NOT_STARTED")
    dropped_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow
    )

    def __repr__(self):
        return f"<SelectedAction(#{self.position} {self.action_key}, {self.status})>"


class DoDConfirmation(Base):
    """Definition-of-done checklist confirmation, one per action."""
    __tablename__ = "full_action_dod_confirmations"
    __table_args__ = (
        UniqueConstraint("assessment_id", "action_key", name="uq_full_action_dod"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    assessment_id: Mapped[str] = mapped_column(ForeignKey("full_assessments.id"), index=True)
    action_key: Mapped[str] = mapped_column(String(100))
    confirmed_items: Mapped[list] = mapped_column(JSON, default=list)
    confirmed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow
    )


class ActionEvidence(Base):
    """Before/after evidence; write-once per action."""
    __tablename__ = "full_action_evidence"
    __table_args__ = (
        UniqueConstraint("assessment_id", "action_key", name="uq_full_action_evidence"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    assessment_id: Mapped[str] = mapped_column(ForeignKey("full_assessments.id"), index=True)
    action_key: Mapped[str] = mapped_column(String(100))
    evidence_text: Mapped[str] = mapped_column(Text)
    before_baseline: Mapped[str] = mapped_column(Text)
    after_result: Mapped[str] = mapped_column(Text)
    declared_gain: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )

    def __repr__(self):
        return f"<ActionEvidence({self.action_key})>"


class CycleHistory(Base):
    """Archived plan row of a closed cycle (append-only)."""
    __tablename__ = "full_cycle_history"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    assessment_id: Mapped[str] = mapped_column(ForeignKey("full_assessments.id"), index=True)
    cycle_no: Mapped[int] = mapped_column(Integer)
    action_key: Mapped[str] = mapped_column(String(100))
    position: Mapped[int] = mapped_column(Integer)
    owner_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    metric_text: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(20))
    dropped_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    declared_gain: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    evidence: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    archived_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )

    def __repr__(self):
        return f"<CycleHistory(cycle={self.cycle_no}, {self.action_key}, {self.status})>"
