"""Root-cause ORM models: gap instances, Likert answers, classifications."""
from sqlalchemy import String, Integer, DateTime, ForeignKey, UniqueConstraint, JSON
from sqlalchemy.orm import Mapped, mapped_column
from typing import Optional
from datetime import datetime
import uuid

from app.database.base import Base
from app.database.orm.assessment import utcnow


class GapInstance(Base):
    """A LOW-band process mapped to a known gap at the latest submit."""
    __tablename__ = "full_gap_instances"
    __table_args__ = (
        UniqueConstraint("assessment_id", "gap_id", name="uq_full_gap_instances"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    assessment_id: Mapped[str] = mapped_column(ForeignKey("full_assessments.id"), index=True)
    gap_id: Mapped[str] = mapped_column(String(50))
    process_key: Mapped[str] = mapped_column(String(20))
    status: Mapped[str] = mapped_column(String(20), default="CAUSE_PENDING")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow
    )

    def __repr__(self):
        return f"<GapInstance({self.gap_id}, {self.status})>"


class CauseAnswer(Base):
    """Likert-5 answer to a gap's cause question."""
    __tablename__ = "full_cause_answers"
    __table_args__ = (
        UniqueConstraint("assessment_id", "gap_id", "q_id", name="uq_full_cause_answers"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    assessment_id: Mapped[str] = mapped_column(ForeignKey("full_assessments.id"), index=True)
    gap_id: Mapped[str] = mapped_column(String(50))
    q_id: Mapped[str] = mapped_column(String(50))
    answer: Mapped[str] = mapped_column(String(30))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow
    )


class GapCause(Base):
    """Cause classification of a gap; overwritten on re-evaluation."""
    __tablename__ = "full_gap_causes"
    __table_args__ = (
        UniqueConstraint("assessment_id", "gap_id", name="uq_full_gap_causes"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    assessment_id: Mapped[str] = mapped_column(ForeignKey("full_assessments.id"), index=True)
    gap_id: Mapped[str] = mapped_column(String(50))
    cause_primary: Mapped[str] = mapped_column(String(50), default="UNKNOWN")
    cause_secondary: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    evidence: Mapped[list] = mapped_column(JSON, default=list)
    score: Mapped[dict] = mapped_column(JSON, default=dict)
    version: Mapped[str] = mapped_column(String(40))
    classified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow
    )

    def __repr__(self):
        return f"<GapCause({self.gap_id}, primary={self.cause_primary})>"
