"""Derived result ORM models: process scores and findings."""
from sqlalchemy import String, Integer, Float, Boolean, DateTime, ForeignKey, UniqueConstraint, JSON
from sqlalchemy.orm import Mapped, mapped_column
from typing import Optional
from datetime import datetime
import uuid

from app.database.base import Base
from app.database.orm.assessment import utcnow


class ProcessScore(Base):
    """Per-process score and band; replaced wholesale on each submit."""
    __tablename__ = "full_process_scores"
    __table_args__ = (
        UniqueConstraint("assessment_id", "process_key", name="uq_full_process_scores"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    assessment_id: Mapped[str] = mapped_column(ForeignKey("full_assessments.id"), index=True)
    process_key: Mapped[str] = mapped_column(String(20))
    score_numeric: Mapped[float] = mapped_column(Float)
    band: Mapped[str] = mapped_column(String(10))
    rule_used: Mapped[str] = mapped_column(String(40))
    dimension_scores: Mapped[dict] = mapped_column(JSON, default=dict)
    support: Mapped[dict] = mapped_column(JSON, default=dict)
    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )

    def __repr__(self):
        return f"<ProcessScore({self.process_key}, {self.score_numeric}, {self.band})>"


class Finding(Base):
    """Six-pack entry (VAZAMENTO / ALAVANCA at position 1–3)."""
    __tablename__ = "full_findings"
    __table_args__ = (
        UniqueConstraint(
            "assessment_id", "finding_type", "position",
            name="uq_full_findings_slot"
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    assessment_id: Mapped[str] = mapped_column(ForeignKey("full_assessments.id"), index=True)
    finding_type: Mapped[str] = mapped_column(String(20))
    position: Mapped[int] = mapped_column(Integer)
    process_key: Mapped[str] = mapped_column(String(20))
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    trace: Mapped[dict] = mapped_column(JSON, default=dict)
    is_fallback: Mapped[bool] = mapped_column(Boolean, default=False)
    gap_reason: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )

    def __repr__(self):
        return f"<Finding({self.finding_type}#{self.position}, {self.process_key})>"
