"""Assessment and answer ORM models."""
from sqlalchemy import String, Integer, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, Optional
from datetime import datetime, timezone
import uuid

from app.database.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Assessment(Base):
    """Full diagnostic of one company; reopened in place for each new cycle."""
    __tablename__ = "full_assessments"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )

    # Fields
    company_id: Mapped[str] = mapped_column(String(36), index=True)
    segment: Mapped[str] = mapped_column(String(1), default="C")
    status: Mapped[str] = mapped_column(String(20), default="DRAFT")
    cycle_no: Mapped[int] = mapped_column(Integer, default=1)
    # Company-wide report version, assigned at submit and at each new cycle
    full_version: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    # Relationships
    answers: Mapped[List["Answer"]] = relationship(
        "Answer",
        back_populates="assessment",
        cascade="all, delete-orphan"
    )

    # Note: status values are validated by the transition table in
    # app.models.enums, not by a CHECK constraint

    def __repr__(self):
        return f"<Assessment(id={self.id}, company_id={self.company_id}, status={self.status})>"


class Answer(Base):
    """Raw 0–10 answer; mutable only while the assessment is DRAFT."""
    __tablename__ = "full_answers"
    __table_args__ = (
        UniqueConstraint(
            "assessment_id", "process_key", "question_key",
            name="uq_full_answers_question"
        ),
        Index("ix_full_answers_assessment", "assessment_id"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    assessment_id: Mapped[str] = mapped_column(ForeignKey("full_assessments.id"))
    process_key: Mapped[str] = mapped_column(String(20))
    question_key: Mapped[str] = mapped_column(String(50))
    answer_value: Mapped[int] = mapped_column(Integer)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow
    )

    assessment: Mapped["Assessment"] = relationship(
        "Assessment",
        back_populates="answers"
    )

    def __repr__(self):
        return f"<Answer({self.process_key}.{self.question_key}={self.answer_value})>"
