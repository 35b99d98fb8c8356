"""SQLAlchemy ORM models for the Full Diagnostic API."""
from app.database.base import Base
from app.database.orm.assessment import Assessment, Answer
from app.database.orm.results import ProcessScore, Finding
from app.database.orm.gap import GapInstance, CauseAnswer, GapCause
from app.database.orm.plan import SelectedAction, DoDConfirmation, ActionEvidence, CycleHistory
from app.database.orm.snapshot import DiagnosticSnapshot, AuditEvent

__all__ = [
    "Base",
    "Assessment",
    "Answer",
    "ProcessScore",
    "Finding",
    "GapInstance",
    "CauseAnswer",
    "GapCause",
    "SelectedAction",
    "DoDConfirmation",
    "ActionEvidence",
    "CycleHistory",
    "DiagnosticSnapshot",
    "AuditEvent",
]
