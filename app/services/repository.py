"""Diagnostic repository: the storage boundary for the full diagnostic.

Every "exactly one per key" rule is backed by a unique constraint; writes that
must not overwrite go through ``insert_unique``, which reports a conflict as a
value instead of raising.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Generic, Iterable, Optional, Sequence, TypeVar

from fastapi import Depends
from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database.connection import get_db
from app.database.orm import (
    ActionEvidence,
    Answer,
    Assessment,
    AuditEvent,
    CauseAnswer,
    CycleHistory,
    DiagnosticSnapshot,
    DoDConfirmation,
    Finding,
    GapCause,
    GapInstance,
    ProcessScore,
    SelectedAction,
)
from app.errors import assessment_not_found
from app.models.enums import AssessmentStatus, GapStatus

logger = logging.getLogger(__name__)
T = TypeVar("T")


@dataclass
class InsertResult(Generic[T]):
    """Outcome of a write-once insert.

    ``conflict`` is True when a row already existed for the unique key, whether
    found by the pre-check or by the database rejecting a racing insert.
    ``row`` is then the stored (first-writer) row.
    """

    row: Optional[T]
    conflict: bool = False


@dataclass
class PlanRowInput:
    action_key: str
    position: int
    owner_name: str
    metric_text: str
    checkpoint_date: date


class DiagnosticRepository:
    """Read/upsert/delete operations over the diagnostic tables."""

    def __init__(self, session: Session):
        self.session = session

    def commit(self) -> None:
        self.session.commit()

    async def health_check(self) -> tuple[bool, Optional[str]]:
        """Check if the database connection is healthy."""
        try:
            self.session.execute(text("SELECT 1"))
            return True, None
        except Exception as e:
            return False, str(e)

    def insert_unique(self, row: T) -> InsertResult[T]:
        """Insert ``row`` inside a SAVEPOINT; a unique violation is a conflict."""
        try:
            with self.session.begin_nested():
                self.session.add(row)
                self.session.flush()
        except IntegrityError as e:
            logger.info(f"Unique conflict on {type(row).__name__}: {e.orig}")
            return InsertResult(row=None, conflict=True)
        return InsertResult(row=row)

    # ================================================================
    # Assessments
    # ================================================================

    def get_assessment(self, assessment_id: str) -> Optional[Assessment]:
        return self.session.get(Assessment, assessment_id)

    def require_assessment(self, assessment_id: str) -> Assessment:
        assessment = self.get_assessment(assessment_id)
        if assessment is None:
            raise assessment_not_found(assessment_id)
        return assessment

    def find_current_assessment(self, company_id: str) -> Optional[Assessment]:
        """Active (DRAFT/SUBMITTED) assessment, else the latest CLOSED one."""
        active = self.session.scalars(
            select(Assessment)
            .where(
                Assessment.company_id == company_id,
                Assessment.status.in_(
                    [AssessmentStatus.DRAFT.value, AssessmentStatus.SUBMITTED.value]
                ),
            )
            .order_by(Assessment.created_at.desc())
        ).first()
        if active is not None:
            return active
        return self.session.scalars(
            select(Assessment)
            .where(
                Assessment.company_id == company_id,
                Assessment.status == AssessmentStatus.CLOSED.value,
            )
            .order_by(Assessment.closed_at.desc(), Assessment.created_at.desc())
        ).first()

    def create_assessment(self, company_id: str, segment: str) -> Assessment:
        assessment = Assessment(
            company_id=company_id,
            segment=segment,
            status=AssessmentStatus.DRAFT.value,
            cycle_no=1,
        )
        self.session.add(assessment)
        self.session.flush()
        logger.info(f"Created assessment {assessment.id} for company {company_id}")
        return assessment

    def next_full_version(self, company_id: str) -> int:
        """Next company-wide report version (max over assessments and snapshots + 1)."""
        from_assessments = self.session.scalar(
            select(func.max(Assessment.full_version)).where(Assessment.company_id == company_id)
        )
        from_snapshots = self.session.scalar(
            select(func.max(DiagnosticSnapshot.full_version))
            .where(DiagnosticSnapshot.company_id == company_id)
        )
        return max(from_assessments or 0, from_snapshots or 0) + 1

    # ================================================================
    # Answers
    # ================================================================

    def list_answers(self, assessment_id: str) -> list[Answer]:
        return list(self.session.scalars(
            select(Answer)
            .where(Answer.assessment_id == assessment_id)
            .order_by(Answer.process_key, Answer.question_key)
        ))

    def upsert_answers(
        self, assessment_id: str, process_key: str, items: Sequence[tuple[str, int]]
    ) -> int:
        """Insert or overwrite answers keyed by (process_key, question_key)."""
        existing = {
            a.question_key: a
            for a in self.session.scalars(
                select(Answer).where(
                    Answer.assessment_id == assessment_id,
                    Answer.process_key == process_key,
                )
            )
        }
        for question_key, value in items:
            row = existing.get(question_key)
            if row is None:
                self.session.add(Answer(
                    assessment_id=assessment_id,
                    process_key=process_key,
                    question_key=question_key,
                    answer_value=value,
                ))
            else:
                row.answer_value = value
        self.session.flush()
        return len(items)

    # ================================================================
    # Scores and findings
    # ================================================================

    def replace_scores(self, assessment_id: str, rows: Iterable[ProcessScore]) -> None:
        self.session.execute(delete(ProcessScore).where(ProcessScore.assessment_id == assessment_id))
        self.session.add_all(rows)
        self.session.flush()

    def list_scores(self, assessment_id: str) -> list[ProcessScore]:
        return list(self.session.scalars(
            select(ProcessScore)
            .where(ProcessScore.assessment_id == assessment_id)
            .order_by(ProcessScore.process_key)
        ))

    def replace_findings(self, assessment_id: str, rows: Iterable[Finding]) -> None:
        self.session.execute(delete(Finding).where(Finding.assessment_id == assessment_id))
        self.session.add_all(rows)
        self.session.flush()

    def list_findings(self, assessment_id: str) -> list[Finding]:
        return list(self.session.scalars(
            select(Finding)
            .where(Finding.assessment_id == assessment_id)
            .order_by(Finding.finding_type.desc(), Finding.position)
        ))

    # ================================================================
    # Gaps and causes
    # ================================================================

    def list_gap_instances(self, assessment_id: str) -> list[GapInstance]:
        return list(self.session.scalars(
            select(GapInstance)
            .where(GapInstance.assessment_id == assessment_id)
            .order_by(GapInstance.gap_id)
        ))

    def get_gap_instance(self, assessment_id: str, gap_id: str) -> Optional[GapInstance]:
        return self.session.scalars(
            select(GapInstance).where(
                GapInstance.assessment_id == assessment_id,
                GapInstance.gap_id == gap_id,
            )
        ).first()

    def sync_gap_instances(self, assessment_id: str, gaps: dict[str, str]) -> list[GapInstance]:
        """Make gap instances match ``gaps`` (gap_id → process_key).

        New gaps start CAUSE_PENDING; gaps no longer LOW are removed together
        with their classification.
        """
        current = {g.gap_id: g for g in self.list_gap_instances(assessment_id)}
        stale = [gap_id for gap_id in current if gap_id not in gaps]
        if stale:
            self.session.execute(delete(GapCause).where(
                GapCause.assessment_id == assessment_id, GapCause.gap_id.in_(stale)
            ))
            self.session.execute(delete(GapInstance).where(
                GapInstance.assessment_id == assessment_id, GapInstance.gap_id.in_(stale)
            ))
        for gap_id, process_key in gaps.items():
            if gap_id not in current:
                self.session.add(GapInstance(
                    assessment_id=assessment_id,
                    gap_id=gap_id,
                    process_key=process_key,
                    status=GapStatus.CAUSE_PENDING.value,
                ))
        self.session.flush()
        return self.list_gap_instances(assessment_id)

    def get_cause_answers(self, assessment_id: str, gap_id: str) -> dict[str, str]:
        rows = self.session.scalars(
            select(CauseAnswer).where(
                CauseAnswer.assessment_id == assessment_id,
                CauseAnswer.gap_id == gap_id,
            )
        )
        return {r.q_id: r.answer for r in rows}

    def upsert_cause_answers(self, assessment_id: str, gap_id: str, answers: dict[str, str]) -> int:
        existing = {
            r.q_id: r
            for r in self.session.scalars(
                select(CauseAnswer).where(
                    CauseAnswer.assessment_id == assessment_id,
                    CauseAnswer.gap_id == gap_id,
                )
            )
        }
        for q_id, answer in answers.items():
            row = existing.get(q_id)
            if row is None:
                self.session.add(CauseAnswer(
                    assessment_id=assessment_id, gap_id=gap_id, q_id=q_id, answer=answer
                ))
            else:
                row.answer = answer
        self.session.flush()
        return len(answers)

    def get_gap_cause(self, assessment_id: str, gap_id: str) -> Optional[GapCause]:
        return self.session.scalars(
            select(GapCause).where(
                GapCause.assessment_id == assessment_id,
                GapCause.gap_id == gap_id,
            )
        ).first()

    def list_gap_causes(self, assessment_id: str) -> list[GapCause]:
        return list(self.session.scalars(
            select(GapCause)
            .where(GapCause.assessment_id == assessment_id)
            .order_by(GapCause.gap_id)
        ))

    def upsert_gap_cause(
        self,
        assessment_id: str,
        gap_id: str,
        cause_primary: str,
        cause_secondary: Optional[str],
        evidence: list[dict],
        score: dict[str, int],
        version: str,
    ) -> GapCause:
        row = self.get_gap_cause(assessment_id, gap_id)
        if row is None:
            row = GapCause(assessment_id=assessment_id, gap_id=gap_id)
            self.session.add(row)
        row.cause_primary = cause_primary
        row.cause_secondary = cause_secondary
        row.evidence = evidence
        row.score = score
        row.version = version
        self.session.flush()
        return row

    # ================================================================
    # Plan
    # ================================================================

    def list_plan(self, assessment_id: str) -> list[SelectedAction]:
        return list(self.session.scalars(
            select(SelectedAction)
            .where(SelectedAction.assessment_id == assessment_id)
            .order_by(SelectedAction.position)
        ))

    def get_plan_action(self, assessment_id: str, action_key: str) -> Optional[SelectedAction]:
        return self.session.scalars(
            select(SelectedAction).where(
                SelectedAction.assessment_id == assessment_id,
                SelectedAction.action_key == action_key,
            )
        ).first()

    def replace_plan(self, assessment_id: str, items: Sequence[PlanRowInput]) -> list[SelectedAction]:
        """Delete-then-insert the whole plan; every action starts NOT_STARTED."""
        self.session.execute(
            delete(SelectedAction).where(SelectedAction.assessment_id == assessment_id)
        )
        self.session.add_all([
            SelectedAction(
                assessment_id=assessment_id,
                action_key=i.action_key,
                position=i.position,
                owner_name=i.owner_name,
                metric_text=i.metric_text,
                checkpoint_date=i.checkpoint_date,
                status="NOT_STARTED",
            )
            for i in items
        ])
        self.session.flush()
        return self.list_plan(assessment_id)

    def clear_cycle(self, assessment_id: str) -> None:
        """Remove the current plan with its DoD confirmations and evidence."""
        for model in (SelectedAction, DoDConfirmation, ActionEvidence):
            self.session.execute(delete(model).where(model.assessment_id == assessment_id))
        self.session.flush()

    def get_dod(self, assessment_id: str, action_key: str) -> Optional[DoDConfirmation]:
        return self.session.scalars(
            select(DoDConfirmation).where(
                DoDConfirmation.assessment_id == assessment_id,
                DoDConfirmation.action_key == action_key,
            )
        ).first()

    def upsert_dod(self, assessment_id: str, action_key: str, items: list[str]) -> DoDConfirmation:
        row = self.get_dod(assessment_id, action_key)
        if row is None:
            row = DoDConfirmation(assessment_id=assessment_id, action_key=action_key)
            self.session.add(row)
        row.confirmed_items = list(items)
        self.session.flush()
        return row

    def list_dod_keys(self, assessment_id: str) -> set[str]:
        return set(self.session.scalars(
            select(DoDConfirmation.action_key).where(DoDConfirmation.assessment_id == assessment_id)
        ))

    def get_evidence(self, assessment_id: str, action_key: str) -> Optional[ActionEvidence]:
        return self.session.scalars(
            select(ActionEvidence).where(
                ActionEvidence.assessment_id == assessment_id,
                ActionEvidence.action_key == action_key,
            )
        ).first()

    def list_evidence(self, assessment_id: str) -> list[ActionEvidence]:
        return list(self.session.scalars(
            select(ActionEvidence)
            .where(ActionEvidence.assessment_id == assessment_id)
            .order_by(ActionEvidence.action_key)
        ))

    def insert_evidence(
        self,
        assessment_id: str,
        action_key: str,
        evidence_text: str,
        before_baseline: str,
        after_result: str,
        declared_gain: str,
    ) -> InsertResult[ActionEvidence]:
        """Write-once evidence insert; the first writer's row always wins."""
        existing = self.get_evidence(assessment_id, action_key)
        if existing is not None:
            return InsertResult(row=existing, conflict=True)
        result = self.insert_unique(ActionEvidence(
            assessment_id=assessment_id,
            action_key=action_key,
            evidence_text=evidence_text,
            before_baseline=before_baseline,
            after_result=after_result,
            declared_gain=declared_gain,
        ))
        if result.conflict:
            return InsertResult(row=self.get_evidence(assessment_id, action_key), conflict=True)
        return result

    # ================================================================
    # Cycle history
    # ================================================================

    def list_history(self, assessment_id: str) -> list[CycleHistory]:
        return list(self.session.scalars(
            select(CycleHistory)
            .where(CycleHistory.assessment_id == assessment_id)
            .order_by(CycleHistory.cycle_no, CycleHistory.position)
        ))

    def history_action_keys(self, assessment_id: str) -> set[str]:
        return set(self.session.scalars(
            select(CycleHistory.action_key).where(CycleHistory.assessment_id == assessment_id)
        ))

    def append_history(self, rows: Iterable[CycleHistory]) -> None:
        self.session.add_all(rows)
        self.session.flush()

    # ================================================================
    # Snapshots
    # ================================================================

    def get_snapshot(self, assessment_id: str, full_version: int) -> Optional[DiagnosticSnapshot]:
        return self.session.scalars(
            select(DiagnosticSnapshot).where(
                DiagnosticSnapshot.assessment_id == assessment_id,
                DiagnosticSnapshot.full_version == full_version,
            )
        ).first()

    def get_company_snapshot(self, company_id: str, full_version: int) -> Optional[DiagnosticSnapshot]:
        return self.session.scalars(
            select(DiagnosticSnapshot).where(
                DiagnosticSnapshot.company_id == company_id,
                DiagnosticSnapshot.full_version == full_version,
            )
        ).first()

    def list_company_snapshots(self, company_id: str) -> list[DiagnosticSnapshot]:
        return list(self.session.scalars(
            select(DiagnosticSnapshot)
            .where(DiagnosticSnapshot.company_id == company_id)
            .order_by(DiagnosticSnapshot.full_version.desc())
        ))

    def save_snapshot(self, snapshot: DiagnosticSnapshot) -> DiagnosticSnapshot:
        if snapshot not in self.session:
            self.session.add(snapshot)
        self.session.flush()
        return snapshot

    # ================================================================
    # Audit
    # ================================================================

    def add_audit_event(self, event: AuditEvent) -> None:
        with self.session.begin_nested():
            self.session.add(event)
            self.session.flush()


def get_repository(db: Session = Depends(get_db)) -> DiagnosticRepository:
    """FastAPI dependency: repository bound to the request's session."""
    return DiagnosticRepository(db)
