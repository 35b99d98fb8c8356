"""Root-cause questionnaire flow for LOW-band gaps.

Answers can be saved partially; classification only happens on a complete
set and then regenerates the findings so the six-pack carries the mechanism
copy instead of the "not defined yet" placeholder.
"""
import logging
from typing import Dict, List, Sequence

from app.catalog.models import CauseCatalog, FullCatalog
from app.database.orm import Assessment, GapCause, GapInstance
from app.errors import StatePreconditionFailed, cycle_closed, diag_not_ready
from app.models.enums import AssessmentStatus, GapStatus, ValueEvent
from app.pipelines.findings_refresh import FindingsRefresher
from app.pipelines.snapshot_service import SnapshotService
from app.scoring.cause_engine import CauseEngine, CauseResult, likert_options
from app.services.audit import AuditService
from app.services.repository import DiagnosticRepository

logger = logging.getLogger(__name__)


def answers_to_dict(items: Sequence) -> Dict[str, str]:
    """``[{q_id, answer}]`` → ``{q_id: answer}``; a later duplicate wins."""
    return {item.q_id: item.answer for item in items}


class CauseClassificationService:
    """Pending gaps, Likert answers and classifications of one assessment."""

    def __init__(
        self,
        repo: DiagnosticRepository,
        catalog: FullCatalog,
        cause_catalog: CauseCatalog,
        audit: AuditService,
    ) -> None:
        self.repo = repo
        self.engine = CauseEngine(cause_catalog)
        self.audit = audit
        self.findings = FindingsRefresher(repo, catalog, self.engine, audit)
        self.snapshots = SnapshotService(repo, catalog, cause_catalog)

    # ── Guards ───────────────────────────────────────────────────────────────

    def _require_submitted(self, assessment_id: str, allow_closed: bool = False) -> Assessment:
        assessment = self.repo.require_assessment(assessment_id)
        if assessment.status == AssessmentStatus.DRAFT.value:
            raise diag_not_ready()
        if assessment.status == AssessmentStatus.CLOSED.value and not allow_closed:
            raise cycle_closed()
        return assessment

    def _require_instance(self, assessment_id: str, gap_id: str) -> GapInstance:
        instance = self.repo.get_gap_instance(assessment_id, gap_id)
        if instance is None:
            raise StatePreconditionFailed(
                "GAP_NOT_PENDING",
                "Este ponto não precisa de análise de causa neste diagnóstico.",
                gap_id=gap_id,
            )
        return instance

    # ── Reads ────────────────────────────────────────────────────────────────

    def pending(self, assessment_id: str) -> dict:
        """Gaps still waiting for a cause, with their questions and stored answers."""
        assessment = self._require_submitted(assessment_id, allow_closed=True)
        pending = []
        for instance in self.repo.list_gap_instances(assessment.id):
            if instance.status != GapStatus.CAUSE_PENDING.value:
                continue
            gap = self.engine.get_gap(instance.gap_id)
            stored = self.repo.get_cause_answers(assessment.id, instance.gap_id)
            pending.append({
                "gap_id": gap.gap_id,
                "process_key": instance.process_key,
                "titulo_cliente": gap.titulo_cliente,
                "descricao_cliente": gap.descricao_cliente,
                "status": instance.status,
                "questions": [
                    {"q_id": q.q_id, "texto_cliente": q.texto_cliente, "answer": stored.get(q.q_id)}
                    for q in gap.cause_questions
                ],
                "answered_count": sum(1 for q in gap.question_ids if q in stored),
                "total_questions": len(gap.question_ids),
            })
        return {"pending": pending, "likert_options": likert_options()}

    def classification_out(self, row: GapCause) -> dict:
        gap = self.engine.catalog.gap(row.gap_id)
        evidence = []
        for e in row.evidence or []:
            evidence.append({
                "q_id": e.get("q_id"),
                "answer": e.get("answer"),
                "texto_cliente": e.get("texto_cliente") or (gap.question_text(e.get("q_id")) if gap else ""),
            })
        return {
            "gap_id": row.gap_id,
            "process_key": gap.process_key if gap else None,
            "cause_primary": row.cause_primary,
            "cause_primary_label": self.engine.cause_label(row.cause_primary),
            "cause_secondary": row.cause_secondary,
            "cause_secondary_label": self.engine.cause_label(row.cause_secondary),
            "evidence": evidence,
            "score": row.score or {},
            "version": row.version,
        }

    def list_classifications(self, assessment_id: str) -> List[dict]:
        assessment = self.repo.require_assessment(assessment_id)
        return [self.classification_out(r) for r in self.repo.list_gap_causes(assessment.id)]

    # ── Writes ───────────────────────────────────────────────────────────────

    def save_answers(self, assessment_id: str, gap_id: str, items: Sequence) -> int:
        """Store partial answers without classifying."""
        assessment = self._require_submitted(assessment_id)
        self._require_instance(assessment.id, gap_id)
        supplied = answers_to_dict(items)
        self.engine.validate_answers(gap_id, supplied)
        count = self.repo.upsert_cause_answers(assessment.id, gap_id, supplied)
        self.audit.log_event(
            "cause_answers_saved",
            assessment_id=assessment.id,
            company_id=assessment.company_id,
            gap_id=gap_id,
            count=count,
        )
        return count

    def persist(self, assessment: Assessment, instance: GapInstance, result: CauseResult) -> GapCause:
        """Upsert the classification and mark the gap CAUSE_CLASSIFIED."""
        row = self.repo.upsert_gap_cause(
            assessment.id,
            result.gap_id,
            cause_primary=result.cause_primary,
            cause_secondary=result.cause_secondary,
            evidence=[e.to_dict() for e in result.evidence],
            score=result.score,
            version=result.version,
        )
        instance.status = GapStatus.CAUSE_CLASSIFIED.value
        self.repo.session.flush()
        self.audit.emit_value_event(
            ValueEvent.CAUSE_CLASSIFIED,
            assessment.id,
            company_id=assessment.company_id,
            gap_id=result.gap_id,
            cause_primary=result.cause_primary,
            cause_secondary=result.cause_secondary,
        )
        self.audit.log_event(
            "cause_classified",
            assessment_id=assessment.id,
            company_id=assessment.company_id,
            gap_id=result.gap_id,
            cause_primary=result.cause_primary,
            version=result.version,
        )
        return row

    def answer(self, assessment_id: str, gap_id: str, items: Sequence) -> dict:
        """Merge supplied answers with stored ones and classify.

        Nothing is stored unless the merged set is complete and valid.

        Raises:
            StatePreconditionFailed: GAP_NOT_PENDING / DIAG_NOT_READY / CYCLE_CLOSED.
            ValidationFailed: INVALID_ANSWER.
            IncompleteError: DIAG_INCOMPLETE with the missing q_ids.
        """
        assessment = self._require_submitted(assessment_id)
        instance = self._require_instance(assessment.id, gap_id)
        supplied = answers_to_dict(items)
        self.engine.validate_answers(gap_id, supplied)
        merged = {**self.repo.get_cause_answers(assessment.id, gap_id), **supplied}

        result = self.engine.classify(gap_id, merged)

        self.repo.upsert_cause_answers(assessment.id, gap_id, supplied)
        row = self.persist(assessment, instance, result)
        self.refresh_findings(assessment)
        logger.info(f"Gap {gap_id} of {assessment.id} classified as {result.cause_primary}")
        return self.classification_out(row)

    def auto_classify(self, assessment: Assessment) -> List[CauseResult]:
        """Classify every gap whose stored answers are already complete."""
        results = []
        for instance in self.repo.list_gap_instances(assessment.id):
            stored = self.repo.get_cause_answers(assessment.id, instance.gap_id)
            if not stored or self.engine.missing_questions(instance.gap_id, stored):
                continue
            result = self.engine.classify(instance.gap_id, stored)
            self.persist(assessment, instance, result)
            results.append(result)
        return results

    def refresh_findings(self, assessment: Assessment) -> None:
        scores = self.findings.score(assessment)
        drafts = self.findings.rebuild(assessment, scores)
        self.snapshots.refresh_raios_x(assessment, drafts)
        self.snapshots.refresh_recommendations(
            assessment, scores, self.findings.gap_states(assessment.id)
        )
