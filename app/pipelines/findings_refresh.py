"""Findings regeneration shared by submit and cause classification.

The scorer is pure, so regenerating after a cause classification re-scores the
stored answers instead of reading the persisted scores back.
"""
import logging
from typing import Dict, List, Optional, Sequence
from uuid import uuid4

from app.catalog.models import FullCatalog
from app.database.orm import Assessment, Finding
from app.errors import DiagnosticError, IntegrityFailure
from app.models.enums import GapStatus
from app.scoring.cause_engine import CauseEngine
from app.scoring.findings import FindingDraft, FindingsGenerator, GapState
from app.scoring.process_scorer import AnswerValue, ProcessScorer, ProcessScoreResult
from app.services.audit import AuditService
from app.services.repository import DiagnosticRepository

logger = logging.getLogger(__name__)


class FindingsRefresher:
    """Rebuild and persist an assessment's six-pack."""

    def __init__(
        self,
        repo: DiagnosticRepository,
        catalog: FullCatalog,
        cause_engine: CauseEngine,
        audit: AuditService,
    ) -> None:
        self.repo = repo
        self.catalog = catalog
        self.cause_engine = cause_engine
        self.audit = audit
        self.scorer = ProcessScorer(catalog)
        self.generator = FindingsGenerator(catalog, cause_engine)

    def load_answers(self, assessment_id: str) -> List[AnswerValue]:
        return [
            AnswerValue(a.process_key, a.question_key, a.answer_value)
            for a in self.repo.list_answers(assessment_id)
        ]

    def gap_states(self, assessment_id: str) -> Dict[str, GapState]:
        """process_key → GapState for every current gap instance."""
        causes = {c.gap_id: c for c in self.repo.list_gap_causes(assessment_id)}
        states: Dict[str, GapState] = {}
        for instance in self.repo.list_gap_instances(assessment_id):
            cause = causes.get(instance.gap_id)
            states[instance.process_key] = GapState(
                gap_id=instance.gap_id,
                status=GapStatus(instance.status),
                cause_primary=cause.cause_primary if cause else None,
            )
        return states

    def score(self, assessment: Assessment) -> List[ProcessScoreResult]:
        """Score the stored answers to the segment's catalog questions."""
        processes = self.catalog.processes_for_segment(assessment.segment)
        expected = {(p.process_key, k) for p in processes for k in p.question_keys}
        answers = [
            a for a in self.load_answers(assessment.id)
            if (a.process_key, a.question_key) in expected
        ]
        return self.scorer.score(answers, [p.process_key for p in processes])

    def rebuild(
        self,
        assessment: Assessment,
        scores: Optional[Sequence[ProcessScoreResult]] = None,
    ) -> List[FindingDraft]:
        """Generate findings and replace the stored ones.

        Raises:
            IntegrityFailure: FINDINGS_FAILED (with ``debug_id``) on any
                unexpected generator or storage error.
        """
        if scores is None:
            scores = self.score(assessment)
        try:
            drafts = self.generator.generate(scores, self.gap_states(assessment.id))
            self.repo.replace_findings(assessment.id, [
                Finding(
                    assessment_id=assessment.id,
                    finding_type=d.finding_type.value,
                    position=d.position,
                    process_key=d.process_key,
                    payload=d.payload,
                    trace=d.trace,
                    is_fallback=d.is_fallback,
                    gap_reason=d.gap_reason,
                )
                for d in drafts
            ])
        except DiagnosticError:
            raise
        except Exception as e:
            debug_id = str(uuid4())
            logger.error(
                f"Findings generation failed for {assessment.id} (debug_id={debug_id}): {e}",
                exc_info=True,
            )
            raise IntegrityFailure(
                "FINDINGS_FAILED",
                "Não foi possível gerar os resultados. Tente novamente.",
                debug_id=debug_id,
            ) from e

        for d in drafts:
            if d.is_fallback:
                self.audit.log_event(
                    "finding_gap_not_classified",
                    assessment_id=assessment.id,
                    company_id=assessment.company_id,
                    process_key=d.process_key,
                    finding_type=d.finding_type.value,
                    gap_reason=d.gap_reason,
                )
        return drafts
