"""Diagnostic submit pipeline.

Turns a complete DRAFT into a SUBMITTED assessment with scores, gaps,
findings and a snapshot, all inside the request's transaction.

Flow:
  1. Check the transition (DRAFT → SUBMITTED) and the catalog
  2. Require 100% of the segment's catalog questions to be answered
  3. Score every process and replace the stored scores
  4. Sync gap instances with the LOW processes that map to a gap
  5. Classify gaps whose stored Likert answers are already complete
  6. Generate the six-pack findings (they read the classifications)
  7. Assign the next company-wide full_version and write the snapshot
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List

from app.catalog.models import CatalogProcess, CauseCatalog, FullCatalog
from app.database.orm import Assessment, GapInstance, ProcessScore
from app.errors import IncompleteError, StatePreconditionFailed
from app.models.enums import AssessmentEvent, AssessmentStatus, Band, next_assessment_status
from app.pipelines.cause_classification import CauseClassificationService
from app.pipelines.findings_refresh import FindingsRefresher
from app.pipelines.snapshot_service import SnapshotService
from app.scoring.findings import FindingDraft
from app.scoring.process_scorer import AnswerValue, ProcessScoreResult
from app.services.audit import AuditService
from app.services.repository import DiagnosticRepository

logger = logging.getLogger(__name__)


@dataclass
class SubmitOutcome:
    assessment: Assessment
    scores: List[ProcessScoreResult]
    findings: List[FindingDraft]
    gap_instances: List[GapInstance] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "status": self.assessment.status,
            "full_version": self.assessment.full_version,
            "scores": [s.to_dict() for s in self.scores],
            "findings_count": len(self.findings),
            "gap_instances": [
                {"gap_id": g.gap_id, "process_key": g.process_key, "status": g.status}
                for g in self.gap_instances
            ],
        }


def completeness(processes: List[CatalogProcess], answers: List[AnswerValue]) -> dict:
    """Missing questions per process plus answered/expected counts."""
    answered = {(a.process_key, a.question_key) for a in answers}
    missing = []
    answered_count = 0
    total_expected = 0
    for process in processes:
        keys = process.question_keys
        total_expected += len(keys)
        absent = sorted(k for k in keys if (process.process_key, k) not in answered)
        answered_count += len(keys) - len(absent)
        if absent:
            missing.append({"process_key": process.process_key, "missing_question_keys": absent})
    return {
        "missing": missing,
        "missing_process_keys": sorted(m["process_key"] for m in missing),
        "answered_count": answered_count,
        "total_expected": total_expected,
    }


class DiagnosticSubmitPipeline:
    """Submit a DRAFT assessment."""

    def __init__(
        self,
        repo: DiagnosticRepository,
        catalog: FullCatalog,
        cause_catalog: CauseCatalog,
        audit: AuditService,
    ) -> None:
        self.repo = repo
        self.catalog = catalog
        self.audit = audit
        self.causes = CauseClassificationService(repo, catalog, cause_catalog, audit)
        self.findings: FindingsRefresher = self.causes.findings
        self.snapshots = SnapshotService(repo, catalog, cause_catalog)

    def submit(self, assessment_id: str) -> SubmitOutcome:
        """Run the pipeline.

        Raises:
            StatePreconditionFailed: DIAG_ALREADY_SUBMITTED when not DRAFT.
            IncompleteError: DIAG_INCOMPLETE with the missing questions.
            IntegrityFailure: CATALOG_INVALID / FINDINGS_FAILED.
        """
        assessment = self.repo.require_assessment(assessment_id)
        target, reject = next_assessment_status(
            AssessmentStatus(assessment.status), AssessmentEvent.SUBMIT
        )
        if target is None:
            raise StatePreconditionFailed(reject, "Diagnóstico já foi concluído.")

        processes = self.catalog.processes_for_segment(assessment.segment)
        process_keys = [p.process_key for p in processes]
        self.findings.scorer.validate_catalog(process_keys)

        answers = self.findings.load_answers(assessment.id)
        status = completeness(processes, answers)
        if status["missing"]:
            logger.info(
                f"Submit blocked for {assessment.id}: "
                f"{status['answered_count']}/{status['total_expected']} answered"
            )
            raise IncompleteError(
                "DIAG_INCOMPLETE",
                "Responda todas as perguntas antes de concluir o diagnóstico.",
                **status,
            )

        scores = self.findings.score(assessment)
        self.repo.replace_scores(assessment.id, [
            ProcessScore(
                assessment_id=assessment.id,
                process_key=s.process_key,
                score_numeric=float(s.score_numeric),
                band=s.band.value,
                rule_used=s.rule_used.value,
                dimension_scores=s.to_dict()["dimension_scores"],
                support=s.support(),
            )
            for s in scores
        ])

        gaps: Dict[str, str] = {}
        for s in scores:
            gap_id = self.causes.engine.gap_for_process(s.process_key)
            if s.band == Band.LOW and gap_id is not None:
                gaps[gap_id] = s.process_key
        instances = self.repo.sync_gap_instances(assessment.id, gaps)

        self.causes.auto_classify(assessment)
        drafts = self.findings.rebuild(assessment, scores)

        assessment.status = target.value
        assessment.full_version = self.repo.next_full_version(assessment.company_id)
        assessment.submitted_at = datetime.now(timezone.utc)
        self.repo.session.flush()

        gap_states = self.findings.gap_states(assessment.id)
        self.snapshots.on_submit(assessment, scores, drafts, gap_states)
        self.audit.log_event(
            "diagnostic_submitted",
            assessment_id=assessment.id,
            company_id=assessment.company_id,
            full_version=assessment.full_version,
            bands={s.process_key: s.band.value for s in scores},
            gap_ids=sorted(gaps),
        )
        logger.info(
            f"Submitted {assessment.id} as v{assessment.full_version}: "
            f"{len(scores)} scores, {len(drafts)} findings, {len(instances)} gaps"
        )
        return SubmitOutcome(
            assessment=assessment,
            scores=scores,
            findings=drafts,
            gap_instances=self.repo.list_gap_instances(assessment.id),
        )
