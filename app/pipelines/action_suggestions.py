"""Action suggestion pool.

Pool order: mechanism actions of classified gaps first (catalog order, up to
three per gap), then action-fit suggestions ranked by matched signals.
Keys are de-duplicated. Actions in the current plan or archived in cycle
history are excluded.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from app.catalog.models import CauseCatalog, FullCatalog
from app.database.orm import Assessment
from app.errors import diag_not_ready
from app.models.enums import AssessmentStatus, Band
from app.pipelines.findings_refresh import FindingsRefresher
from app.scoring.action_fit import ActionFitEngine, ContentGap
from app.scoring.cause_engine import CauseEngine
from app.services.audit import AuditService
from app.services.repository import DiagnosticRepository

logger = logging.getLogger(__name__)


@dataclass
class SuggestionPool:
    suggestions: List[dict] = field(default_factory=list)
    content_gaps: List[ContentGap] = field(default_factory=list)
    mechanism_required_action_keys: List[str] = field(default_factory=list)
    block_size: int = 3

    @property
    def action_keys(self) -> List[str]:
        return [s["action_key"] for s in self.suggestions]

    @property
    def remaining_count(self) -> int:
        return len(self.suggestions)

    @property
    def required_count(self) -> int:
        return min(self.block_size, self.remaining_count)

    @property
    def is_last_block(self) -> bool:
        return self.remaining_count < self.block_size

    def to_dict(self) -> dict:
        return {
            "suggestions": self.suggestions,
            "content_gaps": [g.to_dict() for g in self.content_gaps],
            "required_count": self.required_count,
            "remaining_count": self.remaining_count,
            "is_last_block": self.is_last_block,
            "mechanism_required_action_keys": self.mechanism_required_action_keys,
        }


class ActionSuggestionService:
    """Build the ranked suggestion pool of an assessment."""

    def __init__(
        self,
        repo: DiagnosticRepository,
        catalog: FullCatalog,
        cause_catalog: CauseCatalog,
        audit: AuditService,
        block_size: int = 3,
    ) -> None:
        self.repo = repo
        self.catalog = catalog
        self.audit = audit
        self.block_size = block_size
        self.cause_engine = CauseEngine(cause_catalog)
        self.fit_engine = ActionFitEngine(catalog)
        self.findings = FindingsRefresher(repo, catalog, self.cause_engine, audit)

    def mechanism_suggestions(self, assessment_id: str, excluded: Iterable[str]) -> List[dict]:
        excluded = set(excluded)
        out = []
        for cause in self.repo.list_gap_causes(assessment_id):
            gap = self.cause_engine.catalog.gap(cause.gap_id)
            for action in self.cause_engine.mechanism_actions(cause.gap_id, cause.cause_primary):
                if action.action_key in excluded:
                    continue
                out.append({
                    "action_key": action.action_key,
                    "process_key": gap.process_key if gap else "",
                    "title": action.titulo_cliente or action.action_key,
                    "source": "mechanism",
                    "steps": [action.primeiro_passo_30d] if action.primeiro_passo_30d else [],
                    "owner_suggested": None,
                    "metric_suggested": None,
                    "matched_signals": 0,
                    "why": [],
                    "evidence_keys": [e.get("q_id") for e in cause.evidence or [] if e.get("q_id")],
                    "gap_id": cause.gap_id,
                    "cause_id": cause.cause_primary,
                })
        return out

    def build(self, assessment: Assessment) -> SuggestionPool:
        """Suggestion pool for a submitted assessment.

        The current plan and every archived cycle are excluded.

        Raises:
            StatePreconditionFailed: DIAG_NOT_READY while DRAFT.
        """
        if assessment.status == AssessmentStatus.DRAFT.value:
            raise diag_not_ready()

        excluded = set(self.repo.history_action_keys(assessment.id))
        excluded |= {p.action_key for p in self.repo.list_plan(assessment.id)}

        mechanism = self.mechanism_suggestions(assessment.id, excluded)
        bands = {s.process_key: Band(s.band) for s in self.repo.list_scores(assessment.id)}
        process_keys = [p.process_key for p in self.catalog.processes_for_segment(assessment.segment)]
        fit = self.fit_engine.suggest(
            self.findings.load_answers(assessment.id),
            bands,
            exclude_action_keys=excluded,
            process_keys=process_keys,
        )

        pool = SuggestionPool(block_size=self.block_size, content_gaps=fit.content_gaps)
        seen = set()
        for s in mechanism + [f.to_dict() for f in fit.suggestions]:
            if s["action_key"] in seen:
                continue
            seen.add(s["action_key"])
            s.setdefault("gap_id", None)
            s.setdefault("cause_id", None)
            pool.suggestions.append(s)
        pool.mechanism_required_action_keys = [s["action_key"] for s in mechanism]

        for gap in fit.content_gaps:
            self.audit.log_event(
                "action_fit_content_gap",
                assessment_id=assessment.id,
                company_id=assessment.company_id,
                **gap.to_dict(),
            )
        logger.info(
            f"Suggestion pool for {assessment.id}: {pool.remaining_count} actions "
            f"({len(mechanism)} mechanism), {len(fit.content_gaps)} content gaps"
        )
        return pool
