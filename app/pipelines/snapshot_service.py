"""Diagnostic snapshot service.

A snapshot is the renderable projection of one report version:

  submit     → processes, raios_x, recommendations; plan/evidence empty
  close      → plan and evidence_summary of the same row
  new cycle  → fresh row for the new version, seeded from the previous one

Rows are keyed by (assessment_id, full_version) and never deleted.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from app.catalog.models import CauseCatalog, FullCatalog
from app.database.orm import ActionEvidence, Assessment, DiagnosticSnapshot, SelectedAction
from app.errors import NotFoundError, ValidationFailed
from app.models.enums import Band, FindingType
from app.scoring.cause_engine import CauseEngine
from app.scoring.findings import FALLBACK_CONTENT_NAO_DEFINIDO, FindingDraft, GapState
from app.scoring.process_scorer import ProcessScoreResult
from app.scoring.utils import to_external_score
from app.services.repository import DiagnosticRepository

logger = logging.getLogger(__name__)

RAIO_X_PER_TYPE = 3


def fallback_recommendation_key(process_key: str, band: str) -> str:
    return f"fallback-{process_key}-{band}"


def raio_x_item(draft: FindingDraft) -> dict:
    p = draft.payload
    label = p.get("processo_label") or p.get("processo")
    primeiro_passo = p.get("primeiro_passo") or {}
    return {
        "title": p.get("gap_label") or f"{label} ({p.get('maturity_band')})",
        "o_que_acontece": p.get("gap_label") or p.get("o_que_esta_acontecendo"),
        "custo_nao_agir": p.get("custo_de_nao_agir"),
        "muda_em_30_dias": p.get("o_que_muda_em_30_dias"),
        "primeiro_passo": primeiro_passo.get("action_title"),
        "is_fallback": draft.is_fallback,
    }


class SnapshotService:
    """Write and read diagnostic snapshots."""

    def __init__(
        self,
        repo: DiagnosticRepository,
        catalog: FullCatalog,
        cause_catalog: CauseCatalog,
    ) -> None:
        self.repo = repo
        self.catalog = catalog
        self.cause_engine = CauseEngine(cause_catalog)

    # ── Writers ──────────────────────────────────────────────────────────────

    def recommendations(
        self,
        scores: Sequence[ProcessScoreResult],
        gap_states: Dict[str, GapState],
    ) -> List[dict]:
        """One recommendation per scored process.

        Classified gaps recommend their mechanism actions; pending gaps and
        processes without catalog actions get an explicit fallback entry.
        """
        recs = []
        for s in scores:
            band = s.band.value
            gap_state = gap_states.get(s.process_key) if s.band == Band.LOW else None
            rec = {
                "process_key": s.process_key,
                "band": band,
                "recommendation_key": fallback_recommendation_key(s.process_key, band),
                "title": FALLBACK_CONTENT_NAO_DEFINIDO,
                "action_keys": [],
                "is_fallback": True,
            }
            if gap_state is not None:
                gap = self.cause_engine.catalog.gap(gap_state.gap_id)
                if gap_state.cause_primary and gap is not None:
                    actions = self.cause_engine.mechanism_actions(
                        gap_state.gap_id, gap_state.cause_primary
                    )
                    rec.update(
                        recommendation_key=f"gap-{gap_state.gap_id}-{gap_state.cause_primary}",
                        title=gap.titulo_cliente,
                        action_keys=[a.action_key for a in actions],
                        is_fallback=False,
                    )
                recs.append(rec)
                continue

            actions = [
                a for a in self.catalog.actions_for_process(s.process_key)
                if a.band is None or a.band == s.band
            ]
            if actions:
                rec.update(
                    recommendation_key=actions[0].action_key,
                    title=actions[0].title,
                    action_keys=[a.action_key for a in actions],
                    is_fallback=False,
                )
            recs.append(rec)
        return recs

    def on_submit(
        self,
        assessment: Assessment,
        scores: Sequence[ProcessScoreResult],
        drafts: Sequence[FindingDraft],
        gap_states: Dict[str, GapState],
    ) -> DiagnosticSnapshot:
        """Upsert the snapshot row of the assessment's current version."""
        snapshot = self.repo.get_snapshot(assessment.id, assessment.full_version)
        if snapshot is None:
            snapshot = DiagnosticSnapshot(
                assessment_id=assessment.id,
                company_id=assessment.company_id,
                full_version=assessment.full_version,
            )
        snapshot.cycle_no = assessment.cycle_no
        snapshot.segment = assessment.segment
        snapshot.processes = [
            {
                "process_key": s.process_key,
                "band": s.band.value,
                "score_numeric": float(s.score_numeric),
            }
            for s in scores
        ]
        snapshot.raios_x = self._raios_x(drafts)
        snapshot.recommendations = self.recommendations(scores, gap_states)
        snapshot.plan = []
        snapshot.evidence_summary = []
        self.repo.save_snapshot(snapshot)
        logger.info(f"Snapshot v{assessment.full_version} written for {assessment.id}")
        return snapshot

    def refresh_raios_x(self, assessment: Assessment, drafts: Sequence[FindingDraft]) -> None:
        """Re-project regenerated findings onto the open version's snapshot."""
        snapshot = self.repo.get_snapshot(assessment.id, assessment.full_version)
        if snapshot is None or snapshot.closed_at is not None:
            return
        snapshot.raios_x = self._raios_x(drafts)
        self.repo.save_snapshot(snapshot)

    def refresh_recommendations(
        self,
        assessment: Assessment,
        scores: Sequence[ProcessScoreResult],
        gap_states: Dict[str, GapState],
    ) -> None:
        snapshot = self.repo.get_snapshot(assessment.id, assessment.full_version)
        if snapshot is None or snapshot.closed_at is not None:
            return
        snapshot.recommendations = self.recommendations(scores, gap_states)
        self.repo.save_snapshot(snapshot)

    def on_close(
        self,
        assessment: Assessment,
        plan: Sequence[SelectedAction],
        evidence: Sequence[ActionEvidence],
    ) -> Optional[DiagnosticSnapshot]:
        snapshot = self.repo.get_snapshot(assessment.id, assessment.full_version)
        if snapshot is None:
            logger.warning(f"No snapshot v{assessment.full_version} to close for {assessment.id}")
            return None
        by_key = {e.action_key: e for e in evidence}
        snapshot.plan = [
            {
                "action_key": p.action_key,
                "title": self.action_title(p.action_key),
                "position": p.position,
                "status": p.status,
                "owner_name": p.owner_name,
                "metric_text": p.metric_text,
                "checkpoint_date": p.checkpoint_date.isoformat() if p.checkpoint_date else None,
                "dropped_reason": p.dropped_reason,
            }
            for p in plan
        ]
        snapshot.evidence_summary = [
            {
                "action_key": p.action_key,
                "title": self.action_title(p.action_key),
                "before_baseline": by_key[p.action_key].before_baseline if p.action_key in by_key else None,
                "after_result": by_key[p.action_key].after_result if p.action_key in by_key else None,
                "declared_gain": by_key[p.action_key].declared_gain if p.action_key in by_key else None,
            }
            for p in plan
        ]
        snapshot.closed_at = assessment.closed_at or datetime.now(timezone.utc)
        self.repo.save_snapshot(snapshot)
        return snapshot

    def seed_new_cycle(self, assessment: Assessment, previous_version: Optional[int]) -> DiagnosticSnapshot:
        """Start the new version's row from the previous diagnosis, plan empty."""
        previous = (
            self.repo.get_snapshot(assessment.id, previous_version)
            if previous_version is not None else None
        )
        snapshot = DiagnosticSnapshot(
            assessment_id=assessment.id,
            company_id=assessment.company_id,
            full_version=assessment.full_version,
            cycle_no=assessment.cycle_no,
            segment=assessment.segment,
            processes=list(previous.processes) if previous else [],
            raios_x=dict(previous.raios_x) if previous else {"vazamentos": [], "alavancas": []},
            recommendations=list(previous.recommendations) if previous else [],
            plan=[],
            evidence_summary=[],
        )
        return self.repo.save_snapshot(snapshot)

    def _raios_x(self, drafts: Sequence[FindingDraft]) -> dict:
        return {
            "vazamentos": [
                raio_x_item(d) for d in drafts if d.finding_type == FindingType.VAZAMENTO
            ][:RAIO_X_PER_TYPE],
            "alavancas": [
                raio_x_item(d) for d in drafts if d.finding_type == FindingType.ALAVANCA
            ][:RAIO_X_PER_TYPE],
        }

    def action_title(self, action_key: str) -> str:
        action = self.catalog.action(action_key)
        if action is not None and action.title:
            return action.title
        mechanism = self.cause_engine.catalog.mechanism_action(action_key)
        if mechanism is not None and mechanism.titulo_cliente:
            return mechanism.titulo_cliente
        return action_key

    # ── Readers ──────────────────────────────────────────────────────────────

    def get(self, assessment_id: str, full_version: int) -> DiagnosticSnapshot:
        if full_version < 1:
            raise ValidationFailed("INVALID_VERSION", "Versão inválida.", full_version=full_version)
        self.repo.require_assessment(assessment_id)
        snapshot = self.repo.get_snapshot(assessment_id, full_version)
        if snapshot is None:
            raise NotFoundError(
                "SNAPSHOT_NOT_FOUND",
                "Versão do diagnóstico não encontrada.",
                full_version=full_version,
            )
        return snapshot

    def list_versions(self, company_id: str) -> List[dict]:
        return [
            {
                "assessment_id": s.assessment_id,
                "full_version": s.full_version,
                "cycle_no": s.cycle_no,
                "closed": s.closed_at is not None,
                "created_at": s.created_at,
            }
            for s in self.repo.list_company_snapshots(company_id)
        ]

    def compare(self, company_id: str, from_version: int, to_version: int) -> dict:
        """Per-process band/score evolution between two report versions."""
        if from_version < 1 or to_version < 1:
            raise ValidationFailed(
                "INVALID_PARAMS",
                "Parâmetros from e to devem ser versões válidas (1, 2, ...).",
            )
        snap_from = self.repo.get_company_snapshot(company_id, from_version)
        snap_to = self.repo.get_company_snapshot(company_id, to_version)
        if snap_from is None or snap_to is None:
            raise NotFoundError(
                "DIAG_NOT_FOUND",
                "Uma ou ambas as versões não foram encontradas.",
                from_version=from_version,
                to_version=to_version,
            )

        before = {p["process_key"]: p for p in snap_from.processes or []}
        after = {p["process_key"]: p for p in snap_to.processes or []}
        keys = list(dict.fromkeys([*before.keys(), *after.keys()]))

        processes = []
        for key in keys:
            old, new = before.get(key), after.get(key)
            old_score = to_external_score(old["score_numeric"]) if old else None
            new_score = to_external_score(new["score_numeric"]) if new else None
            processes.append({
                "process_key": key,
                "from": {"band": old["band"], "score": old_score} if old else None,
                "to": {"band": new["band"], "score": new_score} if new else None,
                "score_delta": (
                    new_score - old_score
                    if old_score is not None and new_score is not None else None
                ),
            })

        titles_from = self._raio_x_titles(snap_from)
        titles_to = self._raio_x_titles(snap_to)
        return {
            "company_id": company_id,
            "from_version": from_version,
            "to_version": to_version,
            "processes": processes,
            "raio_x_entered": [t for t in titles_to if t not in titles_from],
            "raio_x_left": [t for t in titles_from if t not in titles_to],
            "actions_completed_previous": sum(
                1 for p in snap_from.plan or [] if p.get("status") == "DONE"
            ),
            "gains_declared_previous": [
                {"action_key": e["action_key"], "title": e.get("title"), "declared_gain": e["declared_gain"]}
                for e in snap_from.evidence_summary or []
                if e.get("declared_gain")
            ],
        }

    @staticmethod
    def _raio_x_titles(snapshot: DiagnosticSnapshot) -> List[str]:
        raios = snapshot.raios_x or {}
        titles = [i.get("title") for i in raios.get("vazamentos", []) + raios.get("alavancas", [])]
        return list(dict.fromkeys(t for t in titles if t))
