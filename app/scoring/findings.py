"""Six-pack findings generator.

Vazamentos (leaks): LOW processes ranked by typical impact (HIGH first), then
score descending; top 3.

Alavancas (levers): MEDIUM processes, backfilled with LOW processes not used
as leaks when there are fewer than 3; ranked by quick_win first, then typical
impact, then score descending; top 3.

LOW findings whose process maps to a gap take mechanism copy once the gap is
CAUSE_CLASSIFIED. While it is CAUSE_PENDING they carry an explicit
"not defined yet" placeholder flagged ``is_fallback``; a cause is never guessed.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import structlog

from app.catalog.models import CatalogProcess, FullCatalog
from app.models.enums import (
    BAND_BEST_FIRST,
    UNKNOWN_BAND_RANK,
    Band,
    Dimension,
    FindingType,
    GapStatus,
)
from app.scoring.cause_engine import CauseEngine
from app.scoring.process_scorer import ProcessScoreResult
from app.scoring.utils import humanize_answer

logger = structlog.get_logger(__name__)

# ── Constants ─────────────────────────────────────────────────────────────────
FINDINGS_PER_TYPE = 3
MIN_TRACE_ITEMS = 4
LOW_ANSWER_MAX = 4  # answers at or below pull the level down

FALLBACK_CONTENT_NAO_DEFINIDO = "Conteúdo em definição pelo método"
FALLBACK_ACTION_TITLE = "Ação em definição pelo método"
GAP_NOT_CLASSIFIED = "gap_not_classified"

FALLBACK_PROTECTS = "RISCO"
FALLBACK_IMPACT_BAND = Band.MEDIUM.value


@dataclass(frozen=True)
class GapState:
    """Current state of a process's gap instance."""

    gap_id: str
    status: GapStatus
    cause_primary: Optional[str] = None


@dataclass
class FindingDraft:
    finding_type: FindingType
    position: int
    process_key: str
    payload: dict
    trace: dict
    is_fallback: bool = False
    gap_reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "type": self.finding_type.value,
            "position": self.position,
            "payload": self.payload,
            "trace": self.trace,
            "is_fallback": self.is_fallback,
            "gap_reason": self.gap_reason,
        }


@dataclass
class _Ranked:
    score: ProcessScoreResult
    impact_rank: int
    quick_win: bool


def _impact_rank(band: str) -> int:
    return BAND_BEST_FIRST.get(band, UNKNOWN_BAND_RANK)


def rank_vazamentos(items: Sequence[_Ranked]) -> List[_Ranked]:
    low = [i for i in items if i.score.band == Band.LOW]
    return sorted(low, key=lambda i: (i.impact_rank, -i.score.score))[:FINDINGS_PER_TYPE]


def rank_alavancas(items: Sequence[_Ranked], used: set[str]) -> List[_Ranked]:
    candidates = [i for i in items if i.score.band == Band.MEDIUM]
    if len(candidates) < FINDINGS_PER_TYPE:
        candidates += [
            i for i in items
            if i.score.band == Band.LOW and i.score.process_key not in used
        ]
    ranked = sorted(
        candidates,
        key=lambda i: (not i.quick_win, i.impact_rank, -i.score.score),
    )
    return ranked[:FINDINGS_PER_TYPE]


class FindingsGenerator:
    """Build the ranked six-pack from scores, gap states and the catalog."""

    def __init__(self, catalog: FullCatalog, cause_engine: CauseEngine) -> None:
        self.catalog = catalog
        self.cause_engine = cause_engine

    def _process_meta(self, process_key: str) -> CatalogProcess:
        process = self.catalog.process(process_key)
        if process is None:
            return CatalogProcess(
                process_key=process_key,
                protects_dimension=FALLBACK_PROTECTS,
                typical_impact_band=FALLBACK_IMPACT_BAND,
            )
        return process

    # ── Trace ────────────────────────────────────────────────────────────────

    def build_trace(self, score: ProcessScoreResult, finding_type: FindingType) -> dict:
        process = self._process_meta(score.process_key)
        worst_first = sorted(score.answers, key=lambda a: (a.answer_value, a.question_key))
        if finding_type == FindingType.ALAVANCA:
            worst_first = sorted(
                score.answers, key=lambda a: (-a.answer_value, a.question_key)
            )
        refs = []
        for a in worst_first[:max(MIN_TRACE_ITEMS, len(worst_first))]:
            question = process.question(a.question_key)
            refs.append({
                "process_key": a.process_key,
                "question_key": a.question_key,
                "question_text": question.text if question else "",
                "answer_value": a.answer_value,
                "answer_text": humanize_answer(a.answer_value),
            })

        pulled_down = []
        for a in score.answers:
            question = process.question(a.question_key)
            if question and question.dimension and a.answer_value <= LOW_ANSWER_MAX:
                if question.dimension.value not in pulled_down:
                    pulled_down.append(question.dimension.value)
        ordered = [d.value for d in Dimension if d.value in pulled_down]

        return {
            "process_keys": [score.process_key],
            "question_refs": refs,
            "como_puxou_nivel": ordered or None,
            "rule_used": score.rule_used.value,
        }

    # ── Payloads ─────────────────────────────────────────────────────────────

    def _first_catalog_action(self, process_key: str, band: Band) -> dict:
        for action in self.catalog.actions_for_process(process_key):
            if action.band is None or action.band == band:
                return {"action_key": action.action_key, "action_title": action.title}
        return {"action_key": None, "action_title": FALLBACK_ACTION_TITLE}

    def _base_payload(self, score: ProcessScoreResult, finding_type: FindingType) -> dict:
        process = self._process_meta(score.process_key)
        copy = process.copy_for(finding_type)
        return {
            "processo": score.process_key,
            "processo_label": process.label or score.process_key,
            "maturity_band": score.band.value,
            "protects": process.protects_dimension,
            "o_que_esta_acontecendo": copy.o_que_esta_acontecendo or process.typical_impact_text,
            "custo_de_nao_agir": copy.custo_de_nao_agir or process.typical_impact_text,
            "o_que_muda_em_30_dias": copy.o_que_muda_em_30_dias,
            "primeiro_passo": self._first_catalog_action(score.process_key, score.band),
            "primeiro_passo_candidates": [],
            "gap_label": None,
            "cause_primary": None,
            "cause_label": None,
            "mechanism_label": None,
        }

    def build_finding(
        self,
        finding_type: FindingType,
        position: int,
        score: ProcessScoreResult,
        gap_state: Optional[GapState],
    ) -> FindingDraft:
        payload = self._base_payload(score, finding_type)
        draft = FindingDraft(
            finding_type=finding_type,
            position=position,
            process_key=score.process_key,
            payload=payload,
            trace=self.build_trace(score, finding_type),
        )
        if score.band != Band.LOW or gap_state is None:
            return draft

        gap = self.cause_engine.catalog.gap(gap_state.gap_id)
        payload["gap_label"] = gap.titulo_cliente if gap else gap_state.gap_id

        if gap_state.status == GapStatus.CAUSE_CLASSIFIED and gap_state.cause_primary:
            cause = gap_state.cause_primary
            actions = self.cause_engine.mechanism_actions(gap_state.gap_id, cause)
            payload["cause_primary"] = cause
            payload["cause_label"] = self.cause_engine.cause_label(cause)
            payload["mechanism_label"] = self.cause_engine.mechanism_label(cause)
            if gap and gap.descricao_cliente:
                payload["o_que_esta_acontecendo"] = gap.descricao_cliente
            payload["primeiro_passo_candidates"] = [
                {"action_key": a.action_key, "action_title": a.titulo_cliente}
                for a in actions
            ]
            if actions:
                payload["primeiro_passo"] = payload["primeiro_passo_candidates"][0]
                payload["o_que_muda_em_30_dias"] = (
                    actions[0].primeiro_passo_30d or payload["o_que_muda_em_30_dias"]
                )
            return draft

        payload["o_que_esta_acontecendo"] = FALLBACK_CONTENT_NAO_DEFINIDO
        payload["custo_de_nao_agir"] = FALLBACK_CONTENT_NAO_DEFINIDO
        payload["o_que_muda_em_30_dias"] = FALLBACK_CONTENT_NAO_DEFINIDO
        payload["primeiro_passo"] = {"action_key": None, "action_title": FALLBACK_ACTION_TITLE}
        draft.is_fallback = True
        draft.gap_reason = GAP_NOT_CLASSIFIED
        logger.info(
            "finding_gap_not_classified",
            process_key=score.process_key,
            gap_id=gap_state.gap_id,
            finding_type=finding_type.value,
        )
        return draft

    def generate(
        self,
        scores: Sequence[ProcessScoreResult],
        gap_states: Dict[str, GapState],
    ) -> List[FindingDraft]:
        """Build up to 3 VAZAMENTO and 3 ALAVANCA findings.

        Args:
            scores: Latest process scores.
            gap_states: process_key → GapState for processes with a gap instance.
        """
        items = []
        for s in scores:
            meta = self._process_meta(s.process_key)
            items.append(_Ranked(s, _impact_rank(meta.typical_impact_band), meta.quick_win))

        vazamentos = rank_vazamentos(items)
        used = {i.score.process_key for i in vazamentos}
        alavancas = rank_alavancas(items, used)

        drafts = [
            self.build_finding(
                FindingType.VAZAMENTO, pos, i.score, gap_states.get(i.score.process_key)
            )
            for pos, i in enumerate(vazamentos, start=1)
        ]
        drafts += [
            self.build_finding(
                FindingType.ALAVANCA, pos, i.score, gap_states.get(i.score.process_key)
            )
            for pos, i in enumerate(alavancas, start=1)
        ]
        logger.info(
            "findings_generated",
            vazamentos=[d.process_key for d in drafts if d.finding_type == FindingType.VAZAMENTO],
            alavancas=[d.process_key for d in drafts if d.finding_type == FindingType.ALAVANCA],
            fallback_count=sum(1 for d in drafts if d.is_fallback),
        )
        return drafts
