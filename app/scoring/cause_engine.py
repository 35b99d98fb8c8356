"""Root-cause classifier for LOW-band processes.

A LOW process that maps to a known gap gets a fixed Likert-5 questionnaire.
Each answer contributes points to cause classes through the gap's weight
table; the highest total wins, ties resolved by the gap's tie-breaker order.
A runner-up within one point is reported as the secondary cause.

Classification is all-or-nothing: any unanswered question aborts with
DIAG_INCOMPLETE and the list of missing ids.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import structlog

from app.catalog.models import CauseCatalog, CauseGap, MechanismAction
from app.errors import IncompleteError, IntegrityFailure, ValidationFailed
from app.models.enums import LIKERT_LABELS, Likert, ProcessKey

logger = structlog.get_logger(__name__)

# LOW-band process → gap; OPERACOES has no gap
PROCESS_GAP_MAP: dict[str, str] = {
    ProcessKey.ADM_FIN.value: "GAP_CAIXA_PREVISAO",
    ProcessKey.COMERCIAL.value: "GAP_VENDAS_FUNIL",
    ProcessKey.GESTAO.value: "GAP_ROTINA_GERENCIAL",
}

UNKNOWN_CAUSE = "UNKNOWN"
SECONDARY_MAX_DISTANCE = 1
MECHANISM_ACTIONS_PER_GAP = 3


@dataclass
class CauseEvidence:
    q_id: str
    answer: str
    texto_cliente: str

    def to_dict(self) -> dict:
        return {"q_id": self.q_id, "answer": self.answer, "texto_cliente": self.texto_cliente}


@dataclass
class CauseResult:
    """Classification of one gap."""

    gap_id: str
    cause_primary: str
    cause_secondary: Optional[str]
    evidence: List[CauseEvidence]
    score: Dict[str, int]
    version: str
    candidates: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "gap_id": self.gap_id,
            "cause_primary": self.cause_primary,
            "cause_secondary": self.cause_secondary,
            "evidence": [e.to_dict() for e in self.evidence],
            "score": dict(self.score),
            "version": self.version,
        }


def parse_likert(value: str) -> Optional[Likert]:
    try:
        return Likert(value)
    except ValueError:
        return None


class CauseEngine:
    """Deterministic Likert → cause classifier over a cause catalog."""

    def __init__(self, catalog: CauseCatalog) -> None:
        self.catalog = catalog

    # ── Lookups ──────────────────────────────────────────────────────────────

    def gap_for_process(self, process_key: str) -> Optional[str]:
        return PROCESS_GAP_MAP.get(process_key)

    def get_gap(self, gap_id: str) -> CauseGap:
        gap = self.catalog.gap(gap_id)
        if gap is None:
            logger.error("cause_gap_missing", gap_id=gap_id, version=self.catalog.version)
            raise IntegrityFailure(
                "CATALOG_INVALID",
                "Catálogo de causas inválido. Contate o suporte.",
                gap_id=gap_id,
            )
        return gap

    def cause_label(self, cause_id: Optional[str]) -> Optional[str]:
        cause = self.catalog.cause_class(cause_id)
        return cause.label_cliente if cause else None

    def mechanism_label(self, cause_id: Optional[str]) -> Optional[str]:
        cause = self.catalog.cause_class(cause_id)
        return cause.mecanismo_primario if cause else None

    def mechanism_actions(
        self, gap_id: str, cause_id: Optional[str], limit: int = MECHANISM_ACTIONS_PER_GAP
    ) -> List[MechanismAction]:
        """Mechanism actions of a gap+cause pair, catalog order, at most ``limit``."""
        gap = self.catalog.gap(gap_id)
        if gap is None:
            return []
        return gap.actions_for_cause(cause_id)[:limit]

    # ── Validation ───────────────────────────────────────────────────────────

    def validate_answers(self, gap_id: str, answers: Mapping[str, str]) -> Dict[str, Likert]:
        """Check q_ids and Likert values; returns the parsed answers.

        Raises:
            ValidationFailed: INVALID_ANSWER for an unknown q_id or value.
        """
        gap = self.get_gap(gap_id)
        known = set(gap.question_ids)
        parsed: Dict[str, Likert] = {}
        invalid = []
        for q_id, raw in answers.items():
            value = parse_likert(raw)
            if q_id not in known or value is None:
                invalid.append({"q_id": q_id, "answer": raw})
                continue
            parsed[q_id] = value
        if invalid:
            raise ValidationFailed(
                "INVALID_ANSWER",
                "Resposta inválida. Use a escala de concordância.",
                invalid=invalid,
                allowed=[v.value for v in Likert],
            )
        return parsed

    def missing_questions(self, gap_id: str, answers: Mapping[str, object]) -> List[str]:
        gap = self.get_gap(gap_id)
        return [q for q in gap.question_ids if q not in answers]

    # ── Classification ───────────────────────────────────────────────────────

    def classify(self, gap_id: str, answers: Mapping[str, str]) -> CauseResult:
        """Classify a gap from a complete answer set.

        Raises:
            IncompleteError: DIAG_INCOMPLETE with ``missing`` q_ids.
            ValidationFailed: INVALID_ANSWER.
        """
        parsed = self.validate_answers(gap_id, answers)
        missing = self.missing_questions(gap_id, parsed)
        if missing:
            raise IncompleteError(
                "DIAG_INCOMPLETE",
                "Responda todas as perguntas para identificar a causa.",
                gap_id=gap_id,
                missing=missing,
            )
        return self.score_cause(self.get_gap(gap_id), parsed)

    def score_cause(self, gap: CauseGap, answers: Mapping[str, Likert]) -> CauseResult:
        points: Dict[str, int] = defaultdict(int)
        for weight in gap.rules.weights:
            answer = answers.get(weight.q_id)
            if answer is None:
                continue
            points[weight.cause_id] += weight.map.get(answer, 0)

        # Stable sort keeps first-seen weight order among equal totals
        ranked = sorted(
            ((cid, pts) for cid, pts in points.items() if pts > 0),
            key=lambda item: -item[1],
        )

        primary = UNKNOWN_CAUSE
        secondary = None
        if ranked:
            top_points = ranked[0][1]
            top = [cid for cid, pts in ranked if pts == top_points]
            primary = next((cid for cid in gap.rules.tie_breaker if cid in top), top[0])
            rest = [(cid, pts) for cid, pts in ranked if cid != primary]
            if rest and top_points - rest[0][1] <= SECONDARY_MAX_DISTANCE:
                secondary = rest[0][0]

        evidence = [
            CauseEvidence(
                q_id=q.q_id,
                answer=answers[q.q_id].value,
                texto_cliente=q.texto_cliente,
            )
            for q in gap.cause_questions
            if q.q_id in answers
        ]

        result = CauseResult(
            gap_id=gap.gap_id,
            cause_primary=primary,
            cause_secondary=secondary,
            evidence=evidence,
            score=dict(points),
            version=self.catalog.version,
            candidates=[cid for cid, _ in ranked],
        )
        logger.info(
            "cause_scored",
            gap_id=gap.gap_id,
            cause_primary=primary,
            cause_secondary=secondary,
            score=result.score,
        )
        return result


def likert_options() -> List[dict]:
    return [{"value": v.value, "label": LIKERT_LABELS[v]} for v in Likert]
