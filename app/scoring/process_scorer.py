"""Process maturity scorer.

For every process with answers:

  score              = mean(answer values)
  dimension_scores[d] = mean(values of questions tagged d)  (None if untagged)

Band rule, evaluated in order:

  1. ROTINA, DONO or CONTROLE missing or < 5
       → score_to_band(score) if that is not LOW       (fallback_score)
       → LOW                                            (missing_or_weak_minimum)
  2. ROTINA, DONO, CONTROLE ≥ 8, EXISTENCIA ≥ 7, score ≥ 7
       → HIGH                                           (all_minimum_strong)
  3. otherwise → MEDIUM                                 (intermediate)

score_to_band: < 4 → LOW, < 7 → MEDIUM, else HIGH.
Banding uses exact means; ``score_numeric`` is quantized to 2 places.
Audit trail emitted via structlog.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

import structlog

from app.catalog.models import FullCatalog
from app.errors import IntegrityFailure
from app.models.enums import MINIMUM_DIMENSIONS, Band, BandRule, Dimension
from app.scoring.utils import mean, to_decimal

logger = structlog.get_logger(__name__)

# ── Constants ─────────────────────────────────────────────────────────────────
LOW_UPPER: Decimal = Decimal(4)           # score < 4 → LOW
MEDIUM_UPPER: Decimal = Decimal(7)        # score < 7 → MEDIUM
MINIMUM_FLOOR: Decimal = Decimal(5)       # ROTINA/DONO/CONTROLE floor
STRONG_MINIMUM: Decimal = Decimal(8)      # ROTINA/DONO/CONTROLE for HIGH
STRONG_EXISTENCIA: Decimal = Decimal(7)
STRONG_SCORE: Decimal = Decimal(7)


@dataclass(frozen=True)
class AnswerValue:
    """One raw answer as read from storage."""

    process_key: str
    question_key: str
    answer_value: int


@dataclass
class ProcessScoreResult:
    """Score, band and the evidence behind them for one process."""

    process_key: str
    score: Decimal                                  # exact mean
    band: Band
    rule_used: BandRule
    dimension_scores: Dict[str, Optional[Decimal]]
    answers: List[AnswerValue] = field(default_factory=list)

    @property
    def score_numeric(self) -> Decimal:
        return to_decimal(self.score, places=2)

    def to_dict(self) -> dict:
        """Serialise to plain-Python dict (floats) for logging / JSON."""
        return {
            "process_key": self.process_key,
            "score_numeric": float(self.score_numeric),
            "band": self.band.value,
            "rule_used": self.rule_used.value,
            "dimension_scores": {
                k: (float(to_decimal(v, places=2)) if v is not None else None)
                for k, v in self.dimension_scores.items()
            },
        }

    def support(self) -> dict:
        """Persisted explainability blob."""
        return {
            "answers": [
                {"question_key": a.question_key, "answer_value": a.answer_value}
                for a in self.answers
            ],
            "dimension_scores": self.to_dict()["dimension_scores"],
            "band_rule": self.rule_used.value,
        }


def score_to_band(score: Decimal) -> Band:
    if score < LOW_UPPER:
        return Band.LOW
    if score < MEDIUM_UPPER:
        return Band.MEDIUM
    return Band.HIGH


def derive_band(
    score: Decimal, dimension_scores: Mapping[str, Optional[Decimal]]
) -> tuple[Band, BandRule]:
    """Apply the dimension-floor rule; see module docstring."""
    minimums = [dimension_scores.get(d.value) for d in MINIMUM_DIMENSIONS]

    if any(v is None or v < MINIMUM_FLOOR for v in minimums):
        fallback = score_to_band(score)
        if fallback != Band.LOW:
            return fallback, BandRule.FALLBACK_SCORE
        return Band.LOW, BandRule.MISSING_OR_WEAK_MINIMUM

    existencia = dimension_scores.get(Dimension.EXISTENCIA.value)
    if (
        all(v >= STRONG_MINIMUM for v in minimums)
        and existencia is not None
        and existencia >= STRONG_EXISTENCIA
        and score >= STRONG_SCORE
    ):
        return Band.HIGH, BandRule.ALL_MINIMUM_STRONG

    return Band.MEDIUM, BandRule.INTERMEDIATE


class ProcessScorer:
    """Turn raw answers into per-process scores and bands.

    Parameters
    ----------
    catalog:
        Active catalog; supplies the question → dimension map.
    """

    def __init__(self, catalog: FullCatalog) -> None:
        self.catalog = catalog

    def validate_catalog(self, process_keys: Sequence[str]) -> None:
        """Raise CATALOG_INVALID if any required process has no questions."""
        empty = []
        for key in process_keys:
            process = self.catalog.process(key)
            if process is None or not process.questions:
                empty.append(key)
        if empty:
            logger.error(
                "catalog_invalid",
                catalog_version=self.catalog.version,
                processes_without_questions=empty,
            )
            raise IntegrityFailure(
                "CATALOG_INVALID",
                "Catálogo de perguntas inválido. Contate o suporte.",
                processes_without_questions=empty,
            )

    def score_process(
        self, process_key: str, answers: Sequence[AnswerValue]
    ) -> ProcessScoreResult:
        process = self.catalog.process(process_key)
        dimension_of = (
            {q.question_key: q.dimension for q in process.questions} if process else {}
        )

        by_dimension: Dict[str, List[int]] = defaultdict(list)
        for a in answers:
            dim = dimension_of.get(a.question_key)
            if dim is not None:
                by_dimension[dim.value].append(a.answer_value)

        score = mean(a.answer_value for a in answers)
        dimension_scores = {d.value: mean(by_dimension.get(d.value, [])) for d in Dimension}
        band, rule = derive_band(score, dimension_scores)

        result = ProcessScoreResult(
            process_key=process_key,
            score=score,
            band=band,
            rule_used=rule,
            dimension_scores=dimension_scores,
            answers=sorted(answers, key=lambda a: a.question_key),
        )
        logger.debug("process_scored", **result.to_dict())
        return result

    def score(
        self,
        answers: Sequence[AnswerValue],
        process_keys: Optional[Sequence[str]] = None,
    ) -> List[ProcessScoreResult]:
        """Score every process (in ``process_keys`` order) that has answers.

        Raises:
            IntegrityFailure: CATALOG_INVALID when a process has no questions.
        """
        keys = list(process_keys) if process_keys is not None else self.catalog.process_keys
        self.validate_catalog(keys)

        grouped: Dict[str, List[AnswerValue]] = defaultdict(list)
        for a in answers:
            grouped[a.process_key].append(a)

        results = [self.score_process(k, grouped[k]) for k in keys if grouped.get(k)]
        logger.info(
            "processes_scored",
            catalog_version=self.catalog.version,
            bands={r.process_key: r.band.value for r in results},
        )
        return results
