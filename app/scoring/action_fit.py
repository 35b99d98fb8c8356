"""Action-fit engine.

Suggests catalog actions purely from failure signals in the raw answers:

  signals_true = { "{process}_{question}" : answer ≤ 2 }
  candidate    ⇔ |signals_true ∩ action.signals| ≥ 2

Single-signal matches are rejected as weak evidence. When nothing clears the
threshold for a process the result for that process is empty and a content
gap is reported; no fallback suggestion is ever synthesized.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

import structlog

from app.catalog.models import CatalogAction, FullCatalog
from app.models.enums import Band
from app.scoring.process_scorer import AnswerValue
from app.scoring.utils import humanize_answer

logger = structlog.get_logger(__name__)

# ── Constants ─────────────────────────────────────────────────────────────────
SIGNAL_FAIL_THRESHOLD = 2   # answer ≤ 2 is a failure signal
MIN_MATCHED_SIGNALS = 2

REASON_NO_SCORE = "no_score"
REASON_NO_MATCH = "no_match_ge_2"


def signal_id(process_key: str, question_key: str) -> str:
    return f"{process_key}_{question_key}"


@dataclass
class FitSuggestion:
    """A catalog action supported by at least two failure signals."""

    action: CatalogAction
    matched_signals: List[str]
    why: List[dict]

    @property
    def action_key(self) -> str:
        return self.action.action_key

    def to_dict(self) -> dict:
        return {
            "action_key": self.action.action_key,
            "process_key": self.action.process_key,
            "title": self.action.title,
            "source": "fit",
            "steps": list(self.action.steps),
            "owner_suggested": self.action.owner_suggested,
            "metric_suggested": self.action.metric_suggested,
            "matched_signals": len(self.matched_signals),
            "why": self.why,
            "evidence_keys": list(self.matched_signals),
        }


@dataclass
class ContentGap:
    process_key: str
    band: Optional[str]
    reason: str

    def to_dict(self) -> dict:
        return {"process_key": self.process_key, "band": self.band, "reason": self.reason}


@dataclass
class FitResult:
    suggestions: List[FitSuggestion] = field(default_factory=list)
    content_gaps: List[ContentGap] = field(default_factory=list)


def build_signals_true(answers: Iterable[AnswerValue]) -> Dict[str, AnswerValue]:
    """Failure signals keyed by signal id."""
    return {
        signal_id(a.process_key, a.question_key): a
        for a in answers
        if a.answer_value <= SIGNAL_FAIL_THRESHOLD
    }


class ActionFitEngine:
    """Match catalog actions against failure signals."""

    def __init__(self, catalog: FullCatalog) -> None:
        self.catalog = catalog

    def _why(self, matched: Sequence[AnswerValue]) -> List[dict]:
        why = []
        for a in matched:
            process = self.catalog.process(a.process_key)
            question = process.question(a.question_key) if process else None
            why.append({
                "question_key": a.question_key,
                "answer": a.answer_value,
                "label": question.text if question and question.text
                else humanize_answer(a.answer_value),
            })
        return why

    def match_action(
        self, action: CatalogAction, signals_true: Dict[str, AnswerValue]
    ) -> Optional[FitSuggestion]:
        """Suggestion for one action, or ``None`` below the threshold."""
        matched = [s for s in action.signals if s in signals_true]
        if len(matched) < MIN_MATCHED_SIGNALS:
            return None
        return FitSuggestion(
            action=action,
            matched_signals=matched,
            why=self._why([signals_true[s] for s in matched]),
        )

    def suggest(
        self,
        answers: Sequence[AnswerValue],
        bands: Dict[str, Band],
        exclude_action_keys: Iterable[str] = (),
        process_keys: Optional[Sequence[str]] = None,
    ) -> FitResult:
        """Rank candidate actions per process.

        Args:
            answers: Raw answers of the assessment.
            bands: process_key → band from the latest scoring.
            exclude_action_keys: Keys already in the plan or in cycle history.
            process_keys: Processes to consider (default: whole catalog).

        Returns:
            FitResult with suggestions ranked by matched signal count
            (descending, catalog order on ties) and per-process content gaps.
        """
        excluded = set(exclude_action_keys)
        signals_true = build_signals_true(answers)
        keys = list(process_keys) if process_keys is not None else self.catalog.process_keys

        by_process: Dict[str, List[FitSuggestion]] = defaultdict(list)
        result = FitResult()

        for process_key in keys:
            band = bands.get(process_key)
            if band is None:
                result.content_gaps.append(ContentGap(process_key, None, REASON_NO_SCORE))
                continue
            for action in self.catalog.actions_for_process(process_key):
                if action.action_key in excluded:
                    continue
                if action.band is not None and action.band != band:
                    continue
                suggestion = self.match_action(action, signals_true)
                if suggestion is not None:
                    by_process[process_key].append(suggestion)
            if not by_process[process_key]:
                result.content_gaps.append(
                    ContentGap(process_key, band.value, REASON_NO_MATCH)
                )

        ranked = [s for k in keys for s in by_process.get(k, [])]
        # Stable sort: ties keep process then catalog order
        ranked.sort(key=lambda s: -len(s.matched_signals))
        result.suggestions = ranked

        if result.content_gaps:
            logger.info(
                "action_fit_content_gaps",
                catalog_version=self.catalog.version,
                content_gaps=[g.to_dict() for g in result.content_gaps],
            )
        return result
