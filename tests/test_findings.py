"""Tests for six-pack findings generation."""
import pytest

from app.models.enums import FindingType, GapStatus
from app.scoring.cause_engine import CauseEngine
from app.scoring.findings import (
    FALLBACK_CONTENT_NAO_DEFINIDO,
    GAP_NOT_CLASSIFIED,
    FindingsGenerator,
    GapState,
)
from app.scoring.process_scorer import AnswerValue, ProcessScorer


def _score(catalog, by_process):
    answers = [
        AnswerValue(pk, f"Q{i:02d}", v)
        for pk, values in by_process.items()
        for i, v in enumerate(values, start=1)
    ]
    return ProcessScorer(catalog).score(answers)


def _keys(drafts, finding_type):
    return [d.process_key for d in drafts if d.finding_type == finding_type]


@pytest.fixture
def generator(catalog, cause_catalog):
    return FindingsGenerator(catalog, CauseEngine(cause_catalog))


@pytest.fixture
def plan_scores(catalog):
    return _score(catalog, {
        "COMERCIAL": [1, 1, 9, 1],
        "OPERACOES": [1, 1, 9, 9],
        "ADM_FIN": [1, 1, 1, 9],
        "GESTAO": [1, 1, 9, 9],
    })


PENDING = {
    "COMERCIAL": GapState("GAP_VENDAS_FUNIL", GapStatus.CAUSE_PENDING),
    "ADM_FIN": GapState("GAP_CAIXA_PREVISAO", GapStatus.CAUSE_PENDING),
}


class TestRanking:
    """Tests for vazamento/alavanca selection and order."""

    def test_low_processes_are_vazamentos(self, generator, plan_scores):
        drafts = generator.generate(plan_scores, PENDING)
        assert _keys(drafts, FindingType.VAZAMENTO) == ["COMERCIAL", "ADM_FIN"]
        assert _keys(drafts, FindingType.ALAVANCA) == ["OPERACOES", "GESTAO"]
        assert [d.position for d in drafts] == [1, 2, 1, 2]

    def test_single_leak_and_quick_win_first(self, catalog, generator):
        scores = _score(catalog, {
            "COMERCIAL": [8, 8, 8, 8],
            "OPERACOES": [6, 6, 6, 6],
            "ADM_FIN": [3, 3, 3, 3],
            "GESTAO": [6, 6, 6, 6],
        })
        drafts = generator.generate(scores, {})
        assert _keys(drafts, FindingType.VAZAMENTO) == ["ADM_FIN"]
        assert _keys(drafts, FindingType.ALAVANCA) == ["OPERACOES", "GESTAO"]

    def test_unused_low_backfills_alavancas(self, catalog, generator):
        scores = _score(catalog, {
            "COMERCIAL": [1, 1, 1, 1],
            "OPERACOES": [2, 2, 2, 2],
            "ADM_FIN": [3, 3, 3, 3],
            "GESTAO": [0, 0, 0, 0],
        })
        drafts = generator.generate(scores, {})
        # High typical impact first, then score descending
        assert _keys(drafts, FindingType.VAZAMENTO) == ["ADM_FIN", "COMERCIAL", "OPERACOES"]
        assert _keys(drafts, FindingType.ALAVANCA) == ["GESTAO"]

    def test_all_high_has_no_findings(self, catalog, generator):
        scores = _score(catalog, {pk: [9, 9, 9, 9] for pk in ["COMERCIAL", "OPERACOES", "ADM_FIN", "GESTAO"]})
        assert generator.generate(scores, {}) == []


class TestGapContent:
    """Tests for mechanism copy versus the pending placeholder."""

    def test_pending_gap_is_fallback(self, generator, plan_scores):
        drafts = generator.generate(plan_scores, PENDING)
        leak = drafts[0]
        assert leak.is_fallback is True
        assert leak.gap_reason == GAP_NOT_CLASSIFIED
        assert leak.payload["o_que_esta_acontecendo"] == FALLBACK_CONTENT_NAO_DEFINIDO
        assert leak.payload["primeiro_passo"]["action_key"] is None
        assert leak.payload["gap_label"] == "Vendas sem funil"
        assert leak.payload["cause_primary"] is None

    def test_classified_gap_uses_mechanism(self, generator, plan_scores):
        states = dict(PENDING)
        states["ADM_FIN"] = GapState(
            "GAP_CAIXA_PREVISAO", GapStatus.CAUSE_CLASSIFIED, cause_primary="CAUSE_RITUAL"
        )
        drafts = generator.generate(plan_scores, states)
        leak = next(d for d in drafts if d.process_key == "ADM_FIN")
        assert leak.is_fallback is False
        assert leak.gap_reason is None
        assert leak.payload["cause_primary"] == "CAUSE_RITUAL"
        assert leak.payload["mechanism_label"] == "Ritual fixo de acompanhamento"
        assert leak.payload["primeiro_passo"]["action_key"] == "ADM_FIN-ROTINA_CAIXA_SEMANAL"
        assert [c["action_key"] for c in leak.payload["primeiro_passo_candidates"]] == [
            "ADM_FIN-ROTINA_CAIXA_SEMANAL", "ADM_FIN-DONO_CAIXA"
        ]

    def test_non_low_finding_uses_catalog_copy(self, generator, plan_scores):
        drafts = generator.generate(plan_scores, PENDING)
        lever = next(d for d in drafts if d.process_key == "OPERACOES")
        assert lever.is_fallback is False
        assert lever.payload["o_que_esta_acontecendo"]
        assert lever.payload["primeiro_passo"]["action_key"] == "OPERACOES-PADRAO_ENTREGA"


class TestTrace:
    """Tests for answer traceability."""

    def test_vazamento_trace_worst_first(self, generator, plan_scores):
        drafts = generator.generate(plan_scores, PENDING)
        trace = drafts[0].trace
        refs = trace["question_refs"]
        assert len(refs) >= 4
        assert [r["answer_value"] for r in refs] == [1, 1, 1, 9]
        assert refs[0]["question_text"]
        assert trace["como_puxou_nivel"] == ["EXISTENCIA", "ROTINA", "CONTROLE"]
        assert trace["rule_used"] == "missing_or_weak_minimum"

    def test_alavanca_trace_best_first(self, generator, plan_scores):
        drafts = generator.generate(plan_scores, PENDING)
        lever = next(d for d in drafts if d.process_key == "OPERACOES")
        refs = lever.trace["question_refs"]
        assert [r["question_key"] for r in refs] == ["Q03", "Q04", "Q01", "Q02"]
        assert lever.trace["como_puxou_nivel"] == ["EXISTENCIA", "ROTINA"]
