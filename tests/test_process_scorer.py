"""Tests for the process scorer and band rule."""
from decimal import Decimal

import pytest

from app.catalog.models import CatalogProcess, CatalogQuestion, FullCatalog
from app.errors import IntegrityFailure
from app.models.enums import Band, BandRule
from app.scoring.process_scorer import (
    AnswerValue,
    ProcessScorer,
    derive_band,
    score_to_band,
)
from app.scoring.utils import mean, to_decimal, to_external_score


def _answers(process_key, values):
    return [
        AnswerValue(process_key, f"Q{i:02d}", v)
        for i, v in enumerate(values, start=1)
    ]


@pytest.fixture
def scorer(catalog):
    return ProcessScorer(catalog)


class TestScoreToBand:
    """Tests for the plain score thresholds."""

    @pytest.mark.parametrize("score,band", [
        ("0", Band.LOW),
        ("3.99", Band.LOW),
        ("4", Band.MEDIUM),
        ("6.99", Band.MEDIUM),
        ("7", Band.HIGH),
        ("10", Band.HIGH),
    ])
    def test_thresholds(self, score, band):
        assert score_to_band(Decimal(score)) == band


class TestDeriveBand:
    """Tests for the dimension-floor band rule."""

    def test_all_strong_is_high(self):
        dims = {"EXISTENCIA": Decimal(7), "ROTINA": Decimal(8), "DONO": Decimal(8), "CONTROLE": Decimal(9)}
        assert derive_band(Decimal(8), dims) == (Band.HIGH, BandRule.ALL_MINIMUM_STRONG)

    def test_missing_minimum_dimension_uses_score(self):
        dims = {"EXISTENCIA": Decimal(9), "ROTINA": None, "DONO": Decimal(9), "CONTROLE": Decimal(9)}
        assert derive_band(Decimal(9), dims) == (Band.HIGH, BandRule.FALLBACK_SCORE)

    def test_weak_minimum_with_low_score(self):
        dims = {"EXISTENCIA": Decimal(1), "ROTINA": Decimal(1), "DONO": Decimal(9), "CONTROLE": Decimal(1)}
        assert derive_band(Decimal(3), dims) == (Band.LOW, BandRule.MISSING_OR_WEAK_MINIMUM)

    def test_existencia_below_seven_is_intermediate(self):
        dims = {"EXISTENCIA": Decimal(6), "ROTINA": Decimal(9), "DONO": Decimal(9), "CONTROLE": Decimal(9)}
        assert derive_band(Decimal("8.25"), dims) == (Band.MEDIUM, BandRule.INTERMEDIATE)

    def test_minimum_between_five_and_eight_is_intermediate(self):
        dims = {"EXISTENCIA": Decimal(9), "ROTINA": Decimal(5), "DONO": Decimal(9), "CONTROLE": Decimal(9)}
        assert derive_band(Decimal(8), dims) == (Band.MEDIUM, BandRule.INTERMEDIATE)


class TestProcessScorer:
    """Tests for ProcessScorer over the shipped catalog."""

    def test_high_process(self, scorer):
        result = scorer.score_process("COMERCIAL", _answers("COMERCIAL", [9, 9, 9, 9]))
        assert result.band == Band.HIGH
        assert result.rule_used == BandRule.ALL_MINIMUM_STRONG
        assert result.score_numeric == Decimal("9.00")

    def test_low_process(self, scorer):
        result = scorer.score_process("ADM_FIN", _answers("ADM_FIN", [3, 3, 3, 3]))
        assert result.band == Band.LOW
        assert result.rule_used == BandRule.MISSING_OR_WEAK_MINIMUM

    def test_weak_rotina_falls_back_to_score(self, scorer):
        result = scorer.score_process("OPERACOES", _answers("OPERACOES", [1, 1, 9, 9]))
        assert result.band == Band.MEDIUM
        assert result.rule_used == BandRule.FALLBACK_SCORE
        assert result.dimension_scores["ROTINA"] == Decimal(1)

    def test_dimension_scores_are_per_question_dimension(self, scorer):
        result = scorer.score_process("GESTAO", _answers("GESTAO", [2, 4, 6, 8]))
        assert result.dimension_scores == {
            "EXISTENCIA": Decimal(2),
            "ROTINA": Decimal(4),
            "DONO": Decimal(6),
            "CONTROLE": Decimal(8),
        }
        assert result.score == Decimal(5)

    def test_score_numeric_rounds_half_up(self, scorer):
        result = scorer.score_process("COMERCIAL", [
            AnswerValue("COMERCIAL", "Q01", 1),
            AnswerValue("COMERCIAL", "Q02", 2),
            AnswerValue("COMERCIAL", "Q03", 2),
        ])
        assert result.score_numeric == Decimal("1.67")

    def test_score_skips_processes_without_answers(self, scorer):
        results = scorer.score(_answers("GESTAO", [5, 5, 5, 5]))
        assert [r.process_key for r in results] == ["GESTAO"]

    def test_score_follows_process_key_order(self, scorer):
        answers = _answers("GESTAO", [5, 5, 5, 5]) + _answers("COMERCIAL", [5, 5, 5, 5])
        results = scorer.score(answers, ["COMERCIAL", "GESTAO"])
        assert [r.process_key for r in results] == ["COMERCIAL", "GESTAO"]

    def test_support_lists_answers_and_rule(self, scorer):
        result = scorer.score_process("COMERCIAL", _answers("COMERCIAL", [9, 9, 9, 9]))
        support = result.support()
        assert len(support["answers"]) == 4
        assert support["band_rule"] == "all_minimum_strong"

    def test_process_without_questions_is_catalog_invalid(self):
        catalog = FullCatalog(
            version="test",
            processes=[
                CatalogProcess(
                    process_key="COMERCIAL",
                    questions=[CatalogQuestion(question_key="Q01", dimension="ROTINA")],
                ),
                CatalogProcess(process_key="GESTAO"),
            ],
        )
        with pytest.raises(IntegrityFailure) as exc:
            ProcessScorer(catalog).score([AnswerValue("COMERCIAL", "Q01", 5)])
        assert exc.value.code == "CATALOG_INVALID"
        assert exc.value.extra["processes_without_questions"] == ["GESTAO"]


class TestScoreUtils:
    """Tests for decimal helpers."""

    def test_mean_of_empty_is_none(self):
        assert mean([]) is None

    def test_to_decimal_half_up(self):
        assert to_decimal(2.345, places=2) == Decimal("2.35")

    @pytest.mark.parametrize("numeric,external", [(0, 0), (3.5, 35), (6.67, 67), (10, 100)])
    def test_external_score(self, numeric, external):
        assert to_external_score(numeric) == external
