"""Tests for the action-fit engine."""
import pytest

from app.models.enums import Band
from app.scoring.action_fit import (
    REASON_NO_MATCH,
    REASON_NO_SCORE,
    ActionFitEngine,
    build_signals_true,
)
from app.scoring.process_scorer import AnswerValue


def _answers(process_key, values):
    return [
        AnswerValue(process_key, f"Q{i:02d}", v)
        for i, v in enumerate(values, start=1)
    ]


@pytest.fixture
def engine(catalog):
    return ActionFitEngine(catalog)


class TestSignals:
    """Tests for failure signal extraction."""

    def test_answers_up_to_two_are_signals(self):
        signals = build_signals_true(_answers("COMERCIAL", [0, 2, 3, 10]))
        assert set(signals) == {"COMERCIAL_Q01", "COMERCIAL_Q02"}


class TestSuggest:
    """Tests for ActionFitEngine.suggest."""

    def test_one_matched_signal_is_not_enough(self, engine):
        # Only Q03 fails: every COMERCIAL action needs two of its signals
        result = engine.suggest(
            _answers("COMERCIAL", [9, 9, 1, 9]),
            {"COMERCIAL": Band.MEDIUM},
            process_keys=["COMERCIAL"],
        )
        assert result.suggestions == []
        assert result.content_gaps[0].to_dict() == {
            "process_key": "COMERCIAL", "band": "MEDIUM", "reason": REASON_NO_MATCH
        }

    def test_two_matched_signals_suggest(self, engine):
        result = engine.suggest(
            _answers("COMERCIAL", [9, 1, 1, 9]),
            {"COMERCIAL": Band.LOW},
            process_keys=["COMERCIAL"],
        )
        assert [s.action_key for s in result.suggestions] == ["COMERCIAL-DONO_META"]
        suggestion = result.suggestions[0].to_dict()
        assert suggestion["matched_signals"] == 2
        assert suggestion["source"] == "fit"
        assert suggestion["evidence_keys"] == ["COMERCIAL_Q02", "COMERCIAL_Q03"]
        assert [w["question_key"] for w in suggestion["why"]] == ["Q02", "Q03"]
        assert result.content_gaps == []

    def test_all_answers_healthy_gives_content_gap(self, engine):
        result = engine.suggest(
            _answers("OPERACOES", [5, 6, 7, 8]),
            {"OPERACOES": Band.MEDIUM},
            process_keys=["OPERACOES"],
        )
        assert result.suggestions == []
        assert [g.reason for g in result.content_gaps] == [REASON_NO_MATCH]

    def test_unscored_process_reports_no_score(self, engine):
        result = engine.suggest([], {}, process_keys=["GESTAO"])
        assert result.content_gaps[0].reason == REASON_NO_SCORE
        assert result.content_gaps[0].band is None

    def test_ranked_by_matched_signals_then_catalog_order(self, engine):
        answers = (
            _answers("COMERCIAL", [1, 1, 9, 1])
            + _answers("OPERACOES", [1, 1, 9, 9])
            + _answers("ADM_FIN", [1, 1, 1, 9])
            + _answers("GESTAO", [1, 1, 9, 9])
        )
        bands = {
            "COMERCIAL": Band.LOW,
            "OPERACOES": Band.MEDIUM,
            "ADM_FIN": Band.LOW,
            "GESTAO": Band.MEDIUM,
        }
        result = engine.suggest(answers, bands)
        assert [s.action_key for s in result.suggestions] == [
            "COMERCIAL-FUNIL_SEMANAL",
            "OPERACOES-PADRAO_ENTREGA",
            "ADM_FIN-FLUXO_CAIXA_13S",
            "ADM_FIN-CONCILIACAO_SEMANAL",
            "GESTAO-REUNIAO_RESULTADO",
        ]

    def test_excluded_keys_are_skipped(self, engine):
        result = engine.suggest(
            _answers("COMERCIAL", [1, 1, 1, 1]),
            {"COMERCIAL": Band.LOW},
            exclude_action_keys={"COMERCIAL-FUNIL_SEMANAL"},
            process_keys=["COMERCIAL"],
        )
        keys = [s.action_key for s in result.suggestions]
        assert "COMERCIAL-FUNIL_SEMANAL" not in keys
        assert keys == ["COMERCIAL-DONO_META", "COMERCIAL-PAINEL_CONVERSAO"]

    def test_band_restricted_action(self, engine):
        answers = _answers("GESTAO", [9, 1, 9, 1])
        medium = engine.suggest(answers, {"GESTAO": Band.MEDIUM}, process_keys=["GESTAO"])
        low = engine.suggest(answers, {"GESTAO": Band.LOW}, process_keys=["GESTAO"])
        assert "GESTAO-PAINEL_INDICADORES" in [s.action_key for s in medium.suggestions]
        assert "GESTAO-PAINEL_INDICADORES" not in [s.action_key for s in low.suggestions]
