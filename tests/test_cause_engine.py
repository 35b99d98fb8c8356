"""Tests for the root-cause classifier."""
import pytest

from app.errors import IncompleteError, IntegrityFailure, ValidationFailed
from app.scoring.cause_engine import CauseEngine, likert_options


def _caixa(q1="DISCORDO", q2="DISCORDO", q3="DISCORDO", q4="DISCORDO"):
    return {"CAIXA_Q1": q1, "CAIXA_Q2": q2, "CAIXA_Q3": q3, "CAIXA_Q4": q4}


@pytest.fixture
def engine(cause_catalog):
    return CauseEngine(cause_catalog)


class TestClassify:
    """Tests for CauseEngine.classify."""

    def test_single_strong_cause(self, engine):
        result = engine.classify("GAP_CAIXA_PREVISAO", _caixa(q1="CONCORDO_PLENAMENTE"))
        assert result.cause_primary == "CAUSE_RITUAL"
        assert result.score["CAUSE_RITUAL"] == 3
        assert result.score["CAUSE_DONO"] == 1
        # 3 vs 1 is more than one point apart
        assert result.cause_secondary is None

    def test_tie_broken_by_gap_order(self, engine):
        result = engine.classify(
            "GAP_CAIXA_PREVISAO", _caixa(q1="CONCORDO_PLENAMENTE", q2="CONCORDO")
        )
        assert result.score["CAUSE_RITUAL"] == result.score["CAUSE_DONO"] == 3
        assert result.cause_primary == "CAUSE_RITUAL"
        assert result.cause_secondary == "CAUSE_DONO"

    def test_tie_breaker_is_per_gap(self, engine):
        answers = {
            "VENDAS_Q1": "CONCORDO",
            "VENDAS_Q2": "DISCORDO",
            "VENDAS_Q3": "CONCORDO",
            "VENDAS_Q4": "NEUTRO",
        }
        result = engine.classify("GAP_VENDAS_FUNIL", answers)
        assert result.cause_primary == "CAUSE_PADRAO"
        assert result.cause_secondary == "CAUSE_RITUAL"

    def test_runner_up_within_one_point_is_secondary(self, engine):
        result = engine.classify(
            "GAP_CAIXA_PREVISAO", _caixa(q1="CONCORDO", q3="CONCORDO_PLENAMENTE")
        )
        assert result.cause_primary == "CAUSE_PADRAO"
        assert result.cause_secondary == "CAUSE_RITUAL"

    def test_no_agreement_is_unknown(self, engine):
        result = engine.classify("GAP_CAIXA_PREVISAO", _caixa())
        assert result.cause_primary == "UNKNOWN"
        assert result.cause_secondary is None

    def test_evidence_follows_question_order(self, engine):
        answers = dict(reversed(list(_caixa(q4="CONCORDO").items())))
        result = engine.classify("GAP_CAIXA_PREVISAO", answers)
        assert [e.q_id for e in result.evidence] == [
            "CAIXA_Q1", "CAIXA_Q2", "CAIXA_Q3", "CAIXA_Q4"
        ]
        assert result.evidence[3].answer == "CONCORDO"
        assert result.evidence[0].texto_cliente
        assert result.version == "cause-engine-v1"

    def test_missing_answers(self, engine):
        answers = _caixa()
        del answers["CAIXA_Q3"]
        with pytest.raises(IncompleteError) as exc:
            engine.classify("GAP_CAIXA_PREVISAO", answers)
        assert exc.value.code == "DIAG_INCOMPLETE"
        assert exc.value.extra["missing"] == ["CAIXA_Q3"]

    def test_invalid_likert_value(self, engine):
        with pytest.raises(ValidationFailed) as exc:
            engine.classify("GAP_CAIXA_PREVISAO", _caixa(q2="TALVEZ"))
        assert exc.value.code == "INVALID_ANSWER"
        assert exc.value.extra["invalid"] == [{"q_id": "CAIXA_Q2", "answer": "TALVEZ"}]

    def test_unknown_question_id(self, engine):
        answers = {**_caixa(), "VENDAS_Q1": "CONCORDO"}
        with pytest.raises(ValidationFailed) as exc:
            engine.classify("GAP_CAIXA_PREVISAO", answers)
        assert exc.value.code == "INVALID_ANSWER"

    def test_unknown_gap(self, engine):
        with pytest.raises(IntegrityFailure) as exc:
            engine.classify("GAP_INEXISTENTE", {})
        assert exc.value.code == "CATALOG_INVALID"


class TestLookups:
    """Tests for gap and mechanism lookups."""

    def test_gap_for_process(self, engine):
        assert engine.gap_for_process("ADM_FIN") == "GAP_CAIXA_PREVISAO"
        assert engine.gap_for_process("COMERCIAL") == "GAP_VENDAS_FUNIL"
        assert engine.gap_for_process("GESTAO") == "GAP_ROTINA_GERENCIAL"
        assert engine.gap_for_process("OPERACOES") is None

    def test_mechanism_actions_in_catalog_order(self, engine):
        actions = engine.mechanism_actions("GAP_CAIXA_PREVISAO", "CAUSE_RITUAL")
        assert [a.action_key for a in actions] == [
            "ADM_FIN-ROTINA_CAIXA_SEMANAL",
            "ADM_FIN-DONO_CAIXA",
        ]

    def test_mechanism_actions_for_unknown_cause(self, engine):
        assert engine.mechanism_actions("GAP_CAIXA_PREVISAO", "UNKNOWN") == []

    def test_labels(self, engine):
        assert engine.cause_label("CAUSE_DONO") == "Falta de dono"
        assert engine.mechanism_label("CAUSE_DADOS") == "Fonte única de dados"
        assert engine.cause_label(None) is None

    def test_likert_options(self):
        options = likert_options()
        assert [o["value"] for o in options] == [
            "DISCORDO_PLENAMENTE", "DISCORDO", "NEUTRO", "CONCORDO", "CONCORDO_PLENAMENTE"
        ]
