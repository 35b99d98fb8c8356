"""Tests for Pydantic models, state tables and catalog parsing."""
import json
import pytest
from pydantic import ValidationError

from app.catalog.loader import load_cause_catalog, load_full_catalog
from app.catalog.models import (
    CatalogAction,
    CatalogProcess,
    normalize_dict,
    normalize_enum,
    normalize_str_list,
)
from app.errors import IntegrityFailure
from app.models import (
    ACTION_STATUS_TRANSITIONS,
    ActionStatus,
    AnswersUpsert,
    AssessmentCurrentRequest,
    AssessmentEvent,
    AssessmentStatus,
    Band,
    Dimension,
    EvidenceCreate,
    FindingType,
    PlanItemIn,
)
from app.models.enums import next_assessment_status


class TestAssessmentModels:
    """Tests for intake request models."""

    def test_current_request_optional_segment(self):
        request = AssessmentCurrentRequest(company_id="c-1")
        assert request.segment is None

    def test_current_request_empty_company(self):
        with pytest.raises(ValidationError) as exc_info:
            AssessmentCurrentRequest(company_id="")
        assert "string_too_short" in str(exc_info.value)

    def test_answers_valid(self):
        batch = AnswersUpsert(
            process_key="COMERCIAL",
            answers=[{"question_key": "Q01", "answer_value": 0}, {"question_key": "Q02", "answer_value": 10}],
        )
        assert [a.answer_value for a in batch.answers] == [0, 10]

    @pytest.mark.parametrize("value", [-1, 11])
    def test_answer_out_of_range(self, value):
        with pytest.raises(ValidationError):
            AnswersUpsert(
                process_key="COMERCIAL",
                answers=[{"question_key": "Q01", "answer_value": value}],
            )

    def test_answers_duplicate_question(self):
        with pytest.raises(ValidationError) as exc_info:
            AnswersUpsert(
                process_key="COMERCIAL",
                answers=[
                    {"question_key": "Q01", "answer_value": 1},
                    {"question_key": "Q01", "answer_value": 2},
                ],
            )
        assert "question_key must be unique" in str(exc_info.value)

    def test_answers_empty_batch(self):
        with pytest.raises(ValidationError):
            AnswersUpsert(process_key="COMERCIAL", answers=[])


class TestActionModels:
    """Tests for plan and evidence models."""

    def test_evidence_fields_are_stripped(self):
        evidence = EvidenceCreate(
            evidence_text="  relatório  ",
            before_baseline=" 10 dias ",
            after_result="2 dias\n",
        )
        assert evidence.evidence_text == "relatório"
        assert evidence.before_baseline == "10 dias"
        assert evidence.after_result == "2 dias"

    def test_plan_item_requires_checkpoint_date(self):
        with pytest.raises(ValidationError):
            PlanItemIn(position=1, action_key="X", owner_name="Ana", metric_text="m")


class TestStateTables:
    """Tests for the assessment and action state machines."""

    def test_forward_transitions(self):
        assert next_assessment_status(AssessmentStatus.DRAFT, AssessmentEvent.SUBMIT) == (
            AssessmentStatus.SUBMITTED, None
        )
        assert next_assessment_status(AssessmentStatus.SUBMITTED, AssessmentEvent.CLOSE) == (
            AssessmentStatus.CLOSED, None
        )
        assert next_assessment_status(AssessmentStatus.CLOSED, AssessmentEvent.NEW_CYCLE) == (
            AssessmentStatus.SUBMITTED, None
        )

    @pytest.mark.parametrize("current,event,code", [
        (AssessmentStatus.SUBMITTED, AssessmentEvent.SUBMIT, "DIAG_ALREADY_SUBMITTED"),
        (AssessmentStatus.CLOSED, AssessmentEvent.SUBMIT, "DIAG_ALREADY_SUBMITTED"),
        (AssessmentStatus.DRAFT, AssessmentEvent.CLOSE, "DIAG_NOT_READY"),
        (AssessmentStatus.DRAFT, AssessmentEvent.NEW_CYCLE, "CYCLE_NOT_CLOSED"),
        (AssessmentStatus.SUBMITTED, AssessmentEvent.NEW_CYCLE, "CYCLE_NOT_CLOSED"),
    ])
    def test_rejected_transitions(self, current, event, code):
        assert next_assessment_status(current, event) == (None, code)

    def test_terminal_action_statuses(self):
        assert ACTION_STATUS_TRANSITIONS[ActionStatus.DONE] == []
        assert ACTION_STATUS_TRANSITIONS[ActionStatus.DROPPED] == []
        assert ActionStatus.NOT_STARTED not in ACTION_STATUS_TRANSITIONS[ActionStatus.IN_PROGRESS]


class TestCatalogNormalizers:
    """Tests for the tolerant catalog parsing helpers."""

    @pytest.mark.parametrize("value,expected", [
        ("Uma frase", ["Uma frase"]),
        ("   ", []),
        (["a", " b ", "", 3], ["a", "b"]),
        (None, []),
        ({"a": 1}, []),
    ])
    def test_normalize_str_list(self, value, expected):
        assert normalize_str_list(value) == expected

    def test_normalize_dict(self):
        assert normalize_dict({"a": 1}) == {"a": 1}
        assert normalize_dict("x") == {}

    def test_normalize_enum(self):
        assert normalize_enum("ROTINA", Dimension) == Dimension.ROTINA
        assert normalize_enum("PESSOAS", Dimension) is None

    def test_action_tolerates_legacy_shapes(self):
        action = CatalogAction(
            action_key="COMERCIAL-X",
            process_key="COMERCIAL",
            band="ANY",
            done_when="Checklist único",
            recommendation="texto solto",
        )
        assert action.band is None
        assert action.done_when == ("Checklist único",)
        assert action.recommendation.what_is_happening == ""

    def test_process_drops_unknown_copy_and_dimensions(self):
        process = CatalogProcess(
            process_key="GESTAO",
            segments=None,
            questions=[{"question_key": "Q01", "dimension": "OUTRA"}],
            findings_copy={"ALAVANCA": {"o_que_esta_acontecendo": "ok"}, "OUTRO": {}},
        )
        assert process.segments == ("C", "I", "S")
        assert process.questions[0].dimension is None
        assert process.copy_for(FindingType.ALAVANCA).o_que_esta_acontecendo == "ok"
        assert process.copy_for(FindingType.VAZAMENTO).o_que_esta_acontecendo == ""


class TestCatalogLoader:
    """Tests for loading catalog files."""

    def test_bundled_catalogs(self, catalog, cause_catalog):
        assert catalog.process_keys == ["COMERCIAL", "OPERACOES", "ADM_FIN", "GESTAO"]
        assert all(len(p.questions) == 4 for p in catalog.processes)
        assert cause_catalog.gap("GAP_CAIXA_PREVISAO").process_key == "ADM_FIN"

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(IntegrityFailure) as exc_info:
            load_full_catalog(path)
        assert exc_info.value.code == "CATALOG_INVALID"

    def test_missing_file(self, tmp_path):
        with pytest.raises(IntegrityFailure):
            load_cause_catalog(tmp_path / "missing.json")

    def test_schema_violation(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"processes": []}), encoding="utf-8")
        with pytest.raises(IntegrityFailure):
            load_full_catalog(path)

    def test_band_enum_values(self):
        assert [b.value for b in Band] == ["LOW", "MEDIUM", "HIGH"]
