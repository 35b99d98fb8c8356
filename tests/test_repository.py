"""Tests for the diagnostic repository."""
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.database.orm import ActionEvidence, AuditEvent, DiagnosticSnapshot, GapCause
from app.errors import NotFoundError
from app.models.enums import AssessmentStatus, ValueEvent
from app.services import PlanRowInput


@pytest.fixture
def assessment(repo, sample_company_id):
    return repo.create_assessment(sample_company_id, "C")


def _evidence(assessment_id, text="Planilha publicada"):
    return ActionEvidence(
        assessment_id=assessment_id,
        action_key="COMERCIAL-FUNIL_SEMANAL",
        evidence_text=text,
        before_baseline="sem funil",
        after_result="funil semanal",
        declared_gain="De sem funil para funil semanal",
    )


class TestAssessments:
    """Tests for assessment lookups."""

    def test_create_starts_as_draft(self, assessment):
        assert assessment.status == AssessmentStatus.DRAFT.value
        assert assessment.cycle_no == 1
        assert assessment.full_version is None

    def test_require_unknown_assessment(self, repo):
        with pytest.raises(NotFoundError) as exc:
            repo.require_assessment("nope")
        assert exc.value.code == "DIAG_NOT_FOUND"

    def test_current_prefers_active_over_closed(self, repo, sample_company_id):
        closed = repo.create_assessment(sample_company_id, "C")
        closed.status = AssessmentStatus.CLOSED.value
        closed.closed_at = datetime.now(timezone.utc)
        active = repo.create_assessment(sample_company_id, "C")
        assert repo.find_current_assessment(sample_company_id).id == active.id

    def test_current_falls_back_to_latest_closed(self, repo, sample_company_id):
        older = repo.create_assessment(sample_company_id, "C")
        older.status = AssessmentStatus.CLOSED.value
        older.closed_at = datetime.now(timezone.utc) - timedelta(days=30)
        newer = repo.create_assessment(sample_company_id, "C")
        newer.status = AssessmentStatus.CLOSED.value
        newer.closed_at = datetime.now(timezone.utc)
        repo.session.flush()
        assert repo.find_current_assessment(sample_company_id).id == newer.id

    def test_current_for_unknown_company(self, repo):
        assert repo.find_current_assessment("other-company") is None

    def test_next_full_version_is_company_wide(self, repo, sample_company_id, assessment):
        assert repo.next_full_version(sample_company_id) == 1
        assessment.full_version = 2
        repo.save_snapshot(DiagnosticSnapshot(
            assessment_id=assessment.id,
            company_id=sample_company_id,
            full_version=4,
            cycle_no=1,
            segment="C",
        ))
        assert repo.next_full_version(sample_company_id) == 5
        assert repo.next_full_version("other-company") == 1


class TestAnswers:
    """Tests for answer upserts."""

    def test_upsert_overwrites_by_question(self, repo, assessment):
        repo.upsert_answers(assessment.id, "COMERCIAL", [("Q01", 3), ("Q02", 4)])
        repo.upsert_answers(assessment.id, "COMERCIAL", [("Q01", 8)])
        answers = {(a.process_key, a.question_key): a.answer_value for a in repo.list_answers(assessment.id)}
        assert answers == {("COMERCIAL", "Q01"): 8, ("COMERCIAL", "Q02"): 4}


class TestWriteOnce:
    """Tests for insert_unique and evidence inserts."""

    def test_insert_unique_reports_conflict(self, repo, assessment):
        first = repo.insert_unique(_evidence(assessment.id))
        second = repo.insert_unique(_evidence(assessment.id, text="Outro texto"))
        assert first.conflict is False
        assert second.conflict is True
        assert second.row is None
        # The session stays usable after the rolled-back savepoint
        assert repo.get_evidence(assessment.id, "COMERCIAL-FUNIL_SEMANAL").evidence_text == "Planilha publicada"

    def test_insert_evidence_keeps_first_writer(self, repo, assessment):
        kwargs = dict(
            before_baseline="sem funil",
            after_result="funil semanal",
            declared_gain="De sem funil para funil semanal",
        )
        first = repo.insert_evidence(assessment.id, "GESTAO-METAS_DONOS", evidence_text="primeira", **kwargs)
        second = repo.insert_evidence(assessment.id, "GESTAO-METAS_DONOS", evidence_text="segunda", **kwargs)
        assert first.conflict is False
        assert second.conflict is True
        assert second.row.evidence_text == "primeira"


class TestGapsAndPlan:
    """Tests for gap sync and plan replacement."""

    def test_sync_gap_instances_removes_stale_gaps(self, repo, assessment):
        repo.sync_gap_instances(assessment.id, {
            "GAP_CAIXA_PREVISAO": "ADM_FIN", "GAP_VENDAS_FUNIL": "COMERCIAL"
        })
        repo.upsert_gap_cause(
            assessment.id, "GAP_VENDAS_FUNIL", "CAUSE_PADRAO", None, [], {}, "cause-engine-v1"
        )
        instances = repo.sync_gap_instances(assessment.id, {"GAP_CAIXA_PREVISAO": "ADM_FIN"})
        assert [g.gap_id for g in instances] == ["GAP_CAIXA_PREVISAO"]
        assert instances[0].status == "CAUSE_PENDING"
        assert repo.session.scalars(select(GapCause)).all() == []

    def test_replace_plan(self, repo, assessment):
        checkpoint = date(2026, 11, 30)
        repo.replace_plan(assessment.id, [
            PlanRowInput("GESTAO-METAS_DONOS", 2, "Ana", "Metas com dono", checkpoint),
            PlanRowInput("COMERCIAL-FUNIL_SEMANAL", 1, "Rui", "Funil semanal", checkpoint),
        ])
        plan = repo.replace_plan(assessment.id, [
            PlanRowInput("ADM_FIN-FLUXO_CAIXA_13S", 1, "Bia", "Caixa 13 semanas", checkpoint),
        ])
        assert [(p.position, p.action_key, p.status) for p in plan] == [
            (1, "ADM_FIN-FLUXO_CAIXA_13S", "NOT_STARTED")
        ]

    def test_clear_cycle(self, repo, assessment):
        repo.replace_plan(assessment.id, [
            PlanRowInput("COMERCIAL-FUNIL_SEMANAL", 1, "Rui", "Funil semanal", date(2026, 11, 30)),
        ])
        repo.upsert_dod(assessment.id, "COMERCIAL-FUNIL_SEMANAL", ["a"])
        repo.insert_unique(_evidence(assessment.id))
        repo.clear_cycle(assessment.id)
        assert repo.list_plan(assessment.id) == []
        assert repo.list_dod_keys(assessment.id) == set()
        assert repo.list_evidence(assessment.id) == []


class TestAudit:
    """Tests for the audit trail."""

    def test_events_are_persisted(self, repo, audit, assessment):
        audit.log_event("answers_upserted", assessment_id=assessment.id, count=4)
        audit.emit_value_event(ValueEvent.PLAN_CREATED, assessment.id, action_keys=["X"])
        events = repo.session.scalars(select(AuditEvent).order_by(AuditEvent.kind)).all()
        assert [(e.kind, e.event) for e in events] == [
            ("audit", "answers_upserted"),
            ("value", "PLAN_CREATED"),
        ]
        assert events[0].payload == {"count": 4}
