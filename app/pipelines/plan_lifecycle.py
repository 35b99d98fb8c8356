"""Plan lifecycle: selection, execution, evidence, close and new cycle.

  SUBMITTED ──select──► plan (N actions, NOT_STARTED)
      │                   │ status / DoD / evidence
      │                   ▼
      └────close────► CLOSED ──new_cycle──► SUBMITTED (cycle_no + 1)

Every mutation on a CLOSED assessment is rejected with CYCLE_CLOSED (409).
Evidence is write-once per action; the strict and lenient callers differ only
in how a repeat is reported.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from app.catalog.models import CauseCatalog, FullCatalog
from app.config import Settings, get_settings
from app.database.orm import ActionEvidence, Assessment, CycleHistory, SelectedAction
from app.errors import (
    IncompleteError,
    StatePreconditionFailed,
    ValidationFailed,
    WriteOnceConflict,
    action_not_found,
    cycle_closed,
    diag_not_ready,
)
from app.models.enums import (
    ACTION_STATUS_TRANSITIONS,
    TERMINAL_ACTION_STATUSES,
    ActionStatus,
    AssessmentEvent,
    AssessmentStatus,
    ValueEvent,
    next_assessment_status,
)
from app.pipelines.action_suggestions import ActionSuggestionService
from app.pipelines.snapshot_service import SnapshotService
from app.services.audit import AuditService
from app.services.repository import DiagnosticRepository, PlanRowInput

logger = logging.getLogger(__name__)

DEFAULT_DOD_CHECKLIST = ["Definir escopo", "Executar conforme contexto", "Documentar resultado"]


def declared_gain(before_baseline: str, after_result: str) -> str:
    return f"De {before_baseline} para {after_result}"


class PlanLifecycle:
    """Drive the plan of one assessment through its cycle."""

    def __init__(
        self,
        repo: DiagnosticRepository,
        catalog: FullCatalog,
        cause_catalog: CauseCatalog,
        audit: AuditService,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self.repo = repo
        self.catalog = catalog
        self.cause_catalog = cause_catalog
        self.audit = audit
        self.max_plan_actions = settings.max_plan_actions
        self.drop_reason_min_length = settings.drop_reason_min_length
        self.suggestions = ActionSuggestionService(
            repo, catalog, cause_catalog, audit, block_size=settings.max_plan_actions
        )
        self.snapshots = SnapshotService(repo, catalog, cause_catalog)

    # ── Guards ───────────────────────────────────────────────────────────────

    def _require_open(self, assessment_id: str) -> Assessment:
        assessment = self.repo.require_assessment(assessment_id)
        if assessment.status == AssessmentStatus.CLOSED.value:
            raise cycle_closed()
        return assessment

    def _require_plan_action(self, assessment: Assessment, action_key: str) -> SelectedAction:
        action = self.repo.get_plan_action(assessment.id, action_key)
        if action is None:
            raise action_not_found(action_key)
        return action

    def _valid_drop_reason(self, reason: Optional[str]) -> bool:
        return len((reason or "").strip()) >= self.drop_reason_min_length

    def _drop_reason_required(self, action_key: str) -> ValidationFailed:
        return ValidationFailed(
            "DROP_REASON_REQUIRED",
            f"Ao descartar uma ação, informe o motivo (mínimo {self.drop_reason_min_length} caracteres).",
            action_key=action_key,
            min_length=self.drop_reason_min_length,
        )

    # ── Reads ────────────────────────────────────────────────────────────────

    def checklist(self, action_key: str) -> List[str]:
        """Catalog ``done_when``, else the mechanism action's, else the default."""
        action = self.catalog.action(action_key)
        if action is not None and action.done_when:
            return list(action.done_when)
        mechanism = self.cause_catalog.mechanism_action(action_key)
        if mechanism is not None and mechanism.done_when:
            return list(mechanism.done_when)
        return list(DEFAULT_DOD_CHECKLIST)

    def plan_out(self, assessment: Assessment) -> List[dict]:
        dod_keys = self.repo.list_dod_keys(assessment.id)
        evidence_keys = {e.action_key for e in self.repo.list_evidence(assessment.id)}
        return [
            {
                "position": p.position,
                "action_key": p.action_key,
                "title": self.snapshots.action_title(p.action_key),
                "owner_name": p.owner_name,
                "metric_text": p.metric_text,
                "checkpoint_date": p.checkpoint_date,
                "status": p.status,
                "dropped_reason": p.dropped_reason,
                "dod_confirmed": p.action_key in dod_keys,
                "has_evidence": p.action_key in evidence_keys,
            }
            for p in self.repo.list_plan(assessment.id)
        ]

    def get_plan(self, assessment_id: str) -> List[dict]:
        return self.plan_out(self.repo.require_assessment(assessment_id))

    def gains(self, assessment: Assessment) -> List[dict]:
        evidence = {e.action_key: e for e in self.repo.list_evidence(assessment.id)}
        return [
            {
                "position": p.position,
                "action_key": p.action_key,
                "title": self.snapshots.action_title(p.action_key),
                "status": p.status,
                "dropped_reason": p.dropped_reason,
                "declared_gain": evidence[p.action_key].declared_gain if p.action_key in evidence else None,
            }
            for p in self.repo.list_plan(assessment.id)
        ]

    def history(self, assessment_id: str) -> List[CycleHistory]:
        assessment = self.repo.require_assessment(assessment_id)
        return self.repo.list_history(assessment.id)

    # ── Selection ────────────────────────────────────────────────────────────

    def select_plan(self, assessment_id: str, items: Sequence) -> dict:
        """Replace the plan with exactly ``required_count`` eligible actions.

        Raises:
            StatePreconditionFailed: CYCLE_CLOSED, DIAG_NOT_READY, NO_ACTIONS_LEFT.
            ValidationFailed: INVALID_ACTION_COUNT, INVALID_POSITION,
                DUPLICATE_ACTION, DUPLICATE_POSITION, VALIDATION_ERROR,
                ACTION_NOT_ELIGIBLE, MECHANISM_ACTION_REQUIRED.
        """
        assessment = self._require_open(assessment_id)
        if assessment.status != AssessmentStatus.SUBMITTED.value:
            raise diag_not_ready()

        pool = self.suggestions.build(assessment)
        if pool.remaining_count == 0:
            raise StatePreconditionFailed(
                "NO_ACTIONS_LEFT",
                "Não há mais ações sugeridas. Acesse os resultados ou o dashboard.",
            )

        required = pool.required_count
        if len(items) != required:
            raise ValidationFailed(
                "INVALID_ACTION_COUNT",
                "Selecione exatamente 1 ação para este bloco." if required == 1
                else f"Selecione exatamente {required} ações para este bloco.",
                required_count=required,
                remaining_count=pool.remaining_count,
            )

        rows: List[PlanRowInput] = []
        seen_keys, seen_positions = set(), set()
        for item in items:
            owner = item.owner_name.strip()
            metric = item.metric_text.strip()
            if not owner or not metric:
                raise ValidationFailed(
                    "VALIDATION_ERROR",
                    "Cada ação exige responsável, métrica e data de checkpoint.",
                    fields=[f for f, v in (("owner_name", owner), ("metric_text", metric)) if not v],
                    action_key=item.action_key,
                )
            if not 1 <= item.position <= required:
                raise ValidationFailed(
                    "INVALID_POSITION",
                    f"A posição deve ser de 1 a {required}.",
                    position=item.position,
                )
            if item.action_key in seen_keys:
                raise ValidationFailed(
                    "DUPLICATE_ACTION", "Ação repetida na seleção.", action_key=item.action_key
                )
            if item.position in seen_positions:
                raise ValidationFailed(
                    "DUPLICATE_POSITION", "Posição repetida na seleção.", position=item.position
                )
            seen_keys.add(item.action_key)
            seen_positions.add(item.position)
            rows.append(PlanRowInput(
                action_key=item.action_key,
                position=item.position,
                owner_name=owner,
                metric_text=metric,
                checkpoint_date=item.checkpoint_date,
            ))

        eligible = set(pool.action_keys)
        not_eligible = [r.action_key for r in rows if r.action_key not in eligible]
        if not_eligible:
            raise ValidationFailed(
                "ACTION_NOT_ELIGIBLE",
                "Uma ou mais ações não estão entre as sugeridas para este bloco.",
                action_keys=not_eligible,
            )

        mechanism_keys = pool.mechanism_required_action_keys
        if mechanism_keys and not seen_keys & set(mechanism_keys):
            raise ValidationFailed(
                "MECHANISM_ACTION_REQUIRED",
                "Sem atacar a causa, você volta ao mesmo problema. "
                "Inclua pelo menos uma ação do mecanismo indicado.",
                mechanism_action_keys=mechanism_keys,
            )

        self.repo.replace_plan(assessment.id, sorted(rows, key=lambda r: r.position))
        self.audit.emit_value_event(
            ValueEvent.PLAN_CREATED,
            assessment.id,
            company_id=assessment.company_id,
            action_keys=[r.action_key for r in rows],
        )
        logger.info(f"Plan selected for {assessment.id}: {[r.action_key for r in rows]}")
        return {
            "ok": True,
            "plan": self.plan_out(assessment),
            "required_count": required,
            "remaining_count": pool.remaining_count,
        }

    # ── Execution ────────────────────────────────────────────────────────────

    def update_status(
        self,
        assessment_id: str,
        action_key: str,
        status: str,
        dropped_reason: Optional[str] = None,
    ) -> SelectedAction:
        """Move a plan action along ``ACTION_STATUS_TRANSITIONS``.

        Re-setting the current status is a no-op.
        """
        try:
            target = ActionStatus(status)
        except ValueError:
            raise ValidationFailed(
                "INVALID_STATUS",
                "Status inválido.",
                status=status,
                allowed=[s.value for s in ActionStatus],
            ) from None

        assessment = self._require_open(assessment_id)
        action = self._require_plan_action(assessment, action_key)
        current = ActionStatus(action.status)
        if target == current:
            return action
        if target not in ACTION_STATUS_TRANSITIONS[current]:
            raise StatePreconditionFailed(
                "INVALID_TRANSITION",
                "Mudança de status não permitida.",
                from_status=current.value,
                to_status=target.value,
            )

        if target == ActionStatus.DONE:
            dod = self.repo.get_dod(assessment.id, action_key)
            confirmed = set(dod.confirmed_items) if dod else set()
            missing = [i for i in self.checklist(action_key) if i not in confirmed]
            if dod is None or missing:
                raise IncompleteError(
                    "CHECKLIST_INCOMPLETE",
                    "Falta confirmar o que conta como feito.",
                    missing_items=missing,
                )
            if self.repo.get_evidence(assessment.id, action_key) is None:
                raise IncompleteError(
                    "EVIDENCE_REQUIRED",
                    "Para concluir, registre a evidência (antes e depois).",
                )
        if target == ActionStatus.DROPPED:
            if not self._valid_drop_reason(dropped_reason):
                raise self._drop_reason_required(action_key)
            action.dropped_reason = dropped_reason.strip()

        action.status = target.value
        self.repo.session.flush()
        self.audit.log_event(
            "action_status_changed",
            assessment_id=assessment.id,
            company_id=assessment.company_id,
            action_key=action_key,
            from_status=current.value,
            to_status=target.value,
        )
        return action

    def get_dod(self, assessment_id: str, action_key: str) -> dict:
        assessment = self.repo.require_assessment(assessment_id)
        row = self.repo.get_dod(assessment.id, action_key)
        return {
            "action_key": action_key,
            "checklist": self.checklist(action_key),
            "confirmed_items": list(row.confirmed_items) if row else [],
            "confirmed": row is not None,
        }

    def confirm_dod(self, assessment_id: str, action_key: str, items: Sequence[str]) -> dict:
        """Confirm every checklist item of a plan action."""
        assessment = self._require_open(assessment_id)
        self._require_plan_action(assessment, action_key)
        checklist = self.checklist(action_key)
        confirmed = {i.strip() for i in items}
        missing = [i for i in checklist if i not in confirmed]
        if missing:
            raise IncompleteError(
                "CHECKLIST_INCOMPLETE",
                "Confirme todos os itens do checklist.",
                missing_items=missing,
            )
        self.repo.upsert_dod(assessment.id, action_key, checklist)
        self.audit.log_event(
            "dod_confirmed",
            assessment_id=assessment.id,
            company_id=assessment.company_id,
            action_key=action_key,
        )
        return {
            "action_key": action_key,
            "checklist": checklist,
            "confirmed_items": checklist,
            "confirmed": True,
        }

    def record_evidence(
        self,
        assessment_id: str,
        action_key: str,
        evidence_text: str,
        before_baseline: str,
        after_result: str,
        strict: bool = True,
    ) -> tuple[ActionEvidence, bool]:
        """Write-once evidence; returns ``(row, already_exists)``.

        Raises:
            WriteOnceConflict: EVIDENCE_WRITE_ONCE on a repeat when ``strict``.
        """
        assessment = self._require_open(assessment_id)
        self._require_plan_action(assessment, action_key)
        fields = {
            "evidence_text": evidence_text.strip(),
            "before_baseline": before_baseline.strip(),
            "after_result": after_result.strip(),
        }
        blank = [k for k, v in fields.items() if not v]
        if blank:
            raise ValidationFailed(
                "VALIDATION_ERROR",
                "Evidência, antes e depois são obrigatórios.",
                fields=blank,
            )

        gain = declared_gain(fields["before_baseline"], fields["after_result"])
        result = self.repo.insert_evidence(assessment.id, action_key, declared_gain=gain, **fields)
        if result.conflict:
            logger.info(f"Evidence repeat for {assessment.id}/{action_key} (strict={strict})")
            if strict:
                raise WriteOnceConflict(
                    "EVIDENCE_WRITE_ONCE",
                    "Evidência já registrada. Não é possível editar.",
                    action_key=action_key,
                )
            return result.row, True

        self.audit.log_event(
            "evidence_recorded",
            assessment_id=assessment.id,
            company_id=assessment.company_id,
            action_key=action_key,
        )
        self.audit.emit_value_event(
            ValueEvent.GAIN_DECLARED,
            assessment.id,
            company_id=assessment.company_id,
            action_key=action_key,
            declared_gain=gain,
        )
        return result.row, False

    # ── Cycle ────────────────────────────────────────────────────────────────

    def close(self, assessment_id: str) -> dict:
        """Close the cycle once every plan action is DONE or DROPPED."""
        assessment = self.repo.require_assessment(assessment_id)
        if assessment.status == AssessmentStatus.CLOSED.value:
            return {
                "ok": True,
                "already_closed": True,
                "status": assessment.status,
                "gains": self.gains(assessment),
            }
        target, _ = next_assessment_status(
            AssessmentStatus(assessment.status), AssessmentEvent.CLOSE
        )
        if target is None:
            raise diag_not_ready()

        plan = self.repo.list_plan(assessment.id)
        if not plan:
            raise StatePreconditionFailed(
                "PLAN_REQUIRED", "Selecione as ações do plano antes de encerrar o ciclo."
            )
        pending = [
            {"action_key": p.action_key, "status": p.status}
            for p in plan
            if ActionStatus(p.status) not in TERMINAL_ACTION_STATUSES
        ]
        if pending:
            raise StatePreconditionFailed(
                "ACTIONS_PENDING",
                "Conclua ou descarte todas as ações antes de encerrar o ciclo.",
                pending=pending,
            )
        for p in plan:
            if p.status == ActionStatus.DROPPED.value and not self._valid_drop_reason(p.dropped_reason):
                raise self._drop_reason_required(p.action_key)

        assessment.status = target.value
        assessment.closed_at = datetime.now(timezone.utc)
        self.repo.session.flush()
        self.snapshots.on_close(assessment, plan, self.repo.list_evidence(assessment.id))
        self.audit.log_event(
            "cycle_closed",
            assessment_id=assessment.id,
            company_id=assessment.company_id,
            cycle_no=assessment.cycle_no,
            full_version=assessment.full_version,
        )
        logger.info(f"Closed cycle {assessment.cycle_no} of {assessment.id}")
        return {
            "ok": True,
            "already_closed": False,
            "status": assessment.status,
            "gains": self.gains(assessment),
        }

    def new_cycle(self, assessment_id: str) -> Assessment:
        """Archive the closed plan and reopen the assessment for the next cycle."""
        assessment = self.repo.require_assessment(assessment_id)
        target, reject = next_assessment_status(
            AssessmentStatus(assessment.status), AssessmentEvent.NEW_CYCLE
        )
        if target is None:
            raise StatePreconditionFailed(
                reject, "Encerre o ciclo atual antes de iniciar um novo."
            )

        evidence: Dict[str, ActionEvidence] = {
            e.action_key: e for e in self.repo.list_evidence(assessment.id)
        }
        history = []
        for p in self.repo.list_plan(assessment.id):
            ev = evidence.get(p.action_key)
            history.append(CycleHistory(
                assessment_id=assessment.id,
                cycle_no=assessment.cycle_no,
                action_key=p.action_key,
                position=p.position,
                owner_name=p.owner_name,
                metric_text=p.metric_text,
                status=p.status,
                dropped_reason=p.dropped_reason,
                declared_gain=ev.declared_gain if ev else None,
                evidence={
                    "evidence_text": ev.evidence_text,
                    "before_baseline": ev.before_baseline,
                    "after_result": ev.after_result,
                } if ev else None,
            ))
        self.repo.append_history(history)
        self.repo.clear_cycle(assessment.id)

        previous_version = assessment.full_version
        assessment.cycle_no += 1
        assessment.status = target.value
        assessment.closed_at = None
        assessment.full_version = self.repo.next_full_version(assessment.company_id)
        self.repo.session.flush()
        self.snapshots.seed_new_cycle(assessment, previous_version)
        self.audit.log_event(
            "new_cycle_started",
            assessment_id=assessment.id,
            company_id=assessment.company_id,
            cycle_no=assessment.cycle_no,
            full_version=assessment.full_version,
            archived_actions=len(history),
        )
        logger.info(f"Assessment {assessment.id} reopened as cycle {assessment.cycle_no}")
        return assessment
