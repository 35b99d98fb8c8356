"""Action plan endpoints: suggestions, selection, execution and evidence."""
from fastapi import APIRouter, Depends, Response, status
from app.catalog import get_catalog, get_cause_catalog
from app.models import (
    ActionsResponse,
    DoDConfirm,
    DoDResponse,
    EvidenceCreate,
    EvidenceOut,
    EvidenceResponse,
    PlanResponse,
    PlanSelection,
    StatusUpdate,
    StatusUpdateResponse,
)
from app.pipelines import PlanLifecycle
from app.services import AuditService, DiagnosticRepository, get_repository

router = APIRouter(prefix="/api/v1/assessments", tags=["Actions"])


def _lifecycle(repo: DiagnosticRepository) -> PlanLifecycle:
    return PlanLifecycle(repo, get_catalog(), get_cause_catalog(), AuditService(repo))


@router.get(
    "/{assessment_id}/actions",
    response_model=ActionsResponse,
    summary="Suggested actions for the next plan block"
)
async def get_action_suggestions(
    assessment_id: str,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """
    Mechanism actions of classified gaps first, then action-fit suggestions.

    Actions archived in previous cycles and actions already in the plan are
    left out.
    """
    lifecycle = _lifecycle(repo)
    assessment = repo.require_assessment(assessment_id)
    pool = lifecycle.suggestions.build(assessment)
    repo.commit()
    return pool.to_dict()


@router.post(
    "/{assessment_id}/plan",
    response_model=PlanResponse,
    summary="Select the plan actions"
)
async def select_plan(
    assessment_id: str,
    body: PlanSelection,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """Replace the plan with exactly ``min(3, remaining)`` eligible actions."""
    result = _lifecycle(repo).select_plan(assessment_id, body.actions)
    repo.commit()
    return result


@router.get(
    "/{assessment_id}/plan",
    response_model=PlanResponse,
    summary="Current plan with DoD and evidence flags"
)
async def get_plan(
    assessment_id: str,
    repo: DiagnosticRepository = Depends(get_repository),
):
    return PlanResponse(ok=True, plan=_lifecycle(repo).get_plan(assessment_id))


@router.post(
    "/{assessment_id}/actions/{action_key}/status",
    response_model=StatusUpdateResponse,
    summary="Update a plan action's status"
)
async def update_action_status(
    assessment_id: str,
    action_key: str,
    body: StatusUpdate,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """
    NOT_STARTED → IN_PROGRESS | DONE | DROPPED, IN_PROGRESS → DONE | DROPPED.

    DONE needs a confirmed checklist and evidence; DROPPED needs a reason.
    """
    action = _lifecycle(repo).update_status(
        assessment_id, action_key, body.status, body.dropped_reason
    )
    repo.commit()
    return StatusUpdateResponse(
        ok=True,
        action_key=action.action_key,
        status=action.status,
        dropped_reason=action.dropped_reason,
    )


@router.get(
    "/{assessment_id}/actions/{action_key}/dod",
    response_model=DoDResponse,
    summary="Definition-of-done checklist"
)
async def get_dod(
    assessment_id: str,
    action_key: str,
    repo: DiagnosticRepository = Depends(get_repository),
):
    return _lifecycle(repo).get_dod(assessment_id, action_key)


@router.post(
    "/{assessment_id}/actions/{action_key}/dod",
    response_model=DoDResponse,
    summary="Confirm the definition-of-done checklist"
)
async def confirm_dod(
    assessment_id: str,
    action_key: str,
    body: DoDConfirm,
    repo: DiagnosticRepository = Depends(get_repository),
):
    result = _lifecycle(repo).confirm_dod(assessment_id, action_key, body.confirmed_items)
    repo.commit()
    return result


@router.post(
    "/{assessment_id}/actions/{action_key}/evidence",
    response_model=EvidenceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record action evidence (write-once)"
)
async def record_evidence(
    assessment_id: str,
    action_key: str,
    body: EvidenceCreate,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """Returns 409 ``EVIDENCE_WRITE_ONCE`` if evidence already exists."""
    row, _ = _lifecycle(repo).record_evidence(
        assessment_id,
        action_key,
        body.evidence_text,
        body.before_baseline,
        body.after_result,
        strict=True,
    )
    repo.commit()
    return EvidenceResponse(ok=True, evidence=EvidenceOut.model_validate(row))


@router.post(
    "/{assessment_id}/cycle/actions/{action_key}/evidence",
    response_model=EvidenceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record cycle evidence (write-once, idempotent)"
)
async def record_cycle_evidence(
    assessment_id: str,
    action_key: str,
    body: EvidenceCreate,
    response: Response,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """A repeat returns the stored evidence with 200 and ``already_exists``."""
    row, already_exists = _lifecycle(repo).record_evidence(
        assessment_id,
        action_key,
        body.evidence_text,
        body.before_baseline,
        body.after_result,
        strict=False,
    )
    repo.commit()
    if already_exists:
        response.status_code = status.HTTP_200_OK
    return EvidenceResponse(
        ok=True,
        already_exists=already_exists,
        evidence=EvidenceOut.model_validate(row),
    )
