"""Root-cause questionnaire endpoints for LOW-band gaps."""
from typing import List
from fastapi import APIRouter, Depends
from app.catalog import get_catalog, get_cause_catalog
from app.models import (
    CauseAnswerRequest,
    CauseAnswerResponse,
    CauseAnswersSave,
    CauseClassificationOut,
    OkResponse,
    PendingCausesResponse,
)
from app.pipelines import CauseClassificationService
from app.services import AuditService, DiagnosticRepository, get_redis_cache, get_repository

router = APIRouter(prefix="/api/v1/assessments", tags=["Causes"])


def _service(repo: DiagnosticRepository) -> CauseClassificationService:
    return CauseClassificationService(
        repo, get_catalog(), get_cause_catalog(), AuditService(repo)
    )


@router.get(
    "/{assessment_id}/causes/pending",
    response_model=PendingCausesResponse,
    summary="Gaps waiting for a root cause"
)
async def get_pending_causes(
    assessment_id: str,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """Pending gaps with their Likert questions, stored answers and options."""
    return _service(repo).pending(assessment_id)


@router.put(
    "/{assessment_id}/causes/{gap_id}/answers",
    response_model=OkResponse,
    summary="Save partial cause answers"
)
async def save_cause_answers(
    assessment_id: str,
    gap_id: str,
    body: CauseAnswersSave,
    repo: DiagnosticRepository = Depends(get_repository),
):
    count = _service(repo).save_answers(assessment_id, gap_id, body.answers)
    repo.commit()
    return OkResponse(ok=True, count=count)


@router.post(
    "/{assessment_id}/causes/answer",
    response_model=CauseAnswerResponse,
    summary="Answer and classify a gap"
)
async def answer_cause(
    assessment_id: str,
    body: CauseAnswerRequest,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """
    Merge the supplied answers with the stored ones and classify the gap.

    The findings and the open snapshot are regenerated with the mechanism
    copy once the gap is classified.
    """
    classification = _service(repo).answer(assessment_id, body.gap_id, body.answers)
    repo.commit()

    assessment = repo.require_assessment(assessment_id)
    get_redis_cache().invalidate_assessment(assessment.id, assessment.company_id)
    return CauseAnswerResponse(ok=True, classification=classification)


@router.get(
    "/{assessment_id}/causes",
    response_model=List[CauseClassificationOut],
    summary="List cause classifications"
)
async def list_causes(
    assessment_id: str,
    repo: DiagnosticRepository = Depends(get_repository),
):
    return _service(repo).list_classifications(assessment_id)
