"""Assessment endpoints: intake, submit, results and the cycle."""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from app.catalog import get_catalog, get_cause_catalog
from app.config import get_settings
from app.database.orm import Assessment
from app.errors import StatePreconditionFailed, diag_not_ready
from app.models import (
    AnswerResponse,
    AnswersResponse,
    AnswersUpsert,
    AssessmentCurrentRequest,
    AssessmentDetailResponse,
    AssessmentResponse,
    CloseResponse,
    CycleHistoryOut,
    FindingResponse,
    NewCycleResponse,
    OkResponse,
    ResultsResponse,
    SixPack,
    SixPackItem,
    SubmitResponse,
)
from app.models.enums import SEGMENT_ALIASES, AssessmentStatus, FindingType, Segment
from app.pipelines import DiagnosticSubmitPipeline, PlanLifecycle
from app.scoring.utils import to_external_score
from app.services import (
    AuditService,
    CacheKeys,
    DiagnosticRepository,
    get_redis_cache,
    get_repository,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/assessments", tags=["Assessments"])


def normalize_segment(segment: Optional[str]) -> str:
    """COMERCIO/INDUSTRIA/SERVICOS or C/I/S; anything else falls back to C."""
    key = (segment or "").strip().upper()
    if key in SEGMENT_ALIASES:
        return SEGMENT_ALIASES[key].value
    logger.warning(f"Unknown segment {segment!r}, defaulting to {Segment.COMERCIO.value}")
    return Segment.COMERCIO.value


def _lifecycle(repo: DiagnosticRepository) -> PlanLifecycle:
    return PlanLifecycle(repo, get_catalog(), get_cause_catalog(), AuditService(repo))


def _six_pack_item(finding) -> SixPackItem:
    p = finding.payload or {}
    primeiro_passo = p.get("primeiro_passo") or {}
    refs = (finding.trace or {}).get("question_refs") or []
    return SixPackItem(
        title=p.get("gap_label") or p.get("processo_label") or finding.process_key,
        o_que_acontece=p.get("o_que_esta_acontecendo"),
        causa_porque=p.get("mechanism_label") or p.get("cause_label"),
        custo_nao_agir=p.get("custo_de_nao_agir"),
        muda_em_30_dias=p.get("o_que_muda_em_30_dias"),
        primeiro_passo_action_id=primeiro_passo.get("action_key"),
        primeiro_passo=primeiro_passo.get("action_title"),
        is_fallback=finding.is_fallback,
        evidence_keys=[
            f"{r['process_key']}:{r['question_key']}"
            for r in refs if r.get("process_key") and r.get("question_key")
        ],
    )


def build_results(repo: DiagnosticRepository, assessment: Assessment) -> ResultsResponse:
    """Scores on the 0–100 scale, stored findings and the six-pack view."""
    scores = [
        {
            "process_key": s.process_key,
            "band": s.band,
            "score": to_external_score(s.score_numeric),
            "score_numeric": s.score_numeric,
            "rule_used": s.rule_used,
            "dimension_scores": s.dimension_scores or {},
        }
        for s in repo.list_scores(assessment.id)
    ]
    findings = repo.list_findings(assessment.id)
    return ResultsResponse(
        assessment_id=assessment.id,
        status=AssessmentStatus(assessment.status),
        full_version=assessment.full_version,
        scores_by_process=scores,
        findings=[
            FindingResponse(
                type=FindingType(f.finding_type),
                position=f.position,
                payload=f.payload or {},
                trace=f.trace or {},
                is_fallback=f.is_fallback,
                gap_reason=f.gap_reason,
            )
            for f in findings
        ],
        six_pack=SixPack(
            vazamentos=[
                _six_pack_item(f) for f in findings
                if f.finding_type == FindingType.VAZAMENTO.value
            ],
            alavancas=[
                _six_pack_item(f) for f in findings
                if f.finding_type == FindingType.ALAVANCA.value
            ],
        ),
    )


@router.post(
    "/current",
    response_model=AssessmentResponse,
    summary="Get or create the company's current assessment"
)
async def get_or_create_current(
    body: AssessmentCurrentRequest,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """
    Return the company's DRAFT/SUBMITTED assessment, else its latest CLOSED
    one, else a new DRAFT.
    """
    assessment = repo.find_current_assessment(body.company_id)
    if assessment is None:
        assessment = repo.create_assessment(body.company_id, normalize_segment(body.segment))
        AuditService(repo).log_event(
            "assessment_created",
            assessment_id=assessment.id,
            company_id=assessment.company_id,
            segment=assessment.segment,
        )
        repo.commit()
    return AssessmentResponse.model_validate(assessment)


@router.get(
    "/{assessment_id}",
    response_model=AssessmentDetailResponse,
    summary="Get assessment with answer progress"
)
async def get_assessment(
    assessment_id: str,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """Get assessment by ID with answered/expected question counts."""
    assessment = repo.require_assessment(assessment_id)
    answered = {(a.process_key, a.question_key) for a in repo.list_answers(assessment.id)}

    answered_count = 0
    total_expected = 0
    completed = []
    for process in get_catalog().processes_for_segment(assessment.segment):
        keys = process.question_keys
        done = sum(1 for k in keys if (process.process_key, k) in answered)
        answered_count += done
        total_expected += len(keys)
        if keys and done == len(keys):
            completed.append(process.process_key)

    return AssessmentDetailResponse(
        **AssessmentResponse.model_validate(assessment).model_dump(),
        progress={
            "answered_count": answered_count,
            "total_expected": total_expected,
            "completed_process_keys": completed,
        },
    )


@router.api_route(
    "/{assessment_id}/answers",
    methods=["PUT", "POST"],
    response_model=OkResponse,
    summary="Upsert answers for one process"
)
async def upsert_answers(
    assessment_id: str,
    body: AnswersUpsert,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """Answers are mutable only while the assessment is DRAFT."""
    assessment = repo.require_assessment(assessment_id)
    if assessment.status != AssessmentStatus.DRAFT.value:
        raise StatePreconditionFailed(
            "DIAG_ALREADY_SUBMITTED",
            "Apenas diagnósticos em andamento podem receber respostas.",
            status=assessment.status,
        )
    count = repo.upsert_answers(
        assessment.id,
        body.process_key,
        [(a.question_key, a.answer_value) for a in body.answers],
    )
    AuditService(repo).log_event(
        "answers_upserted",
        assessment_id=assessment.id,
        company_id=assessment.company_id,
        process_key=body.process_key,
        count=count,
    )
    repo.commit()
    return OkResponse(ok=True, count=count)


@router.get(
    "/{assessment_id}/answers",
    response_model=AnswersResponse,
    summary="List stored answers"
)
async def list_answers(
    assessment_id: str,
    process_key: Optional[str] = Query(None, description="Filter by process"),
    repo: DiagnosticRepository = Depends(get_repository),
):
    assessment = repo.require_assessment(assessment_id)
    answers = [
        a for a in repo.list_answers(assessment.id)
        if process_key is None or a.process_key == process_key
    ]
    return AnswersResponse(
        answers=[AnswerResponse.model_validate(a) for a in answers],
        count=len(answers),
    )


@router.post(
    "/{assessment_id}/submit",
    response_model=SubmitResponse,
    summary="Submit the diagnostic"
)
async def submit_assessment(
    assessment_id: str,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """
    Score, classify gaps, generate findings and snapshot a DRAFT assessment.

    Requires every catalog question of the segment to be answered.
    """
    pipeline = DiagnosticSubmitPipeline(
        repo, get_catalog(), get_cause_catalog(), AuditService(repo)
    )
    outcome = pipeline.submit(assessment_id)
    repo.commit()

    get_redis_cache().invalidate_assessment(
        outcome.assessment.id, outcome.assessment.company_id
    )
    return outcome.to_dict()


@router.get(
    "/{assessment_id}/results",
    response_model=ResultsResponse,
    summary="Get diagnostic results"
)
async def get_results(
    assessment_id: str,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """Scores (0–100), findings and six-pack of a submitted assessment (cached)."""
    assessment = repo.require_assessment(assessment_id)
    if assessment.status == AssessmentStatus.DRAFT.value:
        raise diag_not_ready()

    cache = get_redis_cache()
    cache_key = CacheKeys.results(assessment.id)
    cached = cache.get(cache_key, ResultsResponse)
    if cached:
        return cached

    response = build_results(repo, assessment)
    cache.set(cache_key, response, get_settings().cache_ttl_results)
    return response


@router.post(
    "/{assessment_id}/close",
    response_model=CloseResponse,
    summary="Close the current cycle"
)
async def close_cycle(
    assessment_id: str,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """Close once every plan action is DONE, or DROPPED with a reason."""
    result = _lifecycle(repo).close(assessment_id)
    repo.commit()
    if not result["already_closed"]:
        assessment = repo.require_assessment(assessment_id)
        get_redis_cache().invalidate_assessment(assessment.id, assessment.company_id)
    return result


@router.post(
    "/{assessment_id}/new-cycle",
    response_model=NewCycleResponse,
    summary="Start a new cycle"
)
async def new_cycle(
    assessment_id: str,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """Archive the closed plan and reopen the assessment."""
    assessment = _lifecycle(repo).new_cycle(assessment_id)
    repo.commit()
    get_redis_cache().invalidate_assessment(assessment.id, assessment.company_id)
    return NewCycleResponse(
        assessment_id=assessment.id,
        cycle_no=assessment.cycle_no,
        full_version=assessment.full_version,
    )


@router.get(
    "/{assessment_id}/history",
    response_model=List[CycleHistoryOut],
    summary="Archived actions of previous cycles"
)
async def get_history(
    assessment_id: str,
    repo: DiagnosticRepository = Depends(get_repository),
):
    return _lifecycle(repo).history(assessment_id)
