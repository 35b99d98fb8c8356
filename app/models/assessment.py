"""Assessment, answer and score models."""
from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.enums import AssessmentStatus, Band, FindingType


class AssessmentCurrentRequest(BaseModel):
    """Get-or-create the company's current assessment."""
    company_id: str = Field(..., min_length=1, max_length=36)
    segment: Optional[str] = Field(
        None, description="C/I/S or COMERCIO/INDUSTRIA/SERVICOS; unknown → C"
    )


class AssessmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    segment: str
    status: AssessmentStatus
    cycle_no: int
    full_version: Optional[int] = None
    created_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class AssessmentProgress(BaseModel):
    answered_count: int
    total_expected: int
    completed_process_keys: List[str]


class AssessmentDetailResponse(AssessmentResponse):
    progress: AssessmentProgress


class AnswerItem(BaseModel):
    question_key: str = Field(..., min_length=1, max_length=50)
    answer_value: int = Field(..., ge=0, le=10)


class AnswersUpsert(BaseModel):
    """Batch of answers for one process."""
    process_key: str = Field(..., min_length=1, max_length=20)
    answers: List[AnswerItem] = Field(..., min_length=1)

    @field_validator("answers")
    @classmethod
    def unique_question_keys(cls, v: List[AnswerItem]) -> List[AnswerItem]:
        keys = [a.question_key for a in v]
        if len(keys) != len(set(keys)):
            raise ValueError("question_key must be unique within a batch")
        return v


class AnswerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    process_key: str
    question_key: str
    answer_value: int


class ProcessScoreResponse(BaseModel):
    process_key: str
    score_numeric: float = Field(..., ge=0, le=10)
    band: Band
    rule_used: str
    dimension_scores: dict[str, Optional[float]]


class SubmitResponse(BaseModel):
    ok: bool = True
    status: AssessmentStatus
    full_version: int
    scores: List[ProcessScoreResponse]
    findings_count: int
    gap_instances: List[dict[str, Any]] = Field(default_factory=list)


class FindingResponse(BaseModel):
    type: FindingType
    position: int = Field(..., ge=1, le=3)
    payload: dict[str, Any]
    trace: dict[str, Any]
    is_fallback: bool = False
    gap_reason: Optional[str] = None


class SixPackItem(BaseModel):
    title: str
    o_que_acontece: Optional[str] = None
    causa_porque: Optional[str] = None
    custo_nao_agir: Optional[str] = None
    muda_em_30_dias: Optional[str] = None
    primeiro_passo_action_id: Optional[str] = None
    primeiro_passo: Optional[str] = None
    is_fallback: bool = False
    evidence_keys: List[str] = Field(default_factory=list)


class SixPack(BaseModel):
    vazamentos: List[SixPackItem]
    alavancas: List[SixPackItem]


class ResultsResponse(BaseModel):
    """Submitted assessment results; scores are exposed on a 0–100 scale."""
    assessment_id: str
    status: AssessmentStatus
    full_version: Optional[int] = None
    scores_by_process: List[dict[str, Any]]
    findings: List[FindingResponse]
    six_pack: SixPack


class AnswersResponse(BaseModel):
    answers: List[AnswerResponse]
    count: int
