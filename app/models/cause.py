"""Root-cause questionnaire models."""
from typing import List, Optional
from pydantic import BaseModel, Field

from app.models.enums import GapStatus


class CauseAnswerItem(BaseModel):
    q_id: str = Field(..., min_length=1, max_length=50)
    # Validated against the Likert scale by the engine so that an invalid value
    # surfaces as INVALID_ANSWER rather than a generic validation error.
    answer: str = Field(..., min_length=1, max_length=30)


class CauseAnswersSave(BaseModel):
    answers: List[CauseAnswerItem] = Field(..., min_length=1)


class CauseAnswerRequest(BaseModel):
    gap_id: str = Field(..., min_length=1, max_length=50)
    answers: List[CauseAnswerItem] = Field(default_factory=list)


class CauseQuestionOut(BaseModel):
    q_id: str
    texto_cliente: str
    answer: Optional[str] = None


class LikertOption(BaseModel):
    value: str
    label: str


class PendingGapOut(BaseModel):
    gap_id: str
    process_key: str
    titulo_cliente: str
    descricao_cliente: str
    status: GapStatus
    questions: List[CauseQuestionOut]
    answered_count: int
    total_questions: int


class PendingCausesResponse(BaseModel):
    pending: List[PendingGapOut]
    likert_options: List[LikertOption]


class CauseEvidenceOut(BaseModel):
    q_id: str
    answer: str
    texto_cliente: str


class CauseClassificationOut(BaseModel):
    gap_id: str
    process_key: Optional[str] = None
    cause_primary: str
    cause_primary_label: Optional[str] = None
    cause_secondary: Optional[str] = None
    cause_secondary_label: Optional[str] = None
    evidence: List[CauseEvidenceOut]
    score: dict[str, int]
    version: str


class CauseAnswerResponse(BaseModel):
    ok: bool = True
    classification: CauseClassificationOut
