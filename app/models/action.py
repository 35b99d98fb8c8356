"""Action suggestion, plan and evidence models."""
from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import ActionStatus


class WhyItem(BaseModel):
    question_key: str
    answer: int
    label: str


class SuggestionOut(BaseModel):
    action_key: str
    process_key: str
    title: str
    source: str  # "mechanism" or "fit"
    steps: List[str] = Field(default_factory=list)
    owner_suggested: Optional[str] = None
    metric_suggested: Optional[str] = None
    matched_signals: int = 0
    why: List[WhyItem] = Field(default_factory=list)
    evidence_keys: List[str] = Field(default_factory=list)
    gap_id: Optional[str] = None
    cause_id: Optional[str] = None


class ContentGapOut(BaseModel):
    process_key: str
    band: Optional[str] = None
    reason: str


class ActionsResponse(BaseModel):
    suggestions: List[SuggestionOut]
    content_gaps: List[ContentGapOut]
    required_count: int
    remaining_count: int
    is_last_block: bool
    mechanism_required_action_keys: List[str]


class PlanItemIn(BaseModel):
    position: int
    action_key: str = Field(..., min_length=1, max_length=100)
    owner_name: str = Field(..., min_length=1, max_length=255)
    metric_text: str = Field(..., min_length=1, max_length=500)
    checkpoint_date: date


class PlanSelection(BaseModel):
    actions: List[PlanItemIn]


class PlanItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    position: int
    action_key: str
    title: Optional[str] = None
    owner_name: str
    metric_text: str
    checkpoint_date: date
    status: ActionStatus
    dropped_reason: Optional[str] = None
    dod_confirmed: bool = False
    has_evidence: bool = False


class PlanResponse(BaseModel):
    ok: bool = True
    plan: List[PlanItemOut]
    required_count: Optional[int] = None
    remaining_count: Optional[int] = None


class StatusUpdate(BaseModel):
    status: str
    dropped_reason: Optional[str] = None


class StatusUpdateResponse(BaseModel):
    ok: bool = True
    action_key: str
    status: ActionStatus
    dropped_reason: Optional[str] = None


class DoDConfirm(BaseModel):
    confirmed_items: List[str] = Field(default_factory=list)


class DoDResponse(BaseModel):
    action_key: str
    checklist: List[str]
    confirmed_items: List[str]
    confirmed: bool


class EvidenceCreate(BaseModel):
    evidence_text: str
    before_baseline: str
    after_result: str

    @model_validator(mode="after")
    def strip_fields(self) -> "EvidenceCreate":
        self.evidence_text = self.evidence_text.strip()
        self.before_baseline = self.before_baseline.strip()
        self.after_result = self.after_result.strip()
        return self


class EvidenceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    action_key: str
    evidence_text: str
    before_baseline: str
    after_result: str
    declared_gain: str
    created_at: Optional[datetime] = None


class EvidenceResponse(BaseModel):
    ok: bool = True
    already_exists: bool = False
    evidence: EvidenceOut


class GainOut(BaseModel):
    position: int
    action_key: str
    title: Optional[str] = None
    status: ActionStatus
    dropped_reason: Optional[str] = None
    declared_gain: Optional[str] = None


class CloseResponse(BaseModel):
    ok: bool = True
    already_closed: bool = False
    status: str
    gains: List[GainOut]


class NewCycleResponse(BaseModel):
    ok: bool = True
    assessment_id: str
    cycle_no: int
    full_version: int


class CycleHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    cycle_no: int
    position: int
    action_key: str
    status: str
    dropped_reason: Optional[str] = None
    declared_gain: Optional[str] = None
    archived_at: Optional[datetime] = None
