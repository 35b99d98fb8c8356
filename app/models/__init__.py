"""Pydantic models for the Full Diagnostic API."""

# Common Models
from app.models.common import (
    HealthResponse,
    ErrorResponse,
    OkResponse,
)

# Enums
from app.models.enums import (
    AssessmentStatus,
    AssessmentEvent,
    ActionStatus,
    Band,
    BandRule,
    Dimension,
    FindingType,
    GapStatus,
    Likert,
    ProcessKey,
    Segment,
    ValueEvent,
    ACTION_STATUS_TRANSITIONS,
    ASSESSMENT_TRANSITIONS,
)

# Assessment / answers / results
from app.models.assessment import (
    AssessmentCurrentRequest,
    AssessmentResponse,
    AssessmentDetailResponse,
    AssessmentProgress,
    AnswerItem,
    AnswersUpsert,
    AnswerResponse,
    AnswersResponse,
    ProcessScoreResponse,
    SubmitResponse,
    FindingResponse,
    SixPack,
    SixPackItem,
    ResultsResponse,
)

# Root cause
from app.models.cause import (
    CauseAnswerItem,
    CauseAnswersSave,
    CauseAnswerRequest,
    CauseAnswerResponse,
    CauseClassificationOut,
    PendingCausesResponse,
)

# Actions / plan / evidence
from app.models.action import (
    ActionsResponse,
    PlanItemIn,
    PlanSelection,
    PlanItemOut,
    PlanResponse,
    StatusUpdate,
    StatusUpdateResponse,
    DoDConfirm,
    DoDResponse,
    EvidenceCreate,
    EvidenceOut,
    EvidenceResponse,
    GainOut,
    CloseResponse,
    NewCycleResponse,
    CycleHistoryOut,
)

# Snapshots
from app.models.snapshot import (
    SnapshotOut,
    SnapshotVersionOut,
    SnapshotVersionsResponse,
    SnapshotCompareResponse,
)

__all__ = [
    # Common
    "HealthResponse",
    "ErrorResponse",
    "OkResponse",
    # Enums
    "AssessmentStatus",
    "AssessmentEvent",
    "ActionStatus",
    "Band",
    "BandRule",
    "Dimension",
    "FindingType",
    "GapStatus",
    "Likert",
    "ProcessKey",
    "Segment",
    "ValueEvent",
    "ACTION_STATUS_TRANSITIONS",
    "ASSESSMENT_TRANSITIONS",
    # Assessment
    "AssessmentCurrentRequest",
    "AssessmentResponse",
    "AssessmentDetailResponse",
    "AssessmentProgress",
    "AnswerItem",
    "AnswersUpsert",
    "AnswerResponse",
    "AnswersResponse",
    "ProcessScoreResponse",
    "SubmitResponse",
    "FindingResponse",
    "SixPack",
    "SixPackItem",
    "ResultsResponse",
    # Cause
    "CauseAnswerItem",
    "CauseAnswersSave",
    "CauseAnswerRequest",
    "CauseAnswerResponse",
    "CauseClassificationOut",
    "PendingCausesResponse",
    # Actions
    "ActionsResponse",
    "PlanItemIn",
    "PlanSelection",
    "PlanItemOut",
    "PlanResponse",
    "StatusUpdate",
    "StatusUpdateResponse",
    "DoDConfirm",
    "DoDResponse",
    "EvidenceCreate",
    "EvidenceOut",
    "EvidenceResponse",
    "GainOut",
    "CloseResponse",
    "NewCycleResponse",
    "CycleHistoryOut",
    # Snapshots
    "SnapshotOut",
    "SnapshotVersionOut",
    "SnapshotVersionsResponse",
    "SnapshotCompareResponse",
]
